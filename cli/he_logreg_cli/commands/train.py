"""Encrypted training command."""

import json
import sys
from pathlib import Path
from typing import Optional

import click
import numpy as np

from services.data.dataset import StandardScaler, load_csv
from services.evaluation.surrogates import SUPPORTED_DEGREES
from services.fhe.ckks_backend import CKKSSchemeContext
from services.fhe.depth_budget import POLYNOMIAL_STRATEGIES, recommend_scheme
from services.fhe.errors import HEAlgebraError
from services.training.plaintext import PlaintextLogisticRegression, accuracy, log_loss
from services.training.trainer import EncryptedLogisticRegressionTrainer

from ..config import build_settings, scheme_is_explicit
from ..output import OutputFormatter, format_duration, print_error, print_warning, progress_spinner, to_jsonable


@click.command()
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--label-column", "-l", type=int, default=-1, help="Index of the label column")
@click.option("--no-header", is_flag=True, help="CSV has no header line")
@click.option("--standardize/--no-standardize", default=True, help="z-score the features")
@click.option(
    "--degree", "-d",
    type=click.Choice([str(d) for d in SUPPORTED_DEGREES]),
    default=None,
    help="Sigmoid surrogate degree",
)
@click.option(
    "--strategy", "-s",
    type=click.Choice(list(POLYNOMIAL_STRATEGIES)),
    default=None,
    help="Polynomial evaluation strategy",
)
@click.option("--iterations", "-n", type=int, default=None, help="Number of iterations")
@click.option("--learning-rate", "-r", type=float, default=None, help="Learning rate")
@click.option("--report-every", type=int, default=None, help="Snapshot interval")
@click.option("--compare/--no-compare", default=True, help="Also train the plaintext reference")
@click.option("--save", "save_path", type=click.Path(dir_okay=False), help="Write final weights as JSON")
@click.pass_context
def train(
    ctx: click.Context,
    csv_file: str,
    label_column: int,
    no_header: bool,
    standardize: bool,
    degree: Optional[str],
    strategy: Optional[str],
    iterations: Optional[int],
    learning_rate: Optional[float],
    report_every: Optional[int],
    compare: bool,
    save_path: Optional[str],
):
    """Train logistic regression on encrypted data.

    \b
    Features, labels and weights are encrypted before the first
    iteration. Weights are decrypted and re-encrypted by the key
    holder after every iteration.

    \b
    Examples:
      he-logreg train data.csv
      he-logreg train data.csv --degree 5 --iterations 20 -r 0.5
      he-logreg -o json train data.csv --save weights.json
    """
    config = ctx.obj["config"]
    output_format = ctx.obj.get("output_format", "table")
    quiet = ctx.obj.get("quiet", False)
    formatter = OutputFormatter(output_format, quiet)

    settings = build_settings(config, {
        "degree": int(degree) if degree else None,
        "strategy": strategy,
        "iterations": iterations,
        "learning_rate": learning_rate,
        "report_every": report_every,
    })

    try:
        dataset = load_csv(csv_file, label_column=label_column, has_header=not no_header)
    except (HEAlgebraError, ValueError) as e:
        print_error(f"Failed to read {csv_file}", str(e))
        sys.exit(1)
    if standardize:
        dataset.features = StandardScaler().fit_transform(dataset.features)

    if not scheme_is_explicit(config):
        try:
            _, settings.scheme = recommend_scheme(settings.training.degree, settings.training.strategy)
        except (HEAlgebraError, ValueError) as e:
            print_error(str(e))
            sys.exit(1)

    issues = settings.validate()
    errors = [issue for issue in issues if issue.startswith("ERROR")]
    for issue in errors:
        print_error(issue)
    if errors:
        sys.exit(1)
    if not quiet:
        for issue in issues:
            print_warning(issue)

    formatter.print_info(
        f"{dataset.num_rows} rows, {dataset.num_features} features; "
        f"N={settings.scheme.poly_modulus_degree}, depth={settings.scheme.max_depth}"
    )

    try:
        with progress_spinner("Training on encrypted data...", enabled=not quiet and output_format != "json"):
            context = CKKSSchemeContext(settings.scheme)
            trainer = EncryptedLogisticRegressionTrainer(context, settings.training)
            result = trainer.train(dataset.features, dataset.labels)
            weights = trainer.decrypt_weights(result)
    except HEAlgebraError as e:
        print_error(f"Encrypted training failed: {e}")
        sys.exit(1)

    probabilities = 1.0 / (1.0 + np.exp(-(dataset.features @ weights)))
    summary = {
        "iterations": result.iterations,
        "refresh_count": result.refresh_count,
        "depth_per_iteration": result.depth_plan.total,
        "training_time": format_duration(result.training_time_seconds),
        "weights": weights,
        "log_loss": log_loss(dataset.labels, probabilities),
        "accuracy": accuracy(dataset.labels, probabilities),
    }

    if compare:
        reference = PlaintextLogisticRegression(
            learning_rate=settings.training.learning_rate,
            iterations=settings.training.iterations,
            degree=settings.training.degree,
        ).fit(dataset.features, dataset.labels, trainer.initial_weights(dataset.num_features))
        summary["plaintext_weights"] = reference.weights
        summary["max_weight_difference"] = float(np.max(np.abs(weights - reference.weights)))

    formatter.print_table(
        [
            {"iteration": s.iteration, "loss": s.loss, "weights": np.round(s.weights, 6)}
            for s in result.history.snapshots
        ],
        title="Weight snapshots",
    )
    formatter.print_dict(summary, title="Encrypted training result")
    formatter.print_result({
        **summary,
        "feature_names": dataset.feature_names,
        "snapshots": [
            {"iteration": s.iteration, "loss": s.loss, "weights": s.weights}
            for s in result.history.snapshots
        ],
    })

    if save_path:
        Path(save_path).write_text(json.dumps(to_jsonable({
            "feature_names": dataset.feature_names,
            "weights": weights,
        }), indent=2))
        formatter.print_success(f"Weights written to {save_path}")
