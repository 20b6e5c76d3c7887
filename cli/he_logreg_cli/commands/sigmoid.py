"""Encrypted sigmoid surrogate demo command."""

import sys

import click
import numpy as np

from services.evaluation.polynomial import evaluate_surrogate
from services.evaluation.surrogates import SUPPORTED_DEGREES, get_sigmoid_surrogate, sigmoid as exact_sigmoid
from services.fhe.ckks_backend import CKKSAlgebra, SecretKeyHolder, create_scheme_context
from services.fhe.depth_budget import POLYNOMIAL_STRATEGIES, polynomial_depth
from services.fhe.errors import HEAlgebraError

from ..output import OutputFormatter, print_error


@click.command()
@click.argument("x", type=float)
@click.option(
    "--degree", "-d",
    type=click.Choice([str(d) for d in SUPPORTED_DEGREES]),
    default="3",
    help="Sigmoid surrogate degree",
)
@click.option(
    "--strategy", "-s",
    type=click.Choice(list(POLYNOMIAL_STRATEGIES)),
    default="horner",
    help="Polynomial evaluation strategy",
)
@click.pass_context
def sigmoid(ctx: click.Context, x: float, degree: str, strategy: str):
    """Evaluate the sigmoid surrogate on an encrypted value.

    \b
    Encrypts X, evaluates the degree-d surrogate under encryption and
    compares the decrypted result with the plaintext surrogate (CKKS
    error) and the exact sigmoid (approximation error).

    \b
    Examples:
      he-logreg sigmoid 0.8
      he-logreg sigmoid 2.5 --degree 7 --strategy tree
    """
    formatter = OutputFormatter(ctx.obj.get("output_format", "table"), ctx.obj.get("quiet", False))
    d = int(degree)
    surrogate = get_sigmoid_surrogate(d)

    try:
        context = create_scheme_context(polynomial_depth(d, strategy))
        algebra = CKKSAlgebra(context)
        encrypted = evaluate_surrogate(algebra, algebra.encrypt([x]), d, strategy=strategy)
        result = float(SecretKeyHolder(context).decrypt_values(encrypted, 1)[0])
    except HEAlgebraError as e:
        print_error(str(e))
        sys.exit(1)

    expected = float(surrogate.evaluate(np.array([x]))[0])
    true_value = float(exact_sigmoid(np.array([x]))[0])

    report = {
        "input": x,
        "degree": d,
        "strategy": strategy,
        "encrypted_result": result,
        "expected_approximation": expected,
        "true_sigmoid": true_value,
        "approximation_error": abs(result - true_value),
        "ckks_error": abs(result - expected),
    }
    if x < surrogate.domain[0] or x > surrogate.domain[1]:
        formatter.print_info(f"Input is outside the surrogate domain {surrogate.domain}")
    formatter.print_dict(report, title="Encrypted sigmoid surrogate")
    formatter.print_result(report)
