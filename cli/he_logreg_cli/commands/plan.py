"""Depth planning command."""

import sys

import click

from services.evaluation.surrogates import SUPPORTED_DEGREES
from services.fhe.depth_budget import POLYNOMIAL_STRATEGIES, recommend_scheme
from services.fhe.errors import HEAlgebraError

from ..output import OutputFormatter, print_error


@click.command()
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
def plan(ctx: click.Context, degree: str, strategy: str):
    """Show the level cost of one training iteration.

    \b
    Prints the per-stage depth and the smallest standard CKKS
    parameter set that fits it. No keys are generated.

    \b
    Examples:
      he-logreg plan
      he-logreg plan --degree 7 --strategy tree
    """
    formatter = OutputFormatter(ctx.obj.get("output_format", "table"), ctx.obj.get("quiet", False))

    try:
        depth_plan, scheme = recommend_scheme(int(degree), strategy)
    except HEAlgebraError as e:
        print_error(str(e))
        sys.exit(1)

    formatter.print_table(
        [{"stage": stage, "levels": levels} for stage, levels in depth_plan.stages()],
        title=f"Depth per iteration (degree {degree}, {strategy})",
    )
    scheme_info = {
        "total_depth": depth_plan.total,
        "poly_modulus_degree": scheme.poly_modulus_degree,
        "coeff_mod_bit_sizes": scheme.coeff_mod_bit_sizes,
        "total_coeff_bits": sum(scheme.coeff_mod_bit_sizes),
        "scale_bits": scheme.scale_bits,
        "slots": scheme.num_slots,
    }
    formatter.print_dict(scheme_info, title="Recommended scheme")
    formatter.print_result({"plan": depth_plan.to_dict(), "scheme": scheme_info})
