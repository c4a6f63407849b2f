import click
import json
import sys

from rich.console import Console
from rich.table import Table

from walletid.config import (
    DEFAULT_NUM_SEGMENTS,
    DEFAULT_SHORT_ID_LENGTH,
    DEFAULT_STRATEGY,
    DEFAULT_WORD_LENGTH,
)
from walletid.errors import WalletIdError
from walletid.humanid import (
    WORD_STRATEGIES,
    analyze_id_space,
    classify_identifier,
    derive,
    derive_with_steps,
    scan_for_collisions,
)


def _shape_options(func):
    """Shared --segments / --word-length options."""
    func = click.option(
        "--word-length",
        type=int,
        default=DEFAULT_WORD_LENGTH,
        show_default=True,
        help="Syllables per word.",
    )(func)
    func = click.option(
        "--segments",
        type=int,
        default=DEFAULT_NUM_SEGMENTS,
        show_default=True,
        help="Number of words in the human ID.",
    )(func)
    return func


@click.command("derive")
@click.argument("wallet")
@_shape_options
@click.option(
    "--short-id-length",
    type=int,
    default=DEFAULT_SHORT_ID_LENGTH,
    show_default=True,
    help="Maximum short ID length.",
)
@click.option(
    "--strategy",
    type=click.Choice(list(WORD_STRATEGIES.keys())),
    default=DEFAULT_STRATEGY,
    show_default=True,
    help="Word strategy. 'markov' produces different IDs than issued ones.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.option("--steps", is_flag=True, help="Show each derivation step.")
def derive_cmd(
    wallet, segments, word_length, short_id_length, strategy, as_json, steps
):
    """Derives the short ID and human ID for WALLET."""
    try:
        if steps:
            result, execution_steps = derive_with_steps(
                wallet, segments, word_length, short_id_length, strategy
            )
        else:
            result = derive(wallet, segments, word_length, short_id_length, strategy)
            execution_steps = []
    except WalletIdError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(result.as_dict(), indent=2))
        return

    for step in execution_steps:
        click.echo(f"  {step}", err=True)

    click.echo(f"Human ID:    {result.human_id}")
    click.echo(f"Short ID:    {result.short_id}")
    click.echo(f"Internal ID: {result.internal_id}")


@click.command("check")
@click.argument("identifier")
def check_cmd(identifier):
    """Reports what kind of identifier IDENTIFIER looks like."""
    kind = classify_identifier(identifier)
    click.echo(kind)
    if kind == "unknown":
        sys.exit(1)


@click.command("analyze")
@_shape_options
@click.option(
    "--population",
    type=int,
    default=100_000,
    show_default=True,
    help="Expected number of wallets.",
)
def analyze_cmd(segments, word_length, population):
    """Analyzes the ID space and collision risk for a human ID shape."""
    try:
        analysis = analyze_id_space(segments, word_length, population)
    except WalletIdError as e:
        raise click.ClickException(str(e))

    console = Console()
    table = Table(title=f"Human ID space: {segments} x {word_length} syllables")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Syllable pool", str(analysis["pool_size"]))
    table.add_row("Words per segment", f"{analysis['word_space']:,}")
    table.add_row("Human IDs", f"{analysis['id_space']:,}")
    table.add_row("Bits", f"{analysis['bits']:.1f}")
    table.add_row(
        f"P(collision) at {population:,}", f"{analysis['collision_probability']:.3e}"
    )
    table.add_row(
        "Wallets for 50% risk", f"{analysis['population_for_50_percent']:,.0f}"
    )
    table.add_row("Short ID bits", f"{analysis['short_id_bits']:.1f}")
    table.add_row("Security level", analysis["security_level"])
    console.print(table)

    for vulnerability in analysis["vulnerabilities"]:
        console.print(f"[yellow]! {vulnerability}[/yellow]")
    for recommendation in analysis["recommendations"]:
        console.print(f"- {recommendation}")


@click.command("collisions")
@_shape_options
@click.option("--count", type=int, default=10_000, show_default=True)
@click.option("--seed", type=int, default=None, help="Seed for reproducible sweeps.")
def collisions_cmd(segments, word_length, count, seed):
    """Derives COUNT random wallets and reports human ID collisions."""
    try:
        report = scan_for_collisions(count, segments, word_length, seed=seed)
    except WalletIdError as e:
        raise click.ClickException(str(e))

    click.echo(f"Attempts:          {report.attempts:,}")
    click.echo(f"ID space:          {report.id_space:,}")
    click.echo(f"Expected attempts: {report.expected_attempts:,.0f}")
    click.echo(f"Rate:              {report.rate:,.0f} derivations/sec")
    click.echo(f"Collisions:        {len(report.collisions)}")
    for human_id, first, second in report.collisions:
        click.echo(f"  {human_id}: {first} / {second}")
