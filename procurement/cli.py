"""
Command-line interface for the procurement negotiator.
Provides commands to run a procurement round, score a bid and write an example scenario.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from .config import ConfigurationError, ProcurementConfig, create_example_config, load_config
from .evaluation import UtilityEvaluator
from .models import Bid, Issue, Role
from .orchestrator import ProcurementResult, run_procurement
from .settings import Settings, configure_logging

app = typer.Typer(help="Multi-supplier procurement negotiation")
console = Console()


# ===== COMMANDS =====

@app.command()
def run(
    config_file: Optional[Path] = typer.Argument(None, help="Path to YAML scenario (defaults to PROCUREMENT_CONFIG)"),
    output: Optional[Path] = typer.Option(None, help="Output file for results (.json or .yaml)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output")
):
    """Negotiate with every supplier and select the winning bids."""

    settings = Settings()
    configure_logging(settings)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = _load_or_exit(config_file or settings.PROCUREMENT_CONFIG)
    overrides = settings.timing_overrides()
    if overrides:
        config = config.model_copy(update={"negotiation": config.negotiation.model_copy(update=overrides)})

    console.print(f"[yellow]Negotiating with {len(config.sellers)} suppliers...[/yellow]")
    result = run_procurement(config)

    display_result(result, verbose)

    if output:
        save_result(result, output)
        console.print(f"[green]Results saved to {output}[/green]")


@app.command()
def evaluate(
    config_file: Path = typer.Argument(..., help="Path to YAML scenario"),
    price: float = typer.Option(..., help="Unit price"),
    quality: str = typer.Option(..., help="Quality term, e.g. 'good'"),
    delivery: float = typer.Option(..., help="Delivery time"),
    service: str = typer.Option(..., help="Service term, e.g. 'medium'"),
    role: Role = typer.Option(Role.BUYER, help="Whose preferences to apply")
):
    """Score a single bid against a party's preferences."""

    config = _load_or_exit(config_file)
    prefs = config.buyer if role == Role.BUYER else config.seller
    supplier = config.sellers[0]
    bid = Bid(
        bundle=supplier.bundle,
        issues=(
            Issue(name="price", value=price),
            Issue(name="quality", value=quality),
            Issue(name="delivery", value=delivery),
            Issue(name="service", value=service),
        ),
        quantities=supplier.quantities,
    )

    evaluator = UtilityEvaluator({role: prefs.fuzzy_terms})
    utility = evaluator.score(role, bid, prefs.weights, prefs.issues, prefs.risk_beta)
    verdict = "[green]accept[/green]" if utility >= prefs.acceptance_threshold else "[red]reject[/red]"

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Bid")
    table.add_column("Utility", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Verdict")
    table.add_row(bid.describe(), f"{utility:.4f}", f"{prefs.acceptance_threshold:.2f}", verdict)
    console.print(table)


@app.command()
def example(
    directory: Path = typer.Argument(Path("scenarios"), help="Where to write the example")
):
    """Generate an example scenario file."""

    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "procurement.yaml"
    with open(path, 'w') as f:
        yaml.dump(create_example_config(), f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]Example configuration created in {directory}/[/green]")
    console.print(f"  - {path}")


# ===== HELPER FUNCTIONS =====

def _load_or_exit(config_file) -> ProcurementConfig:
    if config_file is None:
        console.print("[red]No configuration file given and PROCUREMENT_CONFIG is not set[/red]")
        raise typer.Exit(code=1)
    console.print(f"[cyan]Loading configuration from {config_file}...[/cyan]")
    try:
        return load_config(config_file)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


def display_result(result: ProcurementResult, verbose: bool = False):
    """Display per-supplier outcomes and the winning allocation."""

    console.print("\n[cyan]Negotiation Outcomes:[/cyan]")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Supplier")
    table.add_column("Result")
    table.add_column("Rounds", justify="right")
    table.add_column("Utility", justify="right")
    table.add_column("Final Bid")

    for outcome in result.outcomes:
        status = "✅ " + outcome.reason.value if outcome.success else "❌ " + outcome.reason.value
        bid = outcome.final_bid.describe() if outcome.final_bid else "-"
        table.add_row(outcome.counterparty, status, str(outcome.rounds_taken), f"{outcome.utility:.3f}", bid)
    console.print(table)

    console.print(f"\n[bold]{result.allocation.summary()}[/bold]")

    if verbose and result.statistics:
        stats = result.statistics
        console.print("\n[yellow]Statistics:[/yellow]")
        console.print(f"  Agreement rate: {stats['success_rate']:.1%}")
        console.print(f"  Average rounds: {stats['avg_rounds']:.1f}")
        console.print(f"  Average utility (agreements): {stats['avg_utility']:.3f}")
        for reason, count in stats['reasons'].items():
            console.print(f"  {reason}: {count}")


def save_result(result: ProcurementResult, output_path: Path):
    """Save a procurement result to JSON or YAML, chosen by file suffix."""
    data = result.model_dump(mode="json")

    if output_path.suffix == '.json':
        with open(output_path, 'w') as f:
            json.dump(data, f, indent=2)
    else:
        with open(output_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False)


if __name__ == "__main__":
    app()
