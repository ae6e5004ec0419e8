"""Main CLI entry point for platenest."""

import click

from platenest import __version__
from platenest.utils import console, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="platenest")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"]),
    default=None,
    help="Log output format (defaults to PLATENEST_LOG_FORMAT)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_format: str) -> None:
    """platenest - plate part aggregation and sheet nesting.

    Combines per-job part lists into one drawing per plate thickness and
    nests the plates of each drawing onto stock sheets.
    """
    from platenest.config import get_settings

    settings = get_settings()
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        fmt=log_format or settings.log_format,
    )


# Import and register commands
from platenest.cli.combine_cmd import combine
from platenest.cli.nest_cmd import nest
from platenest.cli.batch_cmd import batch

cli.add_command(combine)
cli.add_command(nest)
cli.add_command(batch)


@cli.command()
def status() -> None:
    """Show configuration."""
    from platenest.config import get_settings

    settings = get_settings()

    console.print("[bold]platenest Status[/bold]")
    console.print(f"Version: {__version__}")
    console.print()
    console.print("[bold]Files:[/bold]")
    console.print(f"  Part records: {settings.record_file_name}")
    console.print(f"  Summary catalog: {settings.summary_file_name}")
    console.print(f"  Thickness drawings: {settings.thickness_file_prefix}*{settings.drawing_extension}")
    console.print(f"  Output Directory: {settings.output_dir or '[dim]main folder[/dim]'}")
    console.print()
    console.print("[bold]Nesting:[/bold]")
    console.print(f"  Sheet: {settings.default_sheet_width:g} x {settings.default_sheet_height:g} mm")
    console.print(f"  Margin: {settings.sheet_margin:g} mm, Gap: {settings.part_gap:g} mm")
    console.print(f"  Color seed: {settings.color_seed if settings.color_seed is not None else 'random'}")


if __name__ == "__main__":
    cli()
