"""Batch command: combine a main folder and nest every thickness drawing."""

import click
from rich.table import Table

from platenest.utils import console


@click.command()
@click.argument("main_folder", type=click.Path(file_okay=False))
@click.option("--sheet-width", "-W", type=float, default=None, help="Sheet width in mm")
@click.option("--sheet-height", "-H", type=float, default=None, help="Sheet height in mm")
@click.option("--seed", type=int, default=None, help="Seed for plate colors")
@click.pass_context
def batch(ctx: click.Context, main_folder: str, sheet_width: float, sheet_height: float, seed: int) -> None:
    """Combine MAIN_FOLDER, then nest each thickness drawing.

    Writes batch_nest_summary.txt into the output folder.
    """
    from platenest.config import get_settings
    from platenest.drawing.colors import ColorStrategy
    from platenest.errors import PlateNestError
    from platenest.pipeline.workflow import batch_combine_and_nest

    settings = get_settings()
    colors = ColorStrategy(seed if seed is not None else settings.color_seed)

    def on_drawing(path, index, total):
        console.print(f"[dim]Nesting {path.name} ({index}/{total})[/dim]")

    try:
        result = batch_combine_and_nest(
            main_folder,
            sheet_width=sheet_width,
            sheet_height=sheet_height,
            settings=settings,
            color_strategy=colors,
            on_drawing=on_drawing,
        )
    except PlateNestError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)

    console.print(f"[bold]Combine:[/bold] {result.combine.message}")
    if not result.combine.success:
        ctx.exit(1)

    if not result.runs:
        console.print("[yellow]No thickness drawings found after combining[/yellow]")
        ctx.exit(1)

    table = Table(title="Batch Nesting")
    table.add_column("Drawing", style="cyan")
    table.add_column("Sheets", justify="right")
    table.add_column("Parts", justify="right")
    table.add_column("Result")

    for run in result.runs:
        if run.success:
            outcome = f"[green]{run.output_path.name}[/green]"
        else:
            outcome = f"[red]{run.message}[/red]"
        table.add_row(run.source_path.name, str(run.sheets_used), str(run.total_parts), outcome)

    console.print(table)
    if result.summary_path:
        console.print(f"Summary: {result.summary_path}")

    if result.failed_runs:
        ctx.exit(1)
