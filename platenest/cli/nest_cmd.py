"""Nest command: pack the plate blocks of one thickness drawing onto sheets."""

import json

import click
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from platenest.utils import console


@click.command()
@click.argument("drawing", type=click.Path(dir_okay=False))
@click.option("--sheet-width", "-W", type=float, default=None, help="Sheet width in mm")
@click.option("--sheet-height", "-H", type=float, default=None, help="Sheet height in mm")
@click.option("--margin", type=float, default=None, help="Clearance from sheet edges in mm")
@click.option("--gap", type=float, default=None, help="Spacing between plates in mm")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def nest(
    ctx: click.Context,
    drawing: str,
    sheet_width: float,
    sheet_height: float,
    margin: float,
    gap: float,
    output_json: bool,
) -> None:
    """Nest the plate blocks of DRAWING onto stock sheets.

    Writes <name>_nested.dxf next to the drawing.

    Example: platenest nest thickness_3.dxf -W 2500 -H 1250
    """
    from platenest.config import get_settings
    from platenest.errors import PlateNestError
    from platenest.nesting.shelf_nester import NestingConfig
    from platenest.pipeline.workflow import nest_drawing

    settings = get_settings()
    config = NestingConfig.from_settings(settings, sheet_width, sheet_height)
    if margin is not None:
        config.sheet_margin = margin
    if gap is not None:
        config.part_gap = gap

    try:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            disable=output_json,
        ) as progress:
            task = progress.add_task("Placing plates...", total=None)

            def on_placed(placed: int, total: int) -> None:
                progress.update(task, completed=placed, total=total)

            result = nest_drawing(drawing, settings=settings, config=config, progress=on_placed)
    except PlateNestError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)

    if output_json:
        data = {
            "success": result.success,
            "message": result.message,
            "output_path": str(result.output_path) if result.output_path else None,
            "excluded_blocks": result.excluded_blocks,
            "warnings": result.quantity_warnings,
            "layout": result.layout.to_dict() if result.layout else None,
        }
        click.echo(json.dumps(data, indent=2))
        if not result.success:
            ctx.exit(1)
        return

    if not result.success:
        console.print(f"[yellow]{result.message}[/yellow]")
        ctx.exit(1)

    layout = result.layout
    console.print(f"[green]{result.message}[/green]")
    console.print(f"  Sheet: {layout.sheet_width:g} x {layout.sheet_height:g} mm")
    console.print(f"  Utilization: {layout.utilization:.1f}%")
    console.print(f"  Output: {result.output_path}")
    if result.excluded_blocks:
        console.print(f"  [yellow]Blocks excluded (no usable geometry): {result.excluded_blocks}[/yellow]")
    for warning in result.quantity_warnings:
        console.print(f"  [yellow]Warning: {warning}[/yellow]")

    table = Table(title="Sheets")
    table.add_column("Sheet", style="cyan")
    table.add_column("Parts", justify="right")
    for sheet in layout.sheets:
        table.add_row(sheet.label, str(len(layout.placements_on(sheet.index))))
    console.print(table)
