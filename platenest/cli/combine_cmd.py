"""Combine command: aggregate part records and build thickness drawings."""

import json

import click
from rich.table import Table

from platenest.utils import console


@click.command()
@click.argument("main_folder", type=click.Path(file_okay=False))
@click.option("--seed", type=int, default=None, help="Seed for plate colors (reproducible output)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def combine(ctx: click.Context, main_folder: str, seed: int, output_json: bool) -> None:
    """Combine job folders into one drawing per plate thickness.

    Reads parts.csv from every sub-folder of MAIN_FOLDER, writes all_parts.csv
    and thickness_<t>.dxf files.

    Example: platenest combine ./jobs --seed 42
    """
    from platenest.config import get_settings
    from platenest.drawing.colors import ColorStrategy
    from platenest.errors import InputError
    from platenest.pipeline.workflow import combine_folder

    settings = get_settings()
    colors = ColorStrategy(seed if seed is not None else settings.color_seed)

    try:
        with console.status("Combining part records...", spinner="dots"):
            result = combine_folder(main_folder, settings=settings, color_strategy=colors)
    except InputError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)

    if output_json:
        data = {
            "success": result.success,
            "message": result.message,
            "summary_path": str(result.summary_path) if result.summary_path else None,
            "aggregation": result.aggregation.to_dict() if result.aggregation else None,
            "assemblies": [a.to_dict() for a in result.assemblies],
        }
        click.echo(json.dumps(data, indent=2))
        if not result.success:
            ctx.exit(1)
        return

    if not result.success:
        console.print(f"[yellow]{result.message}[/yellow]")
        ctx.exit(1)

    agg = result.aggregation
    console.print(f"[green]{result.message}[/green]")
    console.print(f"  Folders scanned: {agg.folders_scanned}")
    console.print(f"  Records read: {agg.records_read}")
    if agg.skipped_rows:
        console.print(f"  [yellow]Rows skipped: {agg.skipped_rows}[/yellow]")
    if agg.summary_path:
        console.print(f"  Summary: {agg.summary_path}")
    if agg.summary_error:
        console.print(f"  [red]Summary not written: {agg.summary_error}[/red]")
    console.print()

    parts_table = Table(title="Unique Parts")
    parts_table.add_column("File", style="cyan")
    parts_table.add_column("Thickness", justify="right")
    parts_table.add_column("Qty", justify="right")
    parts_table.add_column("Folder", style="dim")
    for part in agg.parts:
        parts_table.add_row(part.file_name, f"{part.thickness_text} mm", str(part.total_quantity), part.source_folder)
    console.print(parts_table)

    table = Table(title="Thickness Drawings")
    table.add_column("Thickness", style="cyan")
    table.add_column("Parts", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Drawing")

    for assembly in result.assemblies:
        if assembly.save_error:
            drawing = f"[red]{assembly.save_error}[/red]"
        elif assembly.output_path:
            drawing = assembly.output_path.name
        else:
            drawing = "[dim]-[/dim]"
        skipped = str(assembly.skipped_parts)
        if assembly.skipped_parts:
            skipped = f"[yellow]{skipped}[/yellow]"
        table.add_row(f"{assembly.thickness_text} mm", str(assembly.placed_parts), skipped, drawing)

    console.print(table)
