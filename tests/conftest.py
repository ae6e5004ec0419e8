"""Shared fixtures: job folders with part records and simple DXF parts."""

from pathlib import Path

import ezdxf
import pytest

from platenest.config import Settings, configure, reset_settings
from platenest.drawing.store import EzdxfDrawingStore

RECORD_HEADER = "FileName,PlateThickness_mm,Quantity\n"


def write_rectangle_dxf(path: Path, width: float, height: float, origin=(0.0, 0.0)) -> Path:
    """Write a DXF whose model space holds one closed rectangle."""
    x, y = origin
    doc = ezdxf.new("R2010")
    doc.modelspace().add_lwpolyline(
        [(x, y), (x + width, y), (x + width, y + height), (x, y + height)],
        close=True,
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    doc.saveas(path)
    return path


def write_empty_dxf(path: Path) -> Path:
    doc = ezdxf.new("R2010")
    path.parent.mkdir(parents=True, exist_ok=True)
    doc.saveas(path)
    return path


def make_job(main: Path, name: str, rows, sizes=None) -> Path:
    """
    Create a job folder with a parts.csv and one rectangle DXF per row.

    Args:
        main: Main folder
        name: Job folder name
        rows: (file name, thickness, quantity) tuples written as-is
        sizes: Optional {file name: (width, height)}; default 100 x 50
    """
    folder = main / name
    folder.mkdir(parents=True, exist_ok=True)
    lines = [RECORD_HEADER]
    for file_name, thickness, quantity in rows:
        lines.append(f"{file_name},{thickness},{quantity}\n")
        width, height = (sizes or {}).get(file_name, (100.0, 50.0))
        write_rectangle_dxf(folder / Path(file_name).with_suffix(".dxf").name, width, height)
    (folder / "parts.csv").write_text("".join(lines), encoding="utf-8")
    return folder


@pytest.fixture(autouse=True)
def isolated_settings():
    """Every test starts from default settings with a fixed color seed."""
    configure(Settings(color_seed=7))
    yield
    reset_settings()


@pytest.fixture
def store():
    return EzdxfDrawingStore()


@pytest.fixture
def main_folder(tmp_path):
    """Two jobs sharing plateX at 3 mm, plus plateY at 5 mm."""
    main = tmp_path / "jobs"
    make_job(main, "A", [("plateX.dwg", "3", "2"), ("plateY.dwg", "5", "1")],
             sizes={"plateX.dwg": (400.0, 300.0), "plateY.dwg": (200.0, 100.0)})
    make_job(main, "B", [("plateX.dwg", "3", "3")],
             sizes={"plateX.dwg": (400.0, 300.0)})
    return main
