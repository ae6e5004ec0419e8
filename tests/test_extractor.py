"""Tests for plate block extraction."""

import ezdxf
import pytest

from platenest.nesting.extractor import (
    BlockGeometryExtractor,
    decode_quantity,
    is_plate_block,
)


def drawing_with_blocks(blocks):
    """New drawing with {name: [(w, h, x, y), ...]} rectangle blocks."""
    doc = ezdxf.new("R2010")
    for name, rects in blocks.items():
        block = doc.blocks.new(name=name)
        for w, h, x, y in rects:
            block.add_lwpolyline([(x, y), (x + w, y), (x + w, y + h), (x, y + h)], close=True)
    return doc


class TestDecodeQuantity:
    """Tests for decode_quantity."""

    @pytest.mark.parametrize("name,expected", [
        ("P_plate_Q5", 5),
        ("P_plate_q12", 12),
        ("P_plate", 1),
        ("P_plate_Q0", 1),
        ("P_plate_Qx", 1),
        ("P_plate_Q", 1),
        ("P_plate_Q3_extra", 1),
        ("P_plate_1_Q4", 4),
    ])
    def test_decode(self, name, expected):
        """Test quantity suffix decoding."""
        assert decode_quantity(name) == expected


class TestIsPlateBlock:
    """Tests for is_plate_block."""

    def test_prefix_case_insensitive(self):
        """Test the prefix match."""
        assert is_plate_block("P_a_Q1")
        assert is_plate_block("p_a")
        assert not is_plate_block("X_a")

    def test_special_blocks_excluded(self):
        """Test that anonymous and layout blocks never match."""
        assert not is_plate_block("*Model_Space")
        assert not is_plate_block("*P_thing")
        assert not is_plate_block("")


class TestBlockGeometryExtractor:
    """Tests for BlockGeometryExtractor."""

    def test_extracts_plate_blocks(self, store):
        """Test sizes, origins and quantities of plate blocks."""
        doc = drawing_with_blocks({
            "P_a_Q3": [(100, 50, 10, 20)],
            "P_b": [(30, 30, 0, 0), (10, 10, 40, 5)],
            "OTHER": [(5, 5, 0, 0)],
        })

        result = BlockGeometryExtractor(store).extract(doc)
        plates = {p.block_name: p for p in result.plates}

        assert set(plates) == {"P_a_Q3", "P_b"}
        assert plates["P_a_Q3"].quantity == 3
        assert plates["P_a_Q3"].width == pytest.approx(100)
        assert plates["P_a_Q3"].min_x == pytest.approx(10)
        assert plates["P_a_Q3"].min_y == pytest.approx(20)
        assert plates["P_b"].width == pytest.approx(50)
        assert plates["P_b"].height == pytest.approx(30)
        assert result.total_instances == 4

    def test_empty_block_excluded(self, store):
        """Test that blocks without geometry are excluded, not failed."""
        doc = drawing_with_blocks({"P_empty_Q2": [], "P_ok_Q1": [(10, 10, 0, 0)]})

        result = BlockGeometryExtractor(store).extract(doc)

        assert [p.block_name for p in result.plates] == ["P_ok_Q1"]
        assert result.excluded_blocks == ["P_empty_Q2"]

    def test_degenerate_block_excluded(self, store):
        """Test that a zero-height block is excluded."""
        doc = ezdxf.new("R2010")
        doc.blocks.new(name="P_line").add_line((0, 0), (100, 0))

        result = BlockGeometryExtractor(store).extract(doc)

        assert result.plates == []
        assert result.excluded_blocks == ["P_line"]

    def test_no_plate_blocks(self, store):
        """Test a drawing without plate blocks."""
        result = BlockGeometryExtractor(store).extract(ezdxf.new("R2010"))
        assert result.plates == []
        assert result.ignored_blocks > 0
