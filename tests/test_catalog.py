"""Tests for part record parsing and catalog aggregation."""

from decimal import Decimal
from pathlib import Path

import pytest

from conftest import RECORD_HEADER, make_job
from platenest.catalog.aggregator import (
    SUMMARY_HEADER,
    CatalogCache,
    PartCatalogAggregator,
    discover_job_folders,
    load_catalog_for_folder,
    load_summary,
    render_summary,
    write_summary,
)
from platenest.catalog.records import UniquePart, parse_record_row, part_key, sort_catalog
from platenest.errors import InputError, PersistenceError, RecordParseError


class TestParseRecordRow:
    """Tests for parse_record_row."""

    def test_valid_row(self, tmp_path):
        """Test parsing a well-formed row."""
        record = parse_record_row(["plate.dwg", "6.5", "4"], tmp_path / "JobA")

        assert record.file_name == "plate.dwg"
        assert record.thickness_mm == 6.5
        assert record.quantity == 4
        assert record.source_folder == "JobA"
        assert record.source_path == tmp_path / "JobA" / "plate.dwg"

    def test_whitespace_trimmed(self, tmp_path):
        """Test that fields are trimmed."""
        record = parse_record_row(["  plate.dwg ", " 3 ", " 2 "], tmp_path)
        assert record.file_name == "plate.dwg"
        assert record.quantity == 2

    def test_extra_columns_ignored(self, tmp_path):
        """Test that columns past the third are ignored."""
        record = parse_record_row(["a.dwg", "3", "1", "note", "more"], tmp_path)
        assert record.quantity == 1

    def test_zero_quantity_allowed(self, tmp_path):
        """Test that a zero quantity parses."""
        assert parse_record_row(["a.dwg", "3", "0"], tmp_path).quantity == 0

    @pytest.mark.parametrize("fields", [
        ["a.dwg", "3"],
        ["", "3", "1"],
        ["a.dwg", "abc", "1"],
        ["a.dwg", "3,5", "1"],
        ["a.dwg", "nan", "1"],
        ["a.dwg", "inf", "1"],
        ["a.dwg", "3", "1.5"],
        ["a.dwg", "3", "x"],
        ["a.dwg", "3", "-2"],
        ["a.dwg", "1_0", "1"],
    ])
    def test_invalid_rows(self, tmp_path, fields):
        """Test that malformed rows raise RecordParseError."""
        with pytest.raises(RecordParseError):
            parse_record_row(fields, tmp_path, line_number=5)

    def test_error_carries_line_number(self, tmp_path):
        """Test that the parse error reports its line."""
        with pytest.raises(RecordParseError) as exc_info:
            parse_record_row(["a.dwg", "bad", "1"], tmp_path, line_number=7)
        assert exc_info.value.line_number == 7


class TestPartKey:
    """Tests for the dedup key."""

    def test_case_insensitive_name(self):
        """Test that file names compare case-insensitively."""
        assert part_key("PlateX.DWG", 3.0) == part_key("platex.dwg", 3.0)

    def test_thickness_rounded_to_three_decimals(self):
        """Test thickness keying at 3 decimals."""
        assert part_key("a", 3.0) == part_key("a", 3.0004)
        assert part_key("a", 3.0) != part_key("a", 3.01)
        assert part_key("a", 3.0) != part_key("a", 3.001)

    def test_half_rounds_away_from_zero(self):
        """Test that halves round up."""
        assert part_key("a", 2.0005)[1] == Decimal("2.001")

    def test_deterministic(self):
        """Test that equal inputs give equal keys."""
        assert part_key("x.dwg", 6.5) == part_key("x.dwg", 6.5)


class TestSortCatalog:
    """Tests for catalog ordering."""

    def test_thickness_then_name(self, tmp_path):
        """Test ascending thickness, then case-insensitive name."""
        parts = [
            UniquePart("b.dwg", 5.0, 1, tmp_path / "b.dwg", "A"),
            UniquePart("C.dwg", 3.0, 1, tmp_path / "C.dwg", "A"),
            UniquePart("a.dwg", 3.0, 1, tmp_path / "a.dwg", "A"),
        ]
        ordered = [p.file_name for p in sort_catalog(parts)]
        assert ordered == ["a.dwg", "C.dwg", "b.dwg"]


class TestDiscoverJobFolders:
    """Tests for discover_job_folders."""

    def test_lists_subfolders_sorted(self, tmp_path):
        """Test that only directories are listed, in name order."""
        (tmp_path / "b").mkdir()
        (tmp_path / "A").mkdir()
        (tmp_path / "file.txt").write_text("x")

        assert [p.name for p in discover_job_folders(tmp_path)] == ["A", "b"]

    def test_missing_folder(self, tmp_path):
        """Test that a missing main folder is an InputError."""
        with pytest.raises(InputError):
            discover_job_folders(tmp_path / "nope")


class TestPartCatalogAggregator:
    """Tests for PartCatalogAggregator."""

    def test_example_scenario(self, main_folder):
        """Test merging the same part across two jobs."""
        result = PartCatalogAggregator().aggregate(discover_job_folders(main_folder))

        assert [(p.file_name, p.thickness_mm, p.total_quantity) for p in result.parts] == [
            ("plateX.dwg", 3.0, 5),
            ("plateY.dwg", 5.0, 1),
        ]
        assert result.folders_scanned == 2
        assert result.records_read == 3

    def test_first_seen_row_is_representative(self, main_folder):
        """Test that the first folder's path represents the merged part."""
        result = PartCatalogAggregator().aggregate(discover_job_folders(main_folder))
        plate_x = result.parts[0]

        assert plate_x.source_folder == "A"
        assert plate_x.representative_source_path == main_folder / "A" / "plateX.dwg"

    def test_catalog_independent_of_folder_order(self, main_folder):
        """Test that reversing the folder list keeps catalog order and totals."""
        folders = discover_job_folders(main_folder)
        aggregator = PartCatalogAggregator()

        forward = aggregator.aggregate(folders)
        backward = aggregator.aggregate(list(reversed(folders)))

        def rows(result):
            return [(p.file_name, p.thickness_key, p.total_quantity) for p in result.parts]

        assert rows(forward) == rows(backward)
        # Only the first-seen representative follows folder order
        assert backward.parts[0].source_folder == "B"

    def test_summary_bytes_independent_of_folder_order(self, tmp_path):
        """Test identical summary files for reversed folder lists."""
        main = tmp_path / "jobs"
        make_job(main, "J1", [("zeta.dwg", "5", "1"), ("Alpha.dwg", "3", "2")])
        make_job(main, "J2", [("beta.dwg", "3", "4"), ("gamma.dwg", "1.5", "1")])
        make_job(main, "J3", [("alpha2.dwg", "3.0", "6")])
        folders = discover_job_folders(main)
        aggregator = PartCatalogAggregator()

        forward = aggregator.aggregate(folders, summary_path=tmp_path / "forward.csv")
        backward = aggregator.aggregate(list(reversed(folders)), summary_path=tmp_path / "backward.csv")

        assert [p.file_name for p in forward.parts] == [
            "gamma.dwg", "Alpha.dwg", "alpha2.dwg", "beta.dwg", "zeta.dwg",
        ]
        assert forward.parts == backward.parts
        assert (tmp_path / "forward.csv").read_bytes() == (tmp_path / "backward.csv").read_bytes()

    def test_merge_sum_matches_rows(self, tmp_path):
        """Test that merged quantities equal the sum of valid rows."""
        make_job(tmp_path, "J1", [("p.dwg", "3", "1"), ("P.DWG", "3.0", "4")])
        make_job(tmp_path, "J2", [("p.dwg", "3.0001", "2"), ("q.dwg", "3", "7")])

        result = PartCatalogAggregator().aggregate(discover_job_folders(tmp_path))

        assert result.total_quantity == 14
        assert {p.file_name: p.total_quantity for p in result.parts} == {"p.dwg": 7, "q.dwg": 7}

    def test_malformed_rows_skipped(self, tmp_path):
        """Test that bad rows are counted and skipped."""
        folder = tmp_path / "J"
        folder.mkdir()
        (folder / "parts.csv").write_text(
            RECORD_HEADER + "a.dwg,3,2\nbad.dwg,xx,1\nshort,3\nb.dwg,4,-1\n\nc.dwg,4,1\n"
        )

        result = PartCatalogAggregator().aggregate([folder])

        assert result.records_read == 2
        assert result.skipped_rows == 3
        assert [p.file_name for p in result.parts] == ["a.dwg", "c.dwg"]

    def test_folder_without_records(self, tmp_path):
        """Test that missing and header-only files are counted."""
        (tmp_path / "empty").mkdir()
        header_only = tmp_path / "header"
        header_only.mkdir()
        (header_only / "parts.csv").write_text(RECORD_HEADER)

        result = PartCatalogAggregator().aggregate(discover_job_folders(tmp_path))

        assert result.folders_without_records == 2
        assert not result.has_data

    def test_no_data_writes_no_summary(self, tmp_path):
        """Test that nothing is written when no rows were read."""
        (tmp_path / "empty").mkdir()
        summary = tmp_path / "all_parts.csv"

        result = PartCatalogAggregator().aggregate(discover_job_folders(tmp_path), summary_path=summary)

        assert result.summary_path is None
        assert not summary.exists()

    def test_utf8_bom_accepted(self, tmp_path):
        """Test that a BOM on the header does not break parsing."""
        folder = tmp_path / "J"
        folder.mkdir()
        (folder / "parts.csv").write_bytes(("\ufeff" + RECORD_HEADER + "a.dwg,3,2\n").encode("utf-8"))

        result = PartCatalogAggregator().aggregate([folder])
        assert result.parts[0].total_quantity == 2

    def test_writes_summary(self, main_folder):
        """Test the summary file contents."""
        summary = main_folder / "all_parts.csv"
        result = PartCatalogAggregator().aggregate(discover_job_folders(main_folder), summary_path=summary)

        assert result.summary_path == summary
        lines = summary.read_text(encoding="utf-8").splitlines()
        assert lines[0] == ",".join(SUMMARY_HEADER)
        assert lines[1:] == ["plateX.dwg,3,5,A", "plateY.dwg,5,1,A"]

    def test_summary_idempotent(self, main_folder):
        """Test that unchanged input produces byte-identical summaries."""
        summary = main_folder / "all_parts.csv"
        aggregator = PartCatalogAggregator()

        aggregator.aggregate(discover_job_folders(main_folder), summary_path=summary)
        first = summary.read_bytes()
        aggregator.aggregate(discover_job_folders(main_folder), summary_path=summary)

        assert summary.read_bytes() == first

    def test_summary_write_failure_recorded(self, main_folder):
        """Test that an unwritable summary is reported, not raised."""
        target = main_folder / "missing_dir" / "all_parts.csv"
        result = PartCatalogAggregator().aggregate(discover_job_folders(main_folder), summary_path=target)

        assert result.has_data
        assert result.summary_path is None
        assert result.summary_error

    def test_by_thickness_groups(self, main_folder):
        """Test grouping by thickness key in ascending order."""
        result = PartCatalogAggregator().aggregate(discover_job_folders(main_folder))
        groups = result.by_thickness()

        assert list(groups.keys()) == [Decimal("3.000"), Decimal("5.000")]
        assert [p.file_name for p in groups[Decimal("3.000")]] == ["plateX.dwg"]


class TestSummaryFile:
    """Tests for writing and loading the summary catalog."""

    def test_render_quotes_commas(self, tmp_path):
        """Test that names with commas survive the CSV round trip."""
        part = UniquePart("a,b.dwg", 3.0, 2, tmp_path / "J" / "a,b.dwg", "J")
        text = render_summary([part])
        assert '"a,b.dwg"' in text

    def test_load_summary(self, main_folder):
        """Test loading a written summary."""
        summary = main_folder / "all_parts.csv"
        PartCatalogAggregator().aggregate(discover_job_folders(main_folder), summary_path=summary)

        parts = load_summary(summary)

        assert [(p.file_name, p.total_quantity, p.source_folder) for p in parts] == [
            ("plateX.dwg", 5, "A"),
            ("plateY.dwg", 1, "A"),
        ]
        assert parts[0].representative_source_path == main_folder / "A" / "plateX.dwg"

    def test_write_summary_error(self, tmp_path):
        """Test that write failures raise PersistenceError."""
        with pytest.raises(PersistenceError):
            write_summary([], tmp_path / "no" / "such" / "all_parts.csv")


class TestCatalogCache:
    """Tests for CatalogCache and load_catalog_for_folder."""

    def test_caches_loaded_catalog(self, main_folder):
        """Test that a second load is served from the cache."""
        summary = main_folder / "all_parts.csv"
        PartCatalogAggregator().aggregate(discover_job_folders(main_folder), summary_path=summary)
        cache = CatalogCache()

        first = load_catalog_for_folder(main_folder, cache=cache)
        summary.unlink()
        second = load_catalog_for_folder(main_folder, cache=cache)

        assert first is second
        assert len(cache) == 1

    def test_miss_is_cached(self, tmp_path):
        """Test that a folder without a catalog caches None."""
        cache = CatalogCache()
        assert load_catalog_for_folder(tmp_path, cache=cache) is None
        assert tmp_path in cache

    def test_invalidate_reloads(self, main_folder):
        """Test that invalidation picks up a rewritten catalog."""
        cache = CatalogCache()
        assert load_catalog_for_folder(main_folder, cache=cache) is None

        summary = main_folder / "all_parts.csv"
        PartCatalogAggregator().aggregate(discover_job_folders(main_folder), summary_path=summary)
        cache.invalidate(main_folder)

        parts = load_catalog_for_folder(main_folder, cache=cache)
        assert len(parts) == 2

    def test_keys_by_resolved_path(self, tmp_path):
        """Test that equivalent paths share an entry."""
        cache = CatalogCache()
        cache.put(tmp_path, [])
        assert Path(str(tmp_path) + "/.") in cache
