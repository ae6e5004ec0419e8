"""Part catalog aggregation.

Merges per-job part-record files into a deduplicated, quantity-weighted
catalog and writes the summary catalog file.
"""

from platenest.catalog.aggregator import (
    AggregationResult,
    CatalogCache,
    PartCatalogAggregator,
    discover_job_folders,
    load_catalog_for_folder,
    load_summary,
    write_summary,
)
from platenest.catalog.records import (
    PartRecord,
    UniquePart,
    parse_record_row,
    part_key,
)

__all__ = [
    "AggregationResult",
    "CatalogCache",
    "PartCatalogAggregator",
    "PartRecord",
    "UniquePart",
    "discover_job_folders",
    "load_catalog_for_folder",
    "load_summary",
    "parse_record_row",
    "part_key",
    "write_summary",
]
