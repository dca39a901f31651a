"""The all-entries metadata table for PyIceberg tables.

Exposes every manifest entry, live or deleted, recorded in any manifest of any
snapshot of a table, and plans scans over it with concurrent manifest-list
reads.
"""

from .exceptions import ManifestHistoryIOError
from .iterables import CloseableIterable
from .iterables import MaterializedIterable
from .manifests import all_manifest_files
from .metrics import get_metrics_summary
from .metrics import reset_metrics
from .parallel import ParallelIterable
from .scan import AllEntriesScan
from .scan import ScanContext
from .schema import all_entries_schema
from .schema import unified_partition_type
from .table import AllEntriesTable
from .tasks import ManifestReadTask

__all__ = [
    "AllEntriesTable",
    "AllEntriesScan",
    "ScanContext",
    "ManifestReadTask",
    "all_entries_schema",
    "unified_partition_type",
    "all_manifest_files",
    "ParallelIterable",
    "CloseableIterable",
    "MaterializedIterable",
    "ManifestHistoryIOError",
    "get_metrics_summary",
    "reset_metrics",
]
