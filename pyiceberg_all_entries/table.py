"""Metadata table exposing every manifest entry of a table's history."""

from __future__ import annotations

from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

from orso.logging import get_logger
from pyiceberg.expressions import BooleanExpression
from pyiceberg.io import FileIO
from pyiceberg.manifest import ManifestFile
from pyiceberg.partitioning import PartitionSpec
from pyiceberg.schema import Schema
from pyiceberg.table import ALWAYS_TRUE
from pyiceberg.table import Table
from pyiceberg.table.metadata import TableMetadata
from pyiceberg.table.snapshots import Snapshot
from pyiceberg.typedef import EMPTY_DICT
from pyiceberg.typedef import Properties

from .scan import ALL_ENTRIES
from .scan import AllEntriesScan
from .scan import ScanContext
from .scan import _parse_row_filter
from .schema import all_entries_schema

logger = get_logger()


class AllEntriesTable:
    """The ``all_entries`` metadata table of an Iceberg table.

    Rows are the manifest entries, for both data and delete files and
    including deleted entries, of every manifest referenced by any snapshot.

    WARNING: this exposes internal details such as files that were deleted
    long ago. Use the table's own scan for live data files.

    Metadata and FileIO are read from the wrapped table on every access, so a
    refreshed table is picked up by the next ``schema()`` or ``scan()`` call.
    """

    metadata_table_type = ALL_ENTRIES

    def __init__(self, table: Table, name: Optional[str] = None):
        self.table = table
        self._name = name

    @property
    def name(self) -> str:
        if self._name is not None:
            return self._name
        return ".".join(self.table.name()) + ".all_entries"

    @property
    def metadata(self) -> TableMetadata:
        return self.table.metadata

    @property
    def io(self) -> FileIO:
        return self.table.io

    def schema(self) -> Schema:
        return all_entries_schema(self.metadata)

    def specs(self) -> Dict[int, PartitionSpec]:
        return self.metadata.specs()

    def snapshots(self) -> List[Snapshot]:
        return list(self.metadata.snapshots)

    def manifests(self, snapshot: Snapshot) -> List[ManifestFile]:
        """Read the manifest list of one snapshot, data and delete manifests alike."""
        return list(snapshot.manifests(self.io))

    def scan(
        self,
        row_filter: Union[str, BooleanExpression] = ALWAYS_TRUE,
        selected_fields: Tuple[str, ...] = ("*",),
        case_sensitive: bool = True,
        options: Properties = EMPTY_DICT,
    ) -> AllEntriesScan:
        """Return a scan over the whole manifest history of the table."""
        logger.debug(f"Creating {self.metadata_table_type} scan of {self.name}")
        return AllEntriesScan(
            self,
            ScanContext(
                row_filter=_parse_row_filter(row_filter),
                selected_fields=selected_fields,
                case_sensitive=case_sensitive,
                options=options,
            ),
        )

    new_scan = scan
