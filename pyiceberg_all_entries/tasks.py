"""Scan task reading one manifest of the table's history."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Dict
from typing import Iterator
from typing import List

from pyiceberg.expressions import AlwaysTrue
from pyiceberg.expressions import BooleanExpression
from pyiceberg.expressions.visitors import ResidualEvaluator
from pyiceberg.expressions.visitors import expression_evaluator
from pyiceberg.io import FileIO
from pyiceberg.manifest import ManifestEntry
from pyiceberg.manifest import ManifestFile
from pyiceberg.partitioning import PartitionSpec
from pyiceberg.schema import Schema
from pyiceberg.table import ScanTask
from pyiceberg.typedef import Record

from .rows import entry_to_row
from .rows import row_to_record


@dataclass(frozen=True)
class ManifestReadTask(ScanTask):
    """Read every entry, live or deleted, of a single manifest.

    ``schema_string`` and ``spec_string`` are the JSON forms of ``schema`` and
    of the unpartitioned spec; they are computed once per planning call and
    shared by all of its tasks.
    """

    io: FileIO
    manifest: ManifestFile
    schema: Schema
    schema_string: str
    spec_string: str
    residuals: ResidualEvaluator
    specs_by_id: Dict[int, PartitionSpec]

    def residual(self) -> BooleanExpression:
        """The filter still to apply to each row of this manifest."""
        return self.residuals.residual_for(Record())

    def entries(self) -> List[ManifestEntry]:
        return self.manifest.fetch_manifest_entry(io=self.io, discard_deleted=False)

    def rows(self, case_sensitive: bool = True) -> Iterator[Dict[str, Any]]:
        """Yield the manifest's entries as rows that pass the residual filter."""
        spec = self.specs_by_id[self.manifest.partition_spec_id]
        residual = self.residual()
        matches = None
        if residual != AlwaysTrue():
            matches = expression_evaluator(self.schema, residual, case_sensitive)

        struct = self.schema.as_struct()
        for entry in self.entries():
            row = entry_to_row(entry, self.schema, spec)
            if matches is None or matches(row_to_record(row, struct)):
                yield row
