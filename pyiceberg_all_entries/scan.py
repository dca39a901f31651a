"""Scan planning for the all-entries metadata table."""

from __future__ import annotations

import time
from concurrent.futures import Executor
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from typing import TYPE_CHECKING
from typing import Any
from typing import Iterator
from typing import Optional
from typing import Tuple
from typing import Union

import orjson
import pyarrow as pa
from orso.logging import get_logger
from pyiceberg.expressions import AlwaysTrue
from pyiceberg.expressions import And
from pyiceberg.expressions import BooleanExpression
from pyiceberg.expressions import parser
from pyiceberg.expressions.visitors import residual_evaluator_of
from pyiceberg.partitioning import UNPARTITIONED_PARTITION_SPEC
from pyiceberg.schema import Schema
from pyiceberg.typedef import EMPTY_DICT
from pyiceberg.typedef import IcebergBaseModel
from pyiceberg.typedef import Properties
from pyiceberg.utils.concurrent import ExecutorFactory

from .iterables import CloseableIterable
from .manifests import all_manifest_files
from .metrics import get_metrics
from .rows import project_row
from .rows import rows_to_arrow
from .tasks import ManifestReadTask

if TYPE_CHECKING:
    from .table import AllEntriesTable

logger = get_logger()

ALL_ENTRIES = "ALL_ENTRIES"
METRICS_ENABLED = "metrics.enabled"


def _parse_row_filter(expr: Union[str, BooleanExpression]) -> BooleanExpression:
    return parser.parse(expr) if isinstance(expr, str) else expr


def to_json(model: IcebergBaseModel) -> str:
    """Serialize a pyiceberg model to canonical (key-sorted) JSON."""
    return orjson.dumps(
        orjson.loads(model.model_dump_json(exclude_none=True)), option=orjson.OPT_SORT_KEYS
    ).decode("utf-8")


@dataclass(frozen=True)
class ScanContext:
    """Immutable configuration of one scan.

    Refining a scan builds a new context with ``dataclasses.replace``; a
    context is never modified after construction.
    """

    executor: Executor = field(default_factory=ExecutorFactory.get_or_create)
    row_filter: BooleanExpression = field(default_factory=AlwaysTrue)
    ignore_residuals: bool = False
    case_sensitive: bool = True
    include_column_stats: bool = False
    snapshot_id: Optional[int] = None
    selected_fields: Tuple[str, ...] = ("*",)
    options: Properties = field(default_factory=lambda: EMPTY_DICT)

    @property
    def metrics_enabled(self) -> bool:
        return str(self.options.get(METRICS_ENABLED, "true")).lower() != "false"


class AllEntriesScan:
    """Scan over every manifest entry of every snapshot of a table.

    Planning always reads the full snapshot history; ``snapshot_id`` is kept
    in the context for callers but does not narrow the manifests read.
    """

    def __init__(self, table: "AllEntriesTable", context: Optional[ScanContext] = None):
        self.table = table
        self.context = context or ScanContext()

    @property
    def table_type(self) -> str:
        return ALL_ENTRIES

    def update(self, **overrides: Any) -> "AllEntriesScan":
        """Create a new scan with the given context fields replaced."""
        return AllEntriesScan(self.table, replace(self.context, **overrides))

    def filter(self, expr: Union[str, BooleanExpression]) -> "AllEntriesScan":
        return self.update(row_filter=And(self.context.row_filter, _parse_row_filter(expr)))

    def select(self, *field_names: str) -> "AllEntriesScan":
        if "*" in self.context.selected_fields:
            return self.update(selected_fields=field_names)
        return self.update(
            selected_fields=tuple(set(self.context.selected_fields).intersection(field_names))
        )

    def with_case_sensitive(self, case_sensitive: bool = True) -> "AllEntriesScan":
        return self.update(case_sensitive=case_sensitive)

    def ignore_residuals(self, ignore: bool = True) -> "AllEntriesScan":
        return self.update(ignore_residuals=ignore)

    def include_column_stats(self, include: bool = True) -> "AllEntriesScan":
        return self.update(include_column_stats=include)

    def plan_with(self, executor: Executor) -> "AllEntriesScan":
        return self.update(executor=executor)

    def use_snapshot(self, snapshot_id: int) -> "AllEntriesScan":
        if self.table.metadata.snapshot_by_id(snapshot_id) is None:
            raise ValueError(f"Cannot find snapshot with ID {snapshot_id}")
        return self.update(snapshot_id=snapshot_id)

    def schema(self) -> Schema:
        return self.table.schema()

    def projection(self) -> Schema:
        schema = self.schema()
        if "*" in self.context.selected_fields:
            return schema
        return schema.select(*self.context.selected_fields, case_sensitive=self.context.case_sensitive)

    def plan_files(self) -> CloseableIterable[ManifestReadTask]:
        """Plan one task per distinct manifest in the table's history.

        Manifest lists are read eagerly and concurrently; the returned tasks
        are built lazily. A failed read aborts planning before any task is
        produced.
        """
        start_time = time.perf_counter()
        metadata = self.table.metadata
        context = self.context

        manifests = all_manifest_files(
            metadata.snapshots,
            self.table.manifests,
            context.executor,
            metrics=get_metrics() if context.metrics_enabled else None,
        )

        schema = self.schema()
        schema_string = to_json(schema)
        spec_string = to_json(UNPARTITIONED_PARTITION_SPEC)
        row_filter = AlwaysTrue() if context.ignore_residuals else context.row_filter
        residuals = residual_evaluator_of(
            spec=UNPARTITIONED_PARTITION_SPEC,
            expr=row_filter,
            case_sensitive=context.case_sensitive,
            schema=schema,
        )
        specs_by_id = metadata.specs()
        io = self.table.io

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Planned {self.table_type} scan of {self.table.name}: "
            f"{len(manifests)} manifest tasks in {elapsed_ms:.1f}ms"
        )

        return manifests.transform(
            lambda manifest: ManifestReadTask(
                io=io,
                manifest=manifest,
                schema=schema,
                schema_string=schema_string,
                spec_string=spec_string,
                residuals=residuals,
                specs_by_id=specs_by_id,
            )
        )

    def _rows(self) -> Iterator[dict]:
        with self.plan_files() as tasks:
            for task in tasks:
                yield from task.rows(self.context.case_sensitive)

    def to_arrow(self) -> pa.Table:
        """Read all planned tasks into a pyarrow Table of the projected schema."""
        projection = self.projection()
        struct = projection.as_struct()
        return rows_to_arrow((project_row(row, struct) for row in self._rows()), projection)

    def count(self) -> int:
        return sum(1 for _ in self._rows())
