"""Shared fixtures: real pyiceberg metadata with in-memory manifest lists."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from dataclasses import field
from types import SimpleNamespace
from typing import Any
from typing import Dict
from typing import List
from typing import Sequence
from typing import Tuple

import pytest
from pyiceberg.io.pyarrow import PyArrowFileIO
from pyiceberg.manifest import DataFileContent
from pyiceberg.manifest import FileFormat
from pyiceberg.manifest import ManifestEntryStatus
from pyiceberg.partitioning import UNPARTITIONED_PARTITION_SPEC
from pyiceberg.partitioning import PartitionField
from pyiceberg.partitioning import PartitionSpec
from pyiceberg.schema import Schema
from pyiceberg.table.metadata import TableMetadata
from pyiceberg.table.metadata import new_table_metadata
from pyiceberg.table.snapshots import Operation
from pyiceberg.table.snapshots import Snapshot
from pyiceberg.table.snapshots import Summary
from pyiceberg.table.sorting import UNSORTED_SORT_ORDER
from pyiceberg.transforms import BucketTransform
from pyiceberg.transforms import IdentityTransform
from pyiceberg.typedef import Record
from pyiceberg.types import DoubleType
from pyiceberg.types import LongType
from pyiceberg.types import NestedField
from pyiceberg.types import StringType

from pyiceberg_all_entries import AllEntriesTable
from pyiceberg_all_entries import reset_metrics

LOCATION = "s3://warehouse/db/events"

TABLE_SCHEMA = Schema(
    NestedField(1, "id", LongType(), required=False),
    NestedField(2, "category", StringType(), required=False),
    NestedField(3, "amount", DoubleType(), required=False),
)

CATEGORY_SPEC = PartitionSpec(
    PartitionField(source_id=2, field_id=1000, transform=IdentityTransform(), name="category"),
    spec_id=0,
)

ID_BUCKET_SPEC = PartitionSpec(
    PartitionField(source_id=1, field_id=1001, transform=BucketTransform(4), name="id_bucket"),
    spec_id=1,
)


def make_metadata(
    spec: PartitionSpec = UNPARTITIONED_PARTITION_SPEC, snapshot_ids: Sequence[int] = ()
) -> TableMetadata:
    metadata = new_table_metadata(
        schema=TABLE_SCHEMA,
        partition_spec=spec,
        sort_order=UNSORTED_SORT_ORDER,
        location=LOCATION,
    )
    return with_snapshots(metadata, snapshot_ids)


def with_snapshots(metadata: TableMetadata, snapshot_ids: Sequence[int]) -> TableMetadata:
    snapshots = []
    parent_id = None
    for sequence_number, snapshot_id in enumerate(snapshot_ids, start=1):
        snapshots.append(
            Snapshot(
                snapshot_id=snapshot_id,
                parent_snapshot_id=parent_id,
                sequence_number=sequence_number,
                timestamp_ms=1_700_000_000_000 + sequence_number,
                manifest_list=f"{LOCATION}/metadata/snap-{snapshot_id}.avro",
                summary=Summary(Operation.APPEND),
                schema_id=0,
            )
        )
        parent_id = snapshot_id
    return metadata.model_copy(
        update={
            "snapshots": snapshots,
            "current_snapshot_id": parent_id,
            "last_sequence_number": len(snapshots),
        }
    )


def with_spec(metadata: TableMetadata, spec: PartitionSpec) -> TableMetadata:
    """Evolve the table to ``spec``, keeping the older specs in its history."""
    specs = [*metadata.partition_specs, spec]
    last_partition_id = max(
        [field.field_id for s in specs for field in s.fields] + [metadata.last_partition_id or 999]
    )
    return metadata.model_copy(
        update={
            "partition_specs": specs,
            "default_spec_id": spec.spec_id,
            "last_partition_id": last_partition_id,
        }
    )


def make_entry(
    file_path: str,
    status: ManifestEntryStatus = ManifestEntryStatus.ADDED,
    partition: Record = None,
    snapshot_id: int = 1,
    **data_file: Any,
) -> SimpleNamespace:
    return SimpleNamespace(
        status=status,
        snapshot_id=snapshot_id,
        sequence_number=1,
        file_sequence_number=1,
        data_file=SimpleNamespace(
            content=DataFileContent.DATA,
            file_path=file_path,
            file_format=FileFormat.PARQUET,
            partition=partition if partition is not None else Record(),
            record_count=data_file.pop("record_count", 10),
            file_size_in_bytes=data_file.pop("file_size_in_bytes", 1024),
            **data_file,
        ),
    )


@dataclass
class FakeManifest:
    """Stands in for a ManifestFile; identity is the manifest path."""

    manifest_path: str
    partition_spec_id: int = 0
    entries: Tuple[Any, ...] = ()

    def fetch_manifest_entry(self, io: Any, discard_deleted: bool = True) -> List[Any]:
        return [
            entry
            for entry in self.entries
            if not discard_deleted or entry.status != ManifestEntryStatus.DELETED
        ]


def manifest(name: str, *entries: Any, spec_id: int = 0) -> FakeManifest:
    return FakeManifest(f"{LOCATION}/metadata/{name}.avro", spec_id, tuple(entries))


@dataclass
class FakeTable:
    metadata: TableMetadata
    io: Any = field(default_factory=PyArrowFileIO)
    identifier: Tuple[str, ...] = ("db", "events")

    def name(self) -> Tuple[str, ...]:
        return self.identifier


class InMemoryAllEntriesTable(AllEntriesTable):
    """Serves manifest lists from a dict keyed by snapshot id."""

    def __init__(
        self,
        table: FakeTable,
        manifest_lists: Dict[int, Sequence[FakeManifest]],
        failures: Dict[int, Exception] = None,
    ):
        super().__init__(table)
        self.manifest_lists = manifest_lists
        self.failures = failures or {}
        self.reads: List[int] = []
        self._lock = threading.Lock()

    def manifests(self, snapshot):
        with self._lock:
            self.reads.append(snapshot.snapshot_id)
        if snapshot.snapshot_id in self.failures:
            raise self.failures[snapshot.snapshot_id]
        return list(self.manifest_lists[snapshot.snapshot_id])


def make_table(
    manifest_lists: Dict[int, Sequence[FakeManifest]],
    spec: PartitionSpec = UNPARTITIONED_PARTITION_SPEC,
    failures: Dict[int, Exception] = None,
) -> InMemoryAllEntriesTable:
    metadata = make_metadata(spec, list(manifest_lists))
    return InMemoryAllEntriesTable(FakeTable(metadata), manifest_lists, failures)


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture(autouse=True)
def clean_metrics():
    reset_metrics()
    yield
    reset_metrics()
