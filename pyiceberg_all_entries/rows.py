"""Conversion of manifest entries into rows of the all-entries view."""

from __future__ import annotations

from enum import Enum
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional

import pyarrow as pa
from pyiceberg.io.pyarrow import schema_to_pyarrow
from pyiceberg.partitioning import PartitionSpec
from pyiceberg.schema import Schema
from pyiceberg.typedef import Record
from pyiceberg.types import IcebergType
from pyiceberg.types import MapType
from pyiceberg.types import StructType

from .schema import PARTITION_FIELD_ID


def _plain(value: Any) -> Any:
    """Unwrap pyiceberg enums (status, content, file format) to their values."""
    if isinstance(value, Enum):
        return value.value
    return value


def partition_to_dict(
    partition: Optional[Record], spec: PartitionSpec, partition_type: StructType
) -> Dict[str, Any]:
    """Re-key a file's partition tuple onto the table's unified partition type.

    ``partition`` is positional in the order of ``spec.fields``. Fields of the
    unified type that ``spec`` does not define are ``None``.
    """
    values_by_id: Dict[int, Any] = {}
    if partition is not None:
        for pos, partition_field in enumerate(spec.fields):
            values_by_id[partition_field.field_id] = partition[pos]
    return {field.name: values_by_id.get(field.field_id) for field in partition_type.fields}


def _struct_to_dict(obj: Any, struct: StructType, spec: PartitionSpec) -> Dict[str, Any]:
    row: Dict[str, Any] = {}
    for field in struct.fields:
        value = getattr(obj, field.name, None)
        if field.field_id == PARTITION_FIELD_ID:
            row[field.name] = partition_to_dict(value, spec, field.field_type)
        elif isinstance(field.field_type, StructType) and value is not None:
            row[field.name] = _struct_to_dict(value, field.field_type, spec)
        else:
            row[field.name] = _plain(value)
    return row


def entry_to_row(entry: Any, schema: Schema, spec: PartitionSpec) -> Dict[str, Any]:
    """Convert a ManifestEntry to a dict shaped like ``schema``.

    Args:
        entry: The manifest entry, live or deleted
        schema: Row schema of the all-entries view
        spec: Partition spec the entry's manifest was written with

    Returns:
        Nested dict keyed by field name; absent attributes become None
    """
    return _struct_to_dict(entry, schema.as_struct(), spec)


def row_to_record(row: Dict[str, Any], struct: StructType) -> Record:
    """Build a positional Record from a row so bound expressions can evaluate it."""
    values = []
    for field in struct.fields:
        value = row.get(field.name)
        if isinstance(field.field_type, StructType) and isinstance(value, dict):
            value = row_to_record(value, field.field_type)
        values.append(value)
    return Record(*values)


def project_row(row: Dict[str, Any], struct: StructType) -> Dict[str, Any]:
    """Keep only the fields of ``struct`` in ``row``."""
    projected: Dict[str, Any] = {}
    for field in struct.fields:
        value = row.get(field.name)
        if isinstance(field.field_type, StructType) and isinstance(value, dict):
            value = project_row(value, field.field_type)
        projected[field.name] = value
    return projected


def _to_arrow_value(value: Any, field_type: IcebergType) -> Any:
    if value is None:
        return None
    if isinstance(field_type, StructType):
        return {
            field.name: _to_arrow_value(value.get(field.name), field.field_type)
            for field in field_type.fields
        }
    if isinstance(field_type, MapType):
        # pyarrow builds map arrays from key/value pairs
        return list(value.items())
    return value


def rows_to_arrow(rows: Iterable[Dict[str, Any]], schema: Schema) -> pa.Table:
    """Collect rows shaped like ``schema`` into a pyarrow Table."""
    struct = schema.as_struct()
    converted: List[Dict[str, Any]] = [_to_arrow_value(row, struct) for row in rows]
    return pa.Table.from_pylist(converted, schema=schema_to_pyarrow(schema))
