"""Row schema of the all-entries metadata table."""

from __future__ import annotations

from typing import Dict

from pyiceberg.manifest import data_file_with_partition
from pyiceberg.manifest import manifest_entry_schema_with_data_file
from pyiceberg.schema import Schema
from pyiceberg.schema import index_by_id
from pyiceberg.table.metadata import TableMetadata
from pyiceberg.typedef import TableVersion
from pyiceberg.types import NestedField
from pyiceberg.types import StructType

# Field id of data_file.partition in the manifest entry schema
PARTITION_FIELD_ID = 102


def unified_partition_type(metadata: TableMetadata) -> StructType:
    """Merge the partition fields of every spec the table has ever used.

    Partition field ids are stable across specs, so fields are keyed by id;
    when specs disagree the lowest spec id wins. Source columns are resolved
    against all historical schemas, the current schema taking precedence, so
    partitions on dropped columns keep their type. Every field is optional
    because a file written under one spec has no value for the others.
    """
    source_fields: Dict[int, NestedField] = {}
    for schema in metadata.schemas:
        source_fields.update(index_by_id(schema))
    source_fields.update(index_by_id(metadata.schema()))

    partition_fields: Dict[int, NestedField] = {}
    specs = metadata.specs()
    for spec_id in sorted(specs):
        for partition_field in specs[spec_id].fields:
            if partition_field.field_id in partition_fields:
                continue
            source = source_fields[partition_field.source_id]
            partition_fields[partition_field.field_id] = NestedField(
                field_id=partition_field.field_id,
                name=partition_field.name,
                field_type=partition_field.transform.result_type(source.field_type),
                required=False,
            )

    return StructType(*[partition_fields[field_id] for field_id in sorted(partition_fields)])


def manifest_entry_schema(partition_type: StructType, format_version: TableVersion) -> Schema:
    """Manifest entry schema with ``data_file.partition`` typed as ``partition_type``."""
    data_file_type = data_file_with_partition(partition_type, format_version)
    return manifest_entry_schema_with_data_file(format_version, data_file_type)


def _without_field(struct: StructType, field_id: int) -> StructType:
    fields = []
    for field in struct.fields:
        if field.field_id == field_id:
            continue
        if isinstance(field.field_type, StructType):
            field = field.model_copy(
                update={"field_type": _without_field(field.field_type, field_id)}
            )
        fields.append(field)
    return StructType(*fields)


def drop_field(schema: Schema, field_id: int) -> Schema:
    """Return ``schema`` without the (possibly nested) field ``field_id``."""
    return Schema(
        *_without_field(schema.as_struct(), field_id).fields,
        schema_id=schema.schema_id,
    )


def all_entries_schema(metadata: TableMetadata) -> Schema:
    """Resolve the row schema for the all-entries view of a table.

    The partition type is recomputed from ``metadata`` on every call, so the
    schema follows partition spec evolution between calls.
    """
    partition_type = unified_partition_type(metadata)
    schema = manifest_entry_schema(partition_type, metadata.format_version)
    if len(partition_type.fields) < 1:
        # an empty struct is not supported everywhere, drop data_file.partition
        return drop_field(schema, PARTITION_FIELD_ID)
    return schema
