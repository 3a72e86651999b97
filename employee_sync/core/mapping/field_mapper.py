"""
Field mapping and type coercion for employee records.

Raw CSV cells arrive as strings. Each logical field has an accessor in
EMPLOYEE_FIELDS that knows the field's kind, how to read it and how to
produce a new record with it set. Records are immutable, so setters return
a copy.
"""

import re
from datetime import date, datetime
from typing import Any, Callable, NamedTuple, Optional

from employee_sync.core.mapping.dates import format_iso_date, parse_date_with_fallback
from employee_sync.core.models.employee import Employee
from employee_sync.observability import metrics
from employee_sync.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_DATE_FORMAT = "yyyy-MM-dd"

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


class FieldAccessor(NamedTuple):
    """Typed access to one Employee field. setter is None for system-assigned fields."""

    name: str
    kind: str  # string | integer | date | datetime
    getter: Callable[[Employee], Any]
    setter: Optional[Callable[[Employee, Any], Employee]]


def _setter(attr: str) -> Callable[[Employee, Any], Employee]:
    def set_value(record: Employee, value: Any) -> Employee:
        return record.model_copy(update={attr: value})
    return set_value


def _getter(attr: str) -> Callable[[Employee], Any]:
    def get_value(record: Employee) -> Any:
        return getattr(record, attr)
    return get_value


EMPLOYEE_FIELDS: dict[str, FieldAccessor] = {
    "id": FieldAccessor("id", "integer", _getter("id"), _setter("id")),
    "name": FieldAccessor("name", "string", _getter("name"), _setter("name")),
    "age": FieldAccessor("age", "integer", _getter("age"), _setter("age")),
    "status": FieldAccessor("status", "string", _getter("status"), _setter("status")),
    "dob": FieldAccessor("dob", "date", _getter("dob"), _setter("dob")),
    "batch_id": FieldAccessor("batch_id", "string", _getter("batch_id"), _setter("batch_id")),
    "transaction_id": FieldAccessor("transaction_id", "integer", _getter("transaction_id"), None),
    "created_date": FieldAccessor("created_date", "datetime", _getter("created_date"), None),
}

# "batchId", "BATCH_ID" and "batch_id" all resolve to the same accessor
_LOOKUP = {name.replace("_", ""): accessor for name, accessor in EMPLOYEE_FIELDS.items()}


def find_accessor(field_name: str | None) -> FieldAccessor | None:
    if not field_name:
        return None
    return _LOOKUP.get(field_name.strip().lower().replace("_", ""))


def coerce_value(
    accessor: FieldAccessor,
    raw_value: str,
    preferred_date_format: str | None = None,
) -> Any:
    """
    Convert a trimmed cell value to the accessor's kind.

    Raises:
        ValueError: If the value cannot be converted
    """
    value = raw_value.strip()

    if accessor.kind == "string":
        return value
    if accessor.kind == "integer":
        if not _INTEGER_RE.fullmatch(value):
            raise ValueError(f"invalid integer '{value}'")
        return int(value)
    if accessor.kind == "date":
        parsed = parse_date_with_fallback(value, preferred_date_format or DEFAULT_DATE_FORMAT)
        if parsed is None:
            raise ValueError(f"no supported date pattern matches '{value}'")
        return parsed
    if accessor.kind == "datetime":
        return datetime.fromisoformat(value)

    raise ValueError(f"unsupported field kind '{accessor.kind}'")


def set_field(
    record: Employee,
    field_name: str,
    raw_value: str | None,
    preferred_date_format: str | None = None,
    batch_id: str | None = None,
) -> Employee:
    """
    Return a copy of record with field_name set from a raw cell value.

    A blank value, an unknown or read-only field, or a value that cannot be
    coerced leaves the record unchanged. Coercion problems are logged as
    warnings and never raised.

    Args:
        record: Record to copy
        field_name: Logical field name (case-insensitive, "batchId" accepted)
        raw_value: Untyped cell value
        preferred_date_format: Pattern tried first for date fields
        batch_id: Used for log context only
    """
    if raw_value is None or not str(raw_value).strip():
        return record

    accessor = find_accessor(field_name)
    if accessor is None:
        logger.warning(
            f"Field '{field_name}' not found on Employee",
            extra={"field_name": field_name, "batch_id": batch_id},
        )
        return record

    if accessor.setter is None:
        logger.warning(
            f"Field '{accessor.name}' is system-assigned and cannot be mapped",
            extra={"field_name": accessor.name, "batch_id": batch_id},
        )
        return record

    try:
        value = coerce_value(accessor, str(raw_value), preferred_date_format)
    except ValueError as e:
        metrics.record_coercion_failure(accessor.name)
        logger.warning(
            f"Invalid {accessor.kind} value '{raw_value}' for field '{accessor.name}': {e}",
            extra={"field_name": accessor.name, "batch_id": batch_id},
        )
        return record

    return accessor.setter(record, value)


def map_row(
    row: dict[str, Any],
    column_mapping: dict[str, str],
    preferred_date_format: str | None = None,
    batch_id: str | None = None,
) -> Employee:
    """
    Build an Employee from one CSV row using a column -> field mapping.

    Columns missing from the mapping are ignored; mapping entries whose
    column is absent from the row are skipped.
    """
    record = Employee()
    for column, field_name in column_mapping.items():
        if column not in row:
            continue
        cell = row[column]
        record = set_field(
            record,
            field_name,
            None if cell is None else str(cell),
            preferred_date_format,
            batch_id,
        )
    return record


def get_field_value(record: Employee, field_name: str) -> str | None:
    """Render a field as text for export. Dates use ISO form."""
    accessor = find_accessor(field_name)
    if accessor is None:
        logger.warning(f"Unknown field name: {field_name}", extra={"field_name": field_name})
        return None

    value = accessor.getter(record)
    if value is None:
        return None
    if isinstance(value, (date, datetime)) and accessor.kind == "date":
        return format_iso_date(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
