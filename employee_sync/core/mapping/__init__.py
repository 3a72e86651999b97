"""
Field mapping and date coercion for raw CSV cells.
"""

from .dates import is_valid_date, parse_date_with_fallback, supported_date_patterns
from .field_mapper import EMPLOYEE_FIELDS, FieldAccessor, find_accessor, get_field_value, map_row, set_field

__all__ = [
    "EMPLOYEE_FIELDS",
    "FieldAccessor",
    "find_accessor",
    "set_field",
    "map_row",
    "get_field_value",
    "parse_date_with_fallback",
    "is_valid_date",
    "supported_date_patterns",
]
