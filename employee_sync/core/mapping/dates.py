"""
Date parsing with a preferred format and an ordered list of fallbacks.

Patterns are written with the tokens used in deployment configuration
(``yyyy``, ``MM``, ``d`` ...) and translated to strptime directives.
Parsing is strict: "2023-02-30" is rejected rather than rolled over. A
trailing time of day ("1967-05-12 00:00:00") is ignored when the pattern
itself has no time fields.
"""

import re
from datetime import date, datetime

import pandas as pd

from employee_sync.observability.logger import get_logger

logger = get_logger(__name__)

# Tried in order; first pattern that parses wins
COMMON_DATE_PATTERNS = (
    "yyyy-MM-dd",
    "MM/dd/yyyy",
    "M/d/yyyy",
    "dd/MM/yyyy",
    "d/M/yyyy",
    "yyyy/MM/dd",
    "yyyy/M/d",
    "dd-MM-yyyy",
    "d-M-yyyy",
    "MM-dd-yyyy",
    "M-d-yyyy",
)

ISO_DATE_PATTERN = "yyyy-MM-dd"

TOKEN_DIRECTIVES = {
    "yyyy": "%Y",
    "yy": "%y",
    "MMMM": "%B",
    "MMM": "%b",
    "MM": "%m",
    "M": "%m",
    "dd": "%d",
    "d": "%d",
    "HH": "%H",
    "H": "%H",
    "mm": "%M",
    "m": "%M",
    "ss": "%S",
    "s": "%S",
}

_TOKEN_RE = re.compile(r"([A-Za-z])\1*")

_TIME_SUFFIX_RE = re.compile(
    r"[ T]\d{1,2}:\d{2}(?::\d{2}(?:[.,]\d+)?)?\s*(?:[AaPp][Mm])?\s*(?:Z|[+-]\d{2}:?\d{2})?$"
)


def to_strptime(pattern: str) -> str:
    """
    Translate a date pattern such as ``dd/MM/yyyy`` into ``%d/%m/%Y``.

    Raises:
        ValueError: If the pattern contains an unsupported letter token
    """
    def replace(match: re.Match) -> str:
        token = match.group(0)
        directive = TOKEN_DIRECTIVES.get(token)
        if directive is None:
            raise ValueError(f"Unsupported date pattern token '{token}' in '{pattern}'")
        return directive

    return _TOKEN_RE.sub(replace, pattern.replace("%", "%%"))


def parse_date(value: str | None, pattern: str | None) -> date | None:
    """
    Parse a value with exactly one pattern.

    Returns None for blank input, a blank or invalid pattern, or a value
    that does not match.
    """
    if value is None or not value.strip() or pattern is None or not pattern.strip():
        return None

    try:
        directive = to_strptime(pattern.strip())
    except ValueError as e:
        logger.warning(f"Invalid date pattern: {e}")
        return None

    text = value.strip()
    parsed = _to_date(text, directive)
    if parsed is None and "%H" not in directive:
        date_part = _TIME_SUFFIX_RE.sub("", text)
        if date_part != text:
            parsed = _to_date(date_part, directive)
    return parsed


def _to_date(text: str, directive: str) -> date | None:
    parsed = pd.to_datetime(text, format=directive, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def parse_date_with_fallback(value: str | None, preferred_pattern: str | None = None) -> date | None:
    """
    Parse a value trying the preferred pattern first, then every pattern in
    COMMON_DATE_PATTERNS in order.

    Returns:
        The parsed date, or None when nothing matches
    """
    if value is None or not value.strip():
        return None

    if preferred_pattern and preferred_pattern.strip():
        parsed = parse_date(value, preferred_pattern)
        if parsed is not None:
            return parsed
        logger.debug(
            f"Preferred date pattern '{preferred_pattern}' did not match '{value.strip()}', trying fallbacks"
        )

    for pattern in COMMON_DATE_PATTERNS:
        parsed = parse_date(value, pattern)
        if parsed is not None:
            return parsed

    return None


def is_valid_date(value: str | None, pattern: str | None = None) -> bool:
    """Check a value against one pattern, or against any common pattern when none is given."""
    if pattern is None:
        return parse_date_with_fallback(value) is not None
    return parse_date(value, pattern) is not None


def supported_date_patterns() -> list[str]:
    return list(COMMON_DATE_PATTERNS)


def format_iso_date(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()
