"""Field rules shared by the request models and handlers.

Dates fall back to "now" when they cannot be parsed, and ``limit``
follows ``parseInt`` semantics.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dateutil import parser as date_parser
from pydantic import ValidationError

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class FieldValidationError(Exception):
    """Raised when one or more fields fail validation.

    ``errors`` maps each failing field to its message, in the order the
    fields were checked.
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """Message of the first failing field."""
        return next(iter(self.errors.values()))

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "FieldValidationError":
        errors: Dict[str, str] = {}
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"]) or "body"
            errors.setdefault(field, error["msg"])
        return cls(errors)


def is_present(value: Any) -> bool:
    """Return True if a required field was supplied with a truthy value."""
    return bool(value)


def truncate_to_millis(dt: datetime) -> datetime:
    """Drop sub-millisecond precision, which the stores do not keep."""
    return dt.replace(microsecond=dt.microsecond // 1000 * 1000)


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a calendar date or timestamp into an aware UTC datetime.

    Strings may be ISO 8601 (``2024-01-15``, ``2024-01-15T10:00:00Z``) or
    common calendar forms (``2024/01/15``, ``Jan 15 2024``,
    ``Mon, 15 Jan 2024 10:00:00 GMT``). Values without a zone are UTC.
    Numbers are epoch milliseconds. Returns None for anything that cannot
    be parsed or falls outside the representable range.
    """
    if value is None or isinstance(value, bool):
        return None

    try:
        if isinstance(value, (int, float)):
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        elif isinstance(value, str) and value.strip():
            dt = date_parser.parse(value.strip())
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            dt = dt.astimezone(timezone.utc)
        else:
            return None
    except (ValueError, OverflowError, OSError):
        return None

    return truncate_to_millis(dt)


def resolve_date(value: Any, now: Optional[datetime] = None) -> datetime:
    """Parse ``value``, falling back to the current time when it is invalid."""
    parsed = parse_date(value)
    if parsed is not None:
        return parsed
    return truncate_to_millis(now or datetime.now(timezone.utc))


def parse_limit(value: Optional[str]) -> Optional[int]:
    """Parse a log limit the way ``parseInt`` would.

    Leading digits are used and trailing junk ignored. Zero and
    non-numeric values mean no limit; negative values cap at their
    absolute value, matching document-store limit semantics.
    """
    if not value:
        return None

    match = _LEADING_INT.match(value)
    if not match:
        return None

    limit = int(match.group(1))
    if limit == 0:
        return None
    return abs(limit)
