"""
Base domain model helpers for the promotions engine.

Purpose
-------
Provide the shared building blocks of the promotion data model: the
validation error raised by value objects, field validators, and the
datetime/enum conversion helpers every model uses for its dict (JSON)
representation.

Responsibilities
----------------
- Define ``DomainValidationError`` for value-object invariant violations
- Provide validators used from ``__post_init__``
- Provide ISO-8601 datetime parsing/formatting and timezone normalization

Non-Responsibilities
--------------------
- Persistence (handled by ``promo_engine.storage``)
- Promotion decision logic (handled by ``promo_engine.modules.engine``)

Design Notes
------------
- Models are dataclasses. Inputs (events, promotion definitions, results)
  are frozen; durable player state is mutable and owned by the state updater.
- Every datetime handled by the models is timezone-aware. Naive values read
  from external data are assumed to be UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

E = TypeVar("E", bound=Enum)


# ============================================================================
# DOMAIN MODEL VALIDATION
# ============================================================================


class DomainValidationError(Exception):
    """
    Exception raised when domain model validation fails.

    Raised from value-object constructors and ``from_dict`` parsers; service
    code converts it into a ``ValidationError`` at its boundary.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_non_negative(value: float, field_name: str) -> None:
    """
    Validate that a value is non-negative.

    Raises
    ------
    DomainValidationError
        If value is negative
    """
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )


def validate_not_empty(value: str, field_name: str) -> None:
    """
    Validate that a string is not empty.

    Raises
    ------
    DomainValidationError
        If value is empty or whitespace-only
    """
    if not value or not str(value).strip():
        raise DomainValidationError(
            f"{field_name} cannot be empty",
            field=field_name,
        )


def validate_aware(value: datetime, field_name: str) -> None:
    """Validate that a datetime carries timezone information."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise DomainValidationError(
            f"{field_name} must be timezone-aware",
            field=field_name,
        )


# ============================================================================
# CONVERSION HELPERS
# ============================================================================


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware values are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_datetime(value: Any, field_name: str) -> datetime:
    """
    Parse an ISO-8601 string (or pass through a datetime) into an aware value.

    A trailing ``Z`` is accepted as UTC.

    Raises
    ------
    DomainValidationError
        If the value is missing or not a valid timestamp
    """
    if isinstance(value, datetime):
        return ensure_aware(value)
    if not isinstance(value, str) or not value:
        raise DomainValidationError(
            f"{field_name} must be an ISO-8601 timestamp, got {value!r}",
            field=field_name,
        )
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise DomainValidationError(
            f"{field_name} must be an ISO-8601 timestamp, got {value!r}",
            field=field_name,
        ) from e
    return ensure_aware(parsed)


def parse_optional_datetime(value: Any, field_name: str) -> Optional[datetime]:
    """Like ``parse_datetime`` but ``None`` stays ``None``."""
    if value is None:
        return None
    return parse_datetime(value, field_name)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime to ISO-8601, keeping ``None`` as ``None``."""
    if value is None:
        return None
    return ensure_aware(value).isoformat()


def parse_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    """
    Convert a raw value into a member of ``enum_cls``.

    Raises
    ------
    DomainValidationError
        If the value is not one of the enum's values
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(str(m.value) for m in enum_cls)
        raise DomainValidationError(
            f"{field_name} must be one of [{allowed}], got {value!r}",
            field=field_name,
        ) from e


def optional_float(value: Any, field_name: str) -> Optional[float]:
    """Convert a raw number to float, keeping ``None``."""
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise DomainValidationError(
            f"{field_name} must be a number, got {value!r}",
            field=field_name,
        ) from e


def optional_int(value: Any, field_name: str) -> Optional[int]:
    """Convert a raw number to int, keeping ``None``."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise DomainValidationError(
            f"{field_name} must be an integer, got {value!r}",
            field=field_name,
        ) from e


def require(data: Dict[str, Any], key: str) -> Any:
    """Fetch a required key from a raw mapping."""
    if key not in data or data[key] is None:
        raise DomainValidationError(f"{key} is required", field=key)
    return data[key]


def parse_bool(value: Any, field_name: str, default: bool = False) -> bool:
    """Accept only real booleans; ``None`` means ``default``."""
    if value is None:
        return default
    if not isinstance(value, bool):
        raise DomainValidationError(
            f"{field_name} must be a boolean, got {value!r}",
            field=field_name,
        )
    return value
