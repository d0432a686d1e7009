from __future__ import annotations

from typing import Any, Iterable, Mapping


class ValidationError(ValueError):
    """Raised when the incoming payload or call arguments are invalid."""


def require_fields(payload: Mapping[str, Any], *fields: str) -> list[str]:
    """Stripped string values of `fields`, in order; blank counts as missing."""
    values = [str(payload.get(field) or "").strip() for field in fields]
    missing = [field for field, value in zip(fields, values) if not value]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return values


def require_choice(name: str, value: Any, choices: Iterable[str]) -> str:
    choices = tuple(choices)
    if value not in choices:
        raise ValidationError(f"{name} must be one of: {', '.join(choices)}")
    return value


def require_non_negative_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer") from None
    if number < 0:
        raise ValidationError(f"{name} must be >= 0")
    return number


def require_fraction(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number") from None
    if not 0.0 <= number <= 1.0:
        raise ValidationError(f"{name} must be between 0 and 1")
    return number
