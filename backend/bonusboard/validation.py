from __future__ import annotations

from datetime import date
from typing import Any, Iterable

from bonusboard.time_utils import parse_iso_date


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., overlapping goal periods)."""


def require_fields(payload: dict, fields: Iterable[str]) -> None:
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def to_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
    if parsed is None:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
    return parsed


def to_optional_date(value: Any, field: str) -> date | None:
    if value is None or value == "":
        return None
    return to_date(value, field)


def to_number(value: Any, field: str, *, minimum: float | None = 0.0) -> float:
    """
    Coerce a JSON number or numeric string into a float.

    Booleans are rejected even though they are ints in Python.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum:g}")
    return number


def to_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    allowed = tuple(choices)
    text = str(value).strip().lower() if value is not None else ""
    if text not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(allowed)}")
    return text


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def check_date_range(start: date, end: date, fields: tuple[str, str] = ("week_start", "week_end")) -> None:
    if start > end:
        raise ValidationError(f"{fields[0]} must be on or before {fields[1]}")
