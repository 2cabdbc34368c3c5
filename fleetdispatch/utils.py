# File: fleetdispatch/utils.py
"""
fleetdispatch - Utility Functions & Helpers
============================================
Value coercion helpers shared by the field validator and the storage /
HTTP layers, plus a per-stage timer for validation runs.

Coercion rules:
- A value is *absent* only when it is missing, ``None`` or a blank string.
  ``0``, ``0.0``, ``"0"`` and ``False`` are present values.
- Numbers: ``bool`` is never a number; ``int``/``float``/``Decimal`` and
  numeric strings are accepted when finite.
- Dates: pydantic's lax ``datetime`` parsing; aware values are shifted to
  UTC and made naive so any two parsed values are comparable.
"""

from __future__ import annotations

import logging
import math
import time
from contextlib import contextmanager
from datetime import date, datetime, time as dt_time, timezone
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("fleetdispatch.utils")

Number = Union[int, float]

_DATETIME_ADAPTER: TypeAdapter[datetime] = TypeAdapter(datetime)


# ---------------------------------------------------------------------------
# Presence
# ---------------------------------------------------------------------------


def is_absent(value: Any) -> bool:
    """True for ``None`` and blank strings only (never for ``0``/``False``)."""
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def parse_number(value: Any) -> Number:
    """
    Parse *value* as a finite number.

    Whole values come back as ``int`` (``"7"``, ``7.0`` → ``7``), anything
    else as ``float``.

    Raises:
        ValueError: if the value is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError("booleans are not numbers")
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        number: float = float(value)
    elif isinstance(value, str):
        text: str = value.strip()
        try:
            return int(text)
        except ValueError:
            number = float(text)
    else:
        raise ValueError(f"unsupported numeric type {type(value).__name__}")

    if not math.isfinite(number):
        raise ValueError("number is not finite")
    if number.is_integer():
        return int(number)
    return number


def is_whole(number: Number) -> bool:
    return isinstance(number, int) or float(number).is_integer()


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def parse_datetime(value: Any) -> datetime:
    """
    Parse *value* into a naive UTC ``datetime``.

    Raises:
        ValueError: if pydantic cannot interpret the value as a datetime.
    """
    if isinstance(value, bool):
        raise ValueError("booleans are not dates")
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, dt_time.min)
    if isinstance(value, str):
        value = value.strip()
    try:
        parsed: datetime = _DATETIME_ADAPTER.validate_python(value)
    except PydanticValidationError as exc:
        raise ValueError(str(exc)) from exc

    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except (OverflowError, ValueError) as exc:
            raise ValueError(f"cannot shift {parsed.isoformat()} to UTC") from exc
    return parsed


def to_text(value: Any) -> str:
    """Stringify a scalar for a string field; rejects containers and bools."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValueError(f"cannot use {type(value).__name__} as text")
    return str(value)


# ---------------------------------------------------------------------------
# Stage timing
# ---------------------------------------------------------------------------


class StageTimer:
    """
    Wall-clock durations for the named stages of one validation run.

    Usage:
        timer = StageTimer("Driver")
        with timer.stage("fields"):
            ...
        timer.summary()   # "fields=0.12ms"

    A stage that raises is still recorded, so a rejected payload reports
    how far it got.
    """

    __slots__ = ("label", "stages")

    def __init__(self, label: str) -> None:
        self.label: str = label
        self.stages: Dict[str, float] = {}

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        started: float = time.perf_counter()
        try:
            yield
        finally:
            self.stages[name] = time.perf_counter() - started

    @property
    def total(self) -> float:
        return sum(self.stages.values())

    def summary(self) -> str:
        return " ".join(f"{name}={seconds * 1000:.2f}ms" for name, seconds in self.stages.items())

    def __repr__(self) -> str:
        return f"<StageTimer {self.label}: {self.total:.4f}s over {len(self.stages)} stage(s)>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "Number",
    "is_absent",
    "parse_number",
    "is_whole",
    "parse_datetime",
    "to_text",
    "StageTimer",
]
