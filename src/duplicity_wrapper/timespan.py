"""Signed millisecond durations used to compute time-relative arguments."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Final

from duplicity_wrapper.errors import ConfigurationError

MILLIS_PER_SECOND: Final[int] = 1000
MILLIS_PER_MINUTE: Final[int] = MILLIS_PER_SECOND * 60
MILLIS_PER_HOUR: Final[int] = MILLIS_PER_MINUTE * 60
MILLIS_PER_DAY: Final[int] = MILLIS_PER_HOUR * 24
MILLIS_PER_WEEK: Final[int] = MILLIS_PER_DAY * 7
MILLIS_PER_MONTH: Final[int] = MILLIS_PER_DAY * 30
MILLIS_PER_YEAR: Final[int] = MILLIS_PER_DAY * 365

MAX_SAFE_INTEGER: Final[int] = 2**53 - 1

# Unit letters as documented in the duplicity manual (3Y2W, 1h10m, ...).
_SPAN_UNITS: Final[dict[str, int]] = {
    "s": MILLIS_PER_SECOND,
    "m": MILLIS_PER_MINUTE,
    "h": MILLIS_PER_HOUR,
    "D": MILLIS_PER_DAY,
    "W": MILLIS_PER_WEEK,
    "M": MILLIS_PER_MONTH,
    "Y": MILLIS_PER_YEAR,
}
_SPAN_TOKEN = re.compile(r"(\d+)([smhDWMY])")
_SPAN_GRAMMAR = re.compile(r"(?:\d+[smhDWMY])*")


@dataclass(frozen=True, order=True)
class TimeSpan:
    """Immutable signed duration with millisecond resolution.

    Attributes:
        total_milliseconds: The signed number of milliseconds in the span.
    """

    total_milliseconds: int

    def __post_init__(self) -> None:
        if isinstance(self.total_milliseconds, bool) or not isinstance(
            self.total_milliseconds, int
        ):
            raise ConfigurationError("TimeSpan requires an integer millisecond count.")
        if abs(self.total_milliseconds) > MAX_SAFE_INTEGER:
            raise ConfigurationError("value is outside valid range")

    @classmethod
    def zero(cls) -> TimeSpan:
        return cls(0)

    @classmethod
    def max_value(cls) -> TimeSpan:
        return cls(MAX_SAFE_INTEGER)

    @classmethod
    def min_value(cls) -> TimeSpan:
        return cls(-MAX_SAFE_INTEGER)

    @classmethod
    def from_days(cls, value: float) -> TimeSpan:
        return cls._interval(value, MILLIS_PER_DAY)

    @classmethod
    def from_hours(cls, value: float) -> TimeSpan:
        return cls._interval(value, MILLIS_PER_HOUR)

    @classmethod
    def from_minutes(cls, value: float) -> TimeSpan:
        return cls._interval(value, MILLIS_PER_MINUTE)

    @classmethod
    def from_seconds(cls, value: float) -> TimeSpan:
        return cls._interval(value, MILLIS_PER_SECOND)

    @classmethod
    def from_milliseconds(cls, value: float) -> TimeSpan:
        return cls._interval(value, 1)

    @classmethod
    def from_time(cls, *components: float) -> TimeSpan:
        """Assemble a span from time components without normalising them.

        Accepts ``(hours, minutes, seconds)``, ``(days, hours, minutes, seconds)``
        or ``(days, hours, minutes, seconds, milliseconds)``. ``minutes=130`` is
        legal and simply contributes 130 minutes.

        Raises:
            ConfigurationError: If the number of components is not 3, 4 or 5.
        """

        if len(components) == 3:
            days, (hours, minutes, seconds), millis = 0, components, 0
        elif len(components) == 4:
            (days, hours, minutes, seconds), millis = components, 0
        elif len(components) == 5:
            days, hours, minutes, seconds, millis = components
        else:
            raise ConfigurationError(
                f"from_time expects 3, 4 or 5 components, got {len(components)}."
            )
        total = (
            days * MILLIS_PER_DAY
            + hours * MILLIS_PER_HOUR
            + minutes * MILLIS_PER_MINUTE
            + seconds * MILLIS_PER_SECOND
            + millis
        )
        return cls(_round_half_away(total))

    @classmethod
    def parse(cls, value: str) -> TimeSpan:
        """Parse a duplicity-style compact duration such as ``2W1D1h130m``.

        Raises:
            ConfigurationError: If the text contains anything but well-formed tokens.
        """

        text = value.strip()
        if _SPAN_GRAMMAR.fullmatch(text) is None:
            raise ConfigurationError(f"Time string {value!r} is invalid")
        total = 0
        for match in _SPAN_TOKEN.finditer(text):
            total += int(match.group(1)) * _SPAN_UNITS[match.group(2)]
        return cls(total)

    @classmethod
    def from_timedelta(cls, value: timedelta) -> TimeSpan:
        return cls(value // timedelta(milliseconds=1))

    @classmethod
    def _interval(cls, value: float | None, scale: int) -> TimeSpan:
        if value is None:
            raise ConfigurationError("value must be provided")
        return cls(_round_half_away(value * scale))

    @property
    def days(self) -> int:
        return _component(self.total_milliseconds, MILLIS_PER_DAY, None)

    @property
    def hours(self) -> int:
        return _component(self.total_milliseconds, MILLIS_PER_HOUR, 24)

    @property
    def minutes(self) -> int:
        return _component(self.total_milliseconds, MILLIS_PER_MINUTE, 60)

    @property
    def seconds(self) -> int:
        return _component(self.total_milliseconds, MILLIS_PER_SECOND, 60)

    @property
    def milliseconds(self) -> int:
        return _component(self.total_milliseconds, 1, 1000)

    @property
    def total_days(self) -> float:
        return self.total_milliseconds / MILLIS_PER_DAY

    @property
    def total_hours(self) -> float:
        return self.total_milliseconds / MILLIS_PER_HOUR

    @property
    def total_minutes(self) -> float:
        return self.total_milliseconds / MILLIS_PER_MINUTE

    @property
    def total_seconds(self) -> float:
        return self.total_milliseconds / MILLIS_PER_SECOND

    def add(self, other: TimeSpan) -> TimeSpan:
        return TimeSpan(self.total_milliseconds + other.total_milliseconds)

    def subtract(self, other: TimeSpan) -> TimeSpan:
        return TimeSpan(self.total_milliseconds - other.total_milliseconds)

    def __add__(self, other: TimeSpan) -> TimeSpan:
        if not isinstance(other, TimeSpan):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: TimeSpan) -> TimeSpan:
        if not isinstance(other, TimeSpan):
            return NotImplemented
        return self.subtract(other)

    def __neg__(self) -> TimeSpan:
        return TimeSpan(-self.total_milliseconds)

    def to_timedelta(self) -> timedelta:
        return timedelta(milliseconds=self.total_milliseconds)

    def add_to_date(self, value: datetime) -> datetime:
        """Return the instant this span after ``value``."""

        return value + self.to_timedelta()

    def subtract_from_date(self, value: datetime) -> datetime:
        """Return the instant this span before ``value``."""

        return value - self.to_timedelta()


def _round_half_away(value: float) -> int:
    if isinstance(value, int):
        return value
    if not math.isfinite(value):
        raise ConfigurationError("value must be a finite number")
    # Decimal(float) is exact, so values just below .5 are not rounded up.
    return int(Decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


def _component(millis: int, unit: int, modulus: int | None) -> int:
    quotient = abs(millis) // unit
    if modulus is not None:
        quotient %= modulus
    return quotient if millis >= 0 else -quotient
