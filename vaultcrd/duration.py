"""Parsing of duration strings such as ``"168h"`` or ``"1h30m"``."""

from __future__ import annotations

import re
from datetime import timedelta
from fractions import Fraction

__all__ = ["DurationError", "parse_duration"]

_NANOSECOND = 1
_MICROSECOND = 1000 * _NANOSECOND
_MILLISECOND = 1000 * _MICROSECOND
_SECOND = 1000 * _MILLISECOND
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE

_UNITS = {
    "ns": _NANOSECOND,
    "us": _MICROSECOND,
    "\u00b5s": _MICROSECOND,  # micro sign
    "\u03bcs": _MICROSECOND,  # Greek small letter mu
    "ms": _MILLISECOND,
    "s": _SECOND,
    "m": _MINUTE,
    "h": _HOUR,
}

_LIMIT = 1 << 63

_COMPONENT = re.compile(
    r"(?P<whole>[0-9]*)(?:(?P<dot>\.)(?P<frac>[0-9]*))?(?P<unit>[^0-9.]*)"
)


class DurationError(ValueError):
    """Raised when a duration string cannot be parsed."""


def _nanoseconds(text: str) -> int:
    rest = text
    negative = False
    if rest[:1] in ("-", "+"):
        negative = rest[0] == "-"
        rest = rest[1:]

    if rest == "0":
        return 0
    if not rest:
        raise DurationError(f'time: invalid duration "{text}"')

    total = 0
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        whole = match.group("whole")
        frac = match.group("frac") or ""
        unit_name = match.group("unit")
        if not whole and not frac:
            raise DurationError(f'time: invalid duration "{text}"')
        if not unit_name:
            raise DurationError(f'time: missing unit in duration "{text}"')
        unit = _UNITS.get(unit_name)
        if unit is None:
            raise DurationError(
                f'time: unknown unit "{unit_name}" in duration "{text}"'
            )

        value = int(whole) if whole else 0
        if value > _LIMIT // unit:
            raise DurationError(f'time: invalid duration "{text}"')
        value *= unit
        if frac:
            value += int(Fraction(int(frac), 10 ** len(frac)) * unit)
            if value > _LIMIT:
                raise DurationError(f'time: invalid duration "{text}"')

        total += value
        if total > _LIMIT:
            raise DurationError(f'time: invalid duration "{text}"')
        pos = match.end()

    if negative:
        return -total
    if total > _LIMIT - 1:
        raise DurationError(f'time: invalid duration "{text}"')
    return total


def parse_duration(text: str) -> timedelta:
    """Parse a signed sequence of decimal numbers with unit suffixes.

    Valid units are ``ns``, ``us`` (or ``µs``), ``ms``, ``s``, ``m`` and ``h``.
    The result must fit in a signed 64-bit count of nanoseconds; any part
    below one microsecond is dropped.
    """
    nanos = _nanoseconds(text)
    micros = abs(nanos) // _MICROSECOND
    return timedelta(microseconds=-micros if nanos < 0 else micros)