"""Poll interval parsing.

Intervals are written as duration strings such as ``30s``, ``1m30s`` or
``250ms``: an optional sign followed by one or more number/unit pairs.
"""

import logging
import re
from typing import Optional

DEFAULT_INTERVAL_SECONDS = 30.0

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # U+00B5 micro sign
    "μs": 1e-6,  # U+03BC greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# Longer units first so "ms" is not read as "m" followed by garbage
_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """
    Parse a duration string into seconds.

    Args:
        text: Duration such as "30s", "1m30s", "1.5h" or "0"

    Returns:
        float: Duration in seconds (may be negative if signed)

    Raises:
        ValueError: If the string is not a valid duration
    """
    if not isinstance(text, str):
        raise ValueError(f"invalid duration {text!r}")

    rest = text
    sign = 1.0
    if rest[:1] in ("-", "+"):
        if rest[0] == "-":
            sign = -1.0
        rest = rest[1:]

    if rest == "0":
        return 0.0
    if not rest:
        raise ValueError(f"invalid duration {text!r}")

    total = 0.0
    pos = 0
    while pos < len(rest):
        match = _PART.match(rest, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        number, unit = match.groups()
        total += float(number) * _UNITS[unit]
        pos = match.end()

    return sign * total


def resolve_interval(text: Optional[str], logger: logging.Logger) -> float:
    """
    Resolve a configured interval, degrading to the default on bad input.

    Args:
        text: Configured interval string
        logger: Logger used for the fallback warning

    Returns:
        float: Interval in seconds, always positive
    """
    try:
        seconds = parse_duration(text)
    except ValueError as e:
        logger.warning(
            f"Invalid poll interval: {e}; using {DEFAULT_INTERVAL_SECONDS:.0f}s"
        )
        return DEFAULT_INTERVAL_SECONDS

    if seconds <= 0:
        logger.warning(
            f"Non-positive poll interval {text!r}; using {DEFAULT_INTERVAL_SECONDS:.0f}s"
        )
        return DEFAULT_INTERVAL_SECONDS

    return seconds
