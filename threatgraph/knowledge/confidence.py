"""Explicit conversions between the two confidence scales.

Graph entities and SMS threats carry confidence as a float in [0, 1].
Threat indicators and threat actors carry it as an integer percentage
in [0, 100]. Nothing in the engine converts between them implicitly.
"""

from __future__ import annotations

import math
from numbers import Integral, Real

from threatgraph.errors import InvalidEntityError


def percent_to_unit(percent: int) -> float:
    """Convert an integer 0-100 confidence to the 0-1 scale."""
    if isinstance(percent, bool):
        msg = f"Percent confidence must be an integer, got {percent!r}"
        raise InvalidEntityError(msg)
    if not isinstance(percent, Integral):
        if isinstance(percent, Real) and float(percent).is_integer():
            percent = int(percent)
        else:
            msg = f"Percent confidence must be an integer, got {percent!r}"
            raise InvalidEntityError(msg)
    if not 0 <= percent <= 100:
        msg = f"Percent confidence out of range [0, 100]: {percent}"
        raise InvalidEntityError(msg)
    return percent / 100.0


def unit_to_percent(unit: float) -> int:
    """Convert a 0-1 confidence to an integer percentage, rounding half up."""
    if isinstance(unit, bool) or not isinstance(unit, Real) or math.isnan(unit):
        msg = f"Unit confidence must be a number, got {unit!r}"
        raise InvalidEntityError(msg)
    if not 0.0 <= unit <= 1.0:
        msg = f"Unit confidence out of range [0, 1]: {unit}"
        raise InvalidEntityError(msg)
    # round away float noise first: 0.285 * 100 == 28.499999999999996
    return math.floor(round(unit * 100, 9) + 0.5)
