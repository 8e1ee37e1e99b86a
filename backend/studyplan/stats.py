"""Small numeric helpers with guarded denominators."""

from __future__ import annotations

import math
from typing import Iterable


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def mean(values: Iterable[float], default: float = 0.0) -> float:
    items = list(values)
    if not items:
        return default
    return sum(items) / len(items)


def round_half_up(value: float) -> int:
    """Round halves upward (``round`` would pick the even neighbour)."""
    return int(math.floor(value + 0.5))


def round2(value: float) -> float:
    return round_half_up(value * 100) / 100


__all__ = ["clamp", "mean", "round2", "round_half_up"]
