"""Identifier providers for tasks, sessions and plans."""

from __future__ import annotations

import itertools
import random
import uuid
from typing import Callable, Iterator, Optional

IdProvider = Callable[[str], str]


class SequentialIdProvider:
    """Deterministic ``<prefix>-0001`` style identifiers.

    Each provider keeps its own counter so two scheduling runs built with
    fresh providers yield identical ids.
    """

    def __init__(self, start: int = 1, width: int = 4) -> None:
        self._counter: Iterator[int] = itertools.count(start)
        self._width = width

    def __call__(self, prefix: str) -> str:
        return f"{prefix}-{next(self._counter):0{self._width}d}"


class SeededIdProvider:
    """Random-looking but reproducible identifiers."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._random = random.Random(seed)

    def __call__(self, prefix: str) -> str:
        return f"{prefix}-{self._random.getrandbits(48):012x}"


def uuid_provider(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


__all__ = ["IdProvider", "SeededIdProvider", "SequentialIdProvider", "uuid_provider"]
