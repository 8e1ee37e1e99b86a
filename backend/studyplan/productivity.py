"""Productivity pattern inference from historical study sessions."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import tzinfo
from typing import Dict, List, Optional, Sequence

from .dates import DAY_NAMES, day_of_week_name, localize
from .engine_config import EngineConfig, default_engine_config
from .models import ProductivityPattern, StudySession
from .stats import mean

logger = logging.getLogger(__name__)

EMPTY_BUCKET_PRODUCTIVITY = 0.5
SESSION_LENGTH_BUCKET_MINUTES = 15


@dataclass
class _Bucket:
    total: float = 0.0
    effective: float = 0.0
    count: int = 0

    def add(self, session: StudySession) -> None:
        self.total += session.duration
        self.effective += session.duration * (session.effectiveness / 5)
        self.count += 1

    def score(self) -> float:
        if self.total <= 0:
            return EMPTY_BUCKET_PRODUCTIVITY
        return self.effective / self.total


class ProductivityPatternAnalyzer:
    """Derives hourly and weekday productivity from a learner's session history."""

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self._config = config or default_engine_config()

    def default_pattern(self) -> ProductivityPattern:
        return self._config.default_productivity.to_pattern()

    def analyze(self, sessions: Sequence[StudySession], tz: Optional[tzinfo] = None) -> ProductivityPattern:
        """Bucket sessions by hour and weekday, read in ``tz`` when it is given."""
        if len(sessions) < self._config.min_sessions_for_pattern:
            logger.debug(
                "Only %s sessions available; using default productivity curve.",
                len(sessions),
            )
            return self.default_pattern()

        hourly: Dict[int, _Bucket] = {hour: _Bucket() for hour in range(24)}
        daily: Dict[str, _Bucket] = {day: _Bucket() for day in DAY_NAMES}

        for session in sessions:
            # Sessions still in progress have no reliable duration yet.
            if session.end_time is None:
                continue
            started = localize(session.start_time, tz)
            hourly[started.hour].add(session)
            daily[day_of_week_name(started)].add(session)

        return ProductivityPattern(
            hourly_productivity={hour: bucket.score() for hour, bucket in hourly.items()},
            day_of_week_productivity={day: bucket.score() for day, bucket in daily.items()},
            session_length_optimal=self._optimal_session_length(sessions),
            break_length_optimal=self._optimal_break_length(sessions),
            focus_decline_rate=self._focus_decline_rate(sessions),
            is_default=False,
        )

    def effectiveness_by_session_length(self, sessions: Sequence[StudySession]) -> Dict[int, float]:
        groups: Dict[int, List[int]] = defaultdict(list)
        for session in sessions:
            length = int(session.duration // SESSION_LENGTH_BUCKET_MINUTES) * SESSION_LENGTH_BUCKET_MINUTES
            groups[length].append(session.effectiveness)
        return {length: mean(scores) for length, scores in sorted(groups.items())}

    def _optimal_session_length(self, sessions: Sequence[StudySession]) -> int:
        best_length: Optional[int] = None
        best_score = -1.0
        for length, score in self.effectiveness_by_session_length(sessions).items():
            if length <= 0:
                continue
            if score > best_score:
                best_length, best_score = length, score
        return best_length or self._config.default_productivity.session_length

    def _optimal_break_length(self, sessions: Sequence[StudySession]) -> int:
        # Sessions carry no break annotations, so the default stands.
        return self._config.default_productivity.break_length

    def _focus_decline_rate(self, sessions: Sequence[StudySession]) -> float:
        # Effectiveness is rated once per session, so there is no in-session decline to fit.
        return self._config.default_productivity.focus_decline_rate


def peak_hours(pattern: ProductivityPattern, count: int = 3) -> List[int]:
    """Most productive hours, earliest hour first on ties."""
    ranked = sorted(pattern.hourly_productivity.items(), key=lambda entry: (-entry[1], entry[0]))
    return [hour for hour, _ in ranked[:count]]


def average_hourly_productivity(pattern: ProductivityPattern) -> float:
    return sum(pattern.productivity_at(hour) for hour in range(24)) / 24


productivity_analyzer = ProductivityPatternAnalyzer()

__all__ = [
    "ProductivityPatternAnalyzer",
    "average_hourly_productivity",
    "peak_hours",
    "productivity_analyzer",
]
