"""Immutable tuning data injected into every planner component."""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .models import ProductivityPattern, StudyTechnique, SubjectCategory, TimeOfDay


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class CognitiveLoadLimit(_Frozen):
    time_of_day: TimeOfDay
    max_cognitive_load: int = Field(ge=1, le=5)
    optimal_difficulty: int = Field(ge=1, le=5)


class OptimizationWeights(_Frozen):
    deadline_pressure: float = 0.25
    cognitive_load_balance: float = 0.2
    spaced_repetition: float = 0.2
    user_preferences: float = 0.15
    prerequisites: float = 0.1
    variety_balance: float = 0.1


class TechniqueRule(_Frozen):
    """One row of the technique suggestion table.

    A rule matches when every condition it sets holds. ``categories`` is
    checked against the subject's explicit category; ``keywords`` are only
    consulted for subjects without one.
    """

    rule_id: str
    min_difficulty: Optional[int] = None
    categories: Tuple[SubjectCategory, ...] = ()
    keywords: Tuple[str, ...] = ()
    min_topics: Optional[int] = None
    suggestions: Tuple[Tuple[StudyTechnique, float, str], ...]


class DefaultProductivityCurve(_Frozen):
    morning_peak: Tuple[int, int, float] = (9, 11, 0.9)
    afternoon: Tuple[int, int, float] = (14, 16, 0.7)
    evening: Tuple[int, int, float] = (19, 21, 0.8)
    daytime: Tuple[int, int, float] = (6, 23, 0.5)
    night: float = 0.2
    day_of_week: Tuple[Tuple[str, float], ...] = (
        ("monday", 0.8),
        ("tuesday", 0.85),
        ("wednesday", 0.9),
        ("thursday", 0.85),
        ("friday", 0.7),
        ("saturday", 0.6),
        ("sunday", 0.7),
    )
    session_length: int = 45
    break_length: int = 15
    focus_decline_rate: float = 0.02

    def hourly(self) -> Dict[int, float]:
        curve: Dict[int, float] = {}
        for hour in range(24):
            for start, end, score in (self.morning_peak, self.afternoon, self.evening, self.daytime):
                if start <= hour <= end:
                    curve[hour] = score
                    break
            else:
                curve[hour] = self.night
        return curve

    def to_pattern(self) -> ProductivityPattern:
        return ProductivityPattern(
            hourly_productivity=self.hourly(),
            day_of_week_productivity=dict(self.day_of_week),
            session_length_optimal=self.session_length,
            break_length_optimal=self.break_length,
            focus_decline_rate=self.focus_decline_rate,
            is_default=True,
        )


DEFAULT_COGNITIVE_LOAD_LIMITS: Tuple[CognitiveLoadLimit, ...] = (
    CognitiveLoadLimit(time_of_day="morning", max_cognitive_load=5, optimal_difficulty=4),
    CognitiveLoadLimit(time_of_day="afternoon", max_cognitive_load=4, optimal_difficulty=3),
    CognitiveLoadLimit(time_of_day="evening", max_cognitive_load=3, optimal_difficulty=2),
)

DEFAULT_TECHNIQUE_RULES: Tuple[TechniqueRule, ...] = (
    TechniqueRule(
        rule_id="high-difficulty",
        min_difficulty=4,
        suggestions=(
            (
                "active-recall",
                0.3,
                "Active recall is highly effective for complex, high-difficulty subjects",
            ),
            ("feynman", 0.25, "The Feynman technique helps break down complex concepts"),
        ),
    ),
    TechniqueRule(
        rule_id="quantitative",
        categories=("quantitative",),
        keywords=("math", "programming", "physics"),
        suggestions=(
            ("practice-problems", 0.4, "Practice problems are essential for quantitative subjects"),
        ),
    ),
    TechniqueRule(
        rule_id="memorization",
        categories=("memorization", "language"),
        keywords=("history", "language", "vocabulary"),
        suggestions=(
            (
                "spaced-repetition",
                0.35,
                "Spaced repetition optimizes long-term retention for factual content",
            ),
            ("flashcards", 0.2, "Flashcards are effective for memorizing facts and vocabulary"),
        ),
    ),
    TechniqueRule(
        rule_id="many-topics",
        min_topics=4,
        suggestions=(
            (
                "interleaving",
                0.15,
                "Interleaving multiple topics improves discrimination and transfer",
            ),
        ),
    ),
)


class EngineConfig(_Frozen):
    """Tuning tables shared by the retention, productivity and scheduling components."""

    default_productivity: DefaultProductivityCurve = Field(default_factory=DefaultProductivityCurve)
    cognitive_load_limits: Tuple[CognitiveLoadLimit, ...] = DEFAULT_COGNITIVE_LOAD_LIMITS
    technique_rules: Tuple[TechniqueRule, ...] = DEFAULT_TECHNIQUE_RULES
    weights: OptimizationWeights = Field(default_factory=OptimizationWeights)
    min_sessions_for_pattern: int = 10
    study_chunk_minutes: int = 45
    review_task_minutes: int = 20
    min_session_minutes: int = 30
    max_session_minutes: int = 120
    urgent_deadline_days: int = 7
    max_technique_suggestions: int = 5

    def cognitive_limit_for(self, time_of_day: str) -> CognitiveLoadLimit:
        for limit in self.cognitive_load_limits:
            if limit.time_of_day == time_of_day:
                return limit
        return self.cognitive_load_limits[-1]


@lru_cache
def default_engine_config() -> EngineConfig:
    return EngineConfig()


__all__ = [
    "CognitiveLoadLimit",
    "DefaultProductivityCurve",
    "EngineConfig",
    "OptimizationWeights",
    "TechniqueRule",
    "default_engine_config",
]
