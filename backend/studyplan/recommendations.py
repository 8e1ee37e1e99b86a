"""Facade that runs the whole planner pipeline and bundles its insights."""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .config import Settings, get_settings
from .dates import Clock, add_days, days_between, ensure_timezone_aware, system_clock
from .engine_config import EngineConfig, default_engine_config
from .errors import StudyPlanError
from .ids import IdProvider, SequentialIdProvider
from .models import (
    BreakSuggestion,
    DifficultyAdjustment,
    PerformanceMetrics,
    ProductivityPattern,
    ReviewDay,
    StudyInsights,
    StudySession,
    Subject,
    Topic,
    UserPreferences,
)
from .predictor import PerformancePredictor
from .productivity import ProductivityPatternAnalyzer
from .retention import RetentionModel
from .risk import RiskAnalyzer
from .schedule_optimizer import ScheduleOptimizer, streak_days
from .stats import clamp, mean, round_half_up
from .techniques import TechniqueAdvisor
from .telemetry import elapsed_ms, emit_event
from .validation import validate_inputs

logger = logging.getLogger(__name__)

NO_DATA_RETENTION = 0.5
RETENTION_BASE_PERIOD_DAYS = 7
GOAL_ACHIEVED_PROGRESS = 0.8
SEQUENCE_SLOT_MINUTES = 45


class RecommendationEngine:
    """Entry point that wires every planner component together.

    Components share one :class:`EngineConfig`; ``clock`` supplies "now" when
    a call does not pass it explicitly and ``id_provider`` names tasks,
    sessions and plans.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        settings: Optional[Settings] = None,
        clock: Clock = system_clock,
        id_provider: Optional[IdProvider] = None,
    ) -> None:
        self._config = config or default_engine_config()
        self._settings = settings or get_settings()
        self._clock = clock
        self._retention = RetentionModel()
        self._analyzer = ProductivityPatternAnalyzer(self._config)
        self._predictor = PerformancePredictor()
        self._optimizer = ScheduleOptimizer(
            self._config,
            id_provider=id_provider or SequentialIdProvider(),
            retention=self._retention,
        )
        self._techniques = TechniqueAdvisor(self._config)
        self._risk = RiskAnalyzer()

    def generate_insights(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        preferences: UserPreferences,
        *,
        now: Optional[datetime] = None,
        days_ahead: Optional[int] = None,
    ) -> StudyInsights:
        now = ensure_timezone_aware(now or self._clock(), self._settings.timezone)
        if days_ahead is None:
            days_ahead = self._settings.days_ahead
        start = time.perf_counter()
        try:
            validate_inputs(subjects, sessions)
        except StudyPlanError as exc:
            emit_event(
                "study_insights_generated",
                status="error",
                duration_ms=elapsed_ms(start),
                subject_count=len(subjects),
                session_count=len(sessions),
                error=str(exc),
                exception_type=exc.__class__.__name__,
                owner=self._settings.plan_owner,
            )
            logger.warning("Rejected study insight request: %s", exc)
            raise

        pattern = self._analyzer.analyze(sessions, now.tzinfo)
        plan = self._optimizer.generate_optimal_schedule(
            subjects, sessions, preferences, pattern, days_ahead, now=now
        )
        all_topics = [topic for subject in subjects for topic in subject.topics]
        velocity = self._predictor.predict_learning_velocity(subjects, sessions, now=now)

        insights = StudyInsights(
            generated_at=now,
            recommended_schedule=plan,
            productivity_pattern=pattern,
            study_technique_suggestions=self._techniques.suggest(subjects, sessions),
            retention_predictions=self.retention_predictions(subjects, sessions, now=now),
            optimal_review_times=self.optimal_review_times(subjects, sessions, now=now),
            review_queue=self._retention.prioritize_reviews(
                self._retention.due_for_review(all_topics, now=now),
                sessions,
                self._settings.max_reviews_per_day,
                now=now,
            ),
            performance_analysis=self.performance_metrics(subjects, sessions, now=now),
            adaptive_recommendations=self._risk.adaptive_recommendations(
                subjects, sessions, pattern, now=now
            ),
            risk_assessment=self._risk.assess(subjects, sessions, now=now),
            completion_predictions=self._predictor.predict_all_completions(
                subjects, sessions, pattern, preferences, now=now
            ),
            learning_velocity=velocity,
            deadline_outlook=self._predictor.predict_deadline_success(
                subjects, sessions, velocity.current_velocity, now=now
            ),
            learning_outcomes=self._predictor.predict_learning_outcomes(subjects, sessions, pattern, now=now),
        )
        emit_event(
            "study_insights_generated",
            status="success",
            duration_ms=elapsed_ms(start),
            subject_count=len(subjects),
            session_count=len(sessions),
            planned_sessions=len(plan.schedule),
            overall_risk=insights.risk_assessment.overall_risk,
            default_pattern=pattern.is_default,
            owner=self._settings.plan_owner,
        )
        return insights

    def retention_predictions(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        *,
        now: datetime,
    ) -> Dict[str, float]:
        """Forgetting-curve retention estimate per subject."""
        predictions: Dict[str, float] = {}
        for subject in subjects:
            subject_sessions = [session for session in sessions if session.subject_id == subject.id]
            if not subject_sessions:
                predictions[subject.id] = NO_DATA_RETENTION
                continue
            last = max(subject_sessions, key=lambda session: session.start_time)
            days_since = days_between(now, last.start_time)
            avg_effectiveness = mean(session.effectiveness for session in subject_sessions)
            strength = (avg_effectiveness / 5) * math.log(len(subject_sessions) + 1)
            retention = math.exp(-days_since / max(1.0, strength * RETENTION_BASE_PERIOD_DAYS))
            predictions[subject.id] = clamp(retention, 0.1, 1.0)
        return predictions

    def optimal_review_times(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        *,
        now: datetime,
    ) -> Dict[str, datetime]:
        review_times: Dict[str, datetime] = {}
        for subject in subjects:
            subject_sessions = [session for session in sessions if session.subject_id == subject.id]
            if not subject_sessions:
                review_times[subject.id] = add_days(now, 1)
                continue
            last = max(subject_sessions, key=lambda session: session.start_time)
            count = len(subject_sessions)
            avg_effectiveness = mean(session.effectiveness for session in subject_sessions)
            if avg_effectiveness >= 4:
                interval = min(14, count * 2)
            elif avg_effectiveness >= 3:
                interval = min(7, count)
            else:
                interval = min(3, max(1, count // 2))
            interval = round_half_up(interval * (1 - (subject.difficulty - 1) * 0.1))
            review_times[subject.id] = add_days(last.start_time, interval)
        return review_times

    def performance_metrics(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        *,
        now: datetime,
    ) -> PerformanceMetrics:
        total_hours = sum(session.duration for session in sessions) / 60
        avg_effectiveness = mean(session.effectiveness for session in sessions)

        mastery: Dict[str, float] = {}
        for subject in subjects:
            subject_sessions = [session for session in sessions if session.subject_id == subject.id]
            quality = mean(session.effectiveness for session in subject_sessions) / 5
            mastery[subject.id] = subject.progress_ratio * 0.6 + quality * 0.4

        achieved = [subject for subject in subjects if subject.progress_ratio >= GOAL_ACHIEVED_PROGRESS]
        return PerformanceMetrics(
            overall_productivity=min(1.0, total_hours / max(1.0, len(sessions) * 0.75)),
            subject_mastery=mastery,
            study_velocity=total_hours / 7,
            retention_rate=min(1.0, avg_effectiveness / 5),
            goal_achievement_rate=len(achieved) / len(subjects) if subjects else 0.0,
            session_effectiveness=avg_effectiveness,
            focus_score=min(1.0, avg_effectiveness / 4),
            streak_days=streak_days(sessions, now),
            total_study_hours=total_hours,
            sessions_completed=len(sessions),
        )

    def review_calendar(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        days_ahead: int = 30,
        *,
        now: Optional[datetime] = None,
    ) -> List[ReviewDay]:
        now = ensure_timezone_aware(now or self._clock(), self._settings.timezone)
        topics: List[Topic] = [topic for subject in subjects for topic in subject.topics]
        rates = {subject.id: subject.retention_rate for subject in subjects}
        return self._retention.review_calendar(
            topics,
            sessions,
            days_ahead,
            now=now,
            retention_rates=rates,
            default_rate=self._settings.default_retention_rate,
        )

    def recommend_study_sequence(
        self,
        subjects: Sequence[Subject],
        available_minutes: int,
        current_hour: int,
        pattern: ProductivityPattern,
        *,
        now: datetime,
    ) -> List[Subject]:
        """Subjects ordered for the next free stretch, one per 45-minute slot."""
        productive = pattern.productivity_at(current_hour) > 0.7

        def score(subject: Subject) -> float:
            value = 0.0
            hard = subject.difficulty >= 4
            if productive and hard:
                value += 30
            elif not productive and not hard:
                value += 20
            days = days_between(subject.deadline, now)
            if days <= 3:
                value += 25
            elif days <= 7:
                value += 15
            value += (4 - subject.priority) * 10
            value += (1 - subject.progress_ratio) * 15
            return value

        ranked = sorted(subjects, key=score, reverse=True)
        return ranked[: max(0, available_minutes // SEQUENCE_SLOT_MINUTES)]

    def recommend_break_activity(
        self,
        last_session_difficulty: int,
        session_duration: int,
        hour: int,
    ) -> BreakSuggestion:
        if session_duration >= 90:
            return BreakSuggestion(
                activity="Take a walk outside or do light exercise",
                duration=20,
                reasoning="After long study sessions, physical activity helps restore mental energy",
            )
        if last_session_difficulty >= 4:
            return BreakSuggestion(
                activity="Listen to music or do breathing exercises",
                duration=15,
                reasoning="High cognitive load requires mental relaxation to prevent burnout",
            )
        if hour >= 18:
            return BreakSuggestion(
                activity="Have a healthy snack and hydrate",
                duration=10,
                reasoning="Evening breaks should support relaxation and preparation for rest",
            )
        return BreakSuggestion(
            activity="Step away from screen and stretch",
            duration=10,
            reasoning="Regular movement breaks maintain focus and prevent fatigue",
        )

    def recommend_difficulty_adjustment(
        self,
        subject: Subject,
        recent_sessions: Sequence[StudySession],
    ) -> DifficultyAdjustment:
        subject_sessions = [session for session in recent_sessions if session.subject_id == subject.id]
        if len(subject_sessions) < 3:
            return DifficultyAdjustment(
                adjustment="maintain",
                reasoning="Insufficient data to recommend difficulty adjustment",
            )
        avg_effectiveness = mean(session.effectiveness for session in subject_sessions)
        if avg_effectiveness >= 4.5:
            return DifficultyAdjustment(
                adjustment="increase",
                reasoning="High performance indicates readiness for more challenging material",
                new_difficulty=min(5, subject.difficulty + 1),
            )
        if avg_effectiveness <= 2.5:
            return DifficultyAdjustment(
                adjustment="decrease",
                reasoning="Low effectiveness suggests current difficulty level may be too high",
                new_difficulty=max(1, subject.difficulty - 1),
            )
        return DifficultyAdjustment(
            adjustment="maintain",
            reasoning="Current difficulty level is appropriate based on performance",
        )


__all__ = ["RecommendationEngine"]
