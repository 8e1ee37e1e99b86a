"""Greedy multi-day study scheduling under time, load and review constraints."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from .dates import (
    add_days,
    add_minutes,
    at_time,
    days_between,
    is_weekend,
    localize,
    parse_hhmm,
    same_day,
    start_of_day,
    time_of_day,
)
from .engine_config import CognitiveLoadLimit, EngineConfig, OptimizationWeights, default_engine_config
from .ids import IdProvider, SequentialIdProvider
from .models import (
    AdaptiveFactors,
    DifficultyProgression,
    MotivationFactors,
    ProductivityPattern,
    ScheduledSession,
    StudyPlan,
    StudySession,
    StudyTask,
    StudyTechnique,
    Subject,
    TimeBlock,
    Topic,
    UserPreferences,
)
from .retention import RetentionModel, retention_model
from .stats import clamp, mean, round2, round_half_up
from .telemetry import elapsed_ms, emit_event
from .validation import ensure_known_subjects

logger = logging.getLogger(__name__)

MIN_SESSION_MINUTES = 30
BASE_CONFIDENCE = 0.8
OVERLOAD_CONFIDENCE_PENALTY = 0.2
OVERLOAD_THRESHOLD = 0.9
MIN_CONFIDENCE = 0.3
GOAL_HORIZON_DAYS = 30
MOMENTUM_WINDOW_DAYS = 7
MOMENTUM_SESSION_SATURATION = 10
DEFAULT_MOTIVATION_SCORE = 4


@dataclass(frozen=True)
class SchedulingConstraints:
    weekday_blocks: Tuple[TimeBlock, ...] = ()
    weekend_blocks: Tuple[TimeBlock, ...] = ()
    max_daily_minutes: float = 240.0
    min_break_between_sessions: int = 10
    preferred_session_length: int = 45
    cognitive_load_limits: Tuple[CognitiveLoadLimit, ...] = ()
    min_session_minutes: int = MIN_SESSION_MINUTES

    @classmethod
    def from_preferences(
        cls,
        preferences: UserPreferences,
        config: Optional[EngineConfig] = None,
    ) -> "SchedulingConstraints":
        config = config or default_engine_config()
        return cls(
            weekday_blocks=tuple(preferences.weekday_study_hours),
            weekend_blocks=tuple(preferences.weekend_study_hours),
            max_daily_minutes=preferences.max_daily_hours * 60,
            min_break_between_sessions=preferences.min_break_between_sessions,
            preferred_session_length=preferences.session_length,
            cognitive_load_limits=config.cognitive_load_limits,
            min_session_minutes=config.min_session_minutes,
        )

    def blocks_for(self, day: datetime) -> List[TimeBlock]:
        return list(self.weekend_blocks if is_weekend(day) else self.weekday_blocks)

    def cognitive_limit_for_hour(self, hour: int) -> CognitiveLoadLimit:
        period = time_of_day(hour)
        for limit in self.cognitive_load_limits:
            if limit.time_of_day == period:
                return limit
        return default_engine_config().cognitive_limit_for(period)


@dataclass
class DaySchedule:
    sessions: List[ScheduledSession] = field(default_factory=list)
    remaining_tasks: List[StudyTask] = field(default_factory=list)

    @property
    def scheduled_minutes(self) -> int:
        return sum(session.duration for session in self.sessions)


class ScheduleOptimizer:
    """Packs study and review tasks into the learner's available time blocks."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        id_provider: Optional[IdProvider] = None,
        retention: Optional[RetentionModel] = None,
    ) -> None:
        self._config = config or default_engine_config()
        self._ids: IdProvider = id_provider or SequentialIdProvider()
        self._retention = retention or retention_model

    def generate_study_tasks(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        *,
        now: datetime,
    ) -> List[StudyTask]:
        ensure_known_subjects(subjects, sessions)
        tasks: List[StudyTask] = []
        for subject in subjects:
            remaining_hours = subject.remaining_hours
            if remaining_hours <= 0:
                continue
            days_until_deadline = days_between(subject.deadline, now)
            urgent = days_until_deadline <= self._config.urgent_deadline_days
            incomplete = [topic for topic in subject.topics if not topic.completed]

            if incomplete or not subject.topics:
                for chunk_topics in self._chunk_topics(incomplete, remaining_hours * 60):
                    tasks.append(
                        StudyTask(
                            id=self._ids("task"),
                            subject_id=subject.id,
                            topic_ids=[topic.id for topic in chunk_topics],
                            difficulty=subject.difficulty,
                            priority=subject.priority,
                            cognitive_load=subject.cognitive_load,
                            remaining_minutes=self._config.study_chunk_minutes,
                            optimal_session_length=self._chunk_session_length(subject, chunk_topics),
                            days_until_deadline=days_until_deadline,
                            is_review_due=False,
                            recommended_technique=self._chunk_technique(subject, chunk_topics),
                        )
                    )

            for topic in self._retention.due_for_review(subject.topics, now=now):
                tasks.append(
                    StudyTask(
                        id=self._ids("task"),
                        subject_id=subject.id,
                        topic_ids=[topic.id],
                        difficulty=topic.difficulty,
                        priority=1 if urgent else subject.priority,
                        cognitive_load=max(1, subject.cognitive_load - 1),
                        remaining_minutes=self._config.review_task_minutes,
                        optimal_session_length=self._config.review_task_minutes,
                        days_until_deadline=days_until_deadline,
                        is_review_due=True,
                        recommended_technique="active-recall",
                    )
                )
        return tasks

    def prioritize_study_tasks(
        self,
        tasks: Sequence[StudyTask],
        weights: Optional[OptimizationWeights] = None,
    ) -> List[StudyTask]:
        weights = weights or self._config.weights

        def score(task: StudyTask) -> float:
            value = (30 - task.days_until_deadline) * weights.deadline_pressure
            value += (4 - task.priority) * weights.user_preferences * 10
            if task.is_review_due:
                value += weights.spaced_repetition * 20
            return value

        return sorted(tasks, key=score, reverse=True)

    def select_optimal_task(
        self,
        tasks: Sequence[StudyTask],
        hour: int,
        available_time: float,
        pattern: ProductivityPattern,
        constraints: SchedulingConstraints,
    ) -> Optional[StudyTask]:
        """Highest scoring task that fits ``available_time``; earlier tasks win ties."""
        productivity = pattern.productivity_at(hour)
        ceiling = constraints.cognitive_limit_for_hour(hour).max_cognitive_load

        best: Optional[StudyTask] = None
        best_score = -math.inf
        for task in tasks:
            if task.optimal_session_length > available_time:
                continue
            score = 0.0
            if task.difficulty >= 4 and productivity > 0.7:
                score += 20
            elif task.difficulty <= 2 and productivity < 0.5:
                score += 15
            if task.days_until_deadline <= 3:
                score += 30
            elif task.days_until_deadline <= 7:
                score += 15
            score += 10 if task.cognitive_load <= ceiling else -15
            # Only fitting tasks reach this point, so the time-fit bonus always applies.
            score += 10
            if task.is_review_due:
                score += 25
            score += (4 - task.priority) * 5
            if score > best_score:
                best, best_score = task, score
        return best

    def schedule_day_optimally(
        self,
        tasks: Sequence[StudyTask],
        time_blocks: Sequence[TimeBlock],
        day: datetime,
        pattern: ProductivityPattern,
        constraints: SchedulingConstraints,
        *,
        now: Optional[datetime] = None,
    ) -> DaySchedule:
        """Fill one day's blocks greedily without mutating ``tasks``.

        Blocks are walked in start order and never overlap earlier sessions of
        the same day. When ``now`` falls on ``day`` nothing is placed before it.
        """
        remaining = list(tasks)
        sessions: List[ScheduledSession] = []
        used_minutes = 0
        cursor = start_of_day(day)
        if now is not None and same_day(now, day):
            cursor = max(cursor, _ceil_to_minute(now))

        blocks = sorted(
            (block for block in time_blocks if block.available),
            key=lambda block: parse_hhmm(block.start),
        )
        min_minutes = constraints.min_session_minutes
        for block in blocks:
            block_end = at_time(day, block.end)
            current = max(at_time(day, block.start), cursor)

            while remaining:
                block_left = int((block_end - current) / timedelta(minutes=1))
                daily_left = int(constraints.max_daily_minutes - used_minutes)
                available = min(block_left, daily_left)
                if available < min_minutes:
                    break

                task = self.select_optimal_task(remaining, current.hour, available, pattern, constraints)
                if task is None:
                    break

                preferred = max(min_minutes, constraints.preferred_session_length)
                duration = max(min_minutes, min(task.optimal_session_length, available, preferred))
                sessions.append(
                    ScheduledSession(
                        id=self._ids("session"),
                        task_id=task.id,
                        subject_id=task.subject_id,
                        topic_ids=list(task.topic_ids),
                        start_time=current,
                        duration=duration,
                        technique=task.recommended_technique,
                        difficulty=task.difficulty,
                        priority=task.priority,
                        cognitive_load=task.cognitive_load,
                        estimated_effectiveness=self._estimated_effectiveness(task, current.hour, pattern),
                        is_review=task.is_review_due,
                    )
                )
                used_minutes += duration

                index = remaining.index(task)
                left = task.remaining_minutes - duration
                if left <= 0:
                    del remaining[index]
                else:
                    remaining[index] = task.model_copy(update={"remaining_minutes": left})

                cursor = add_minutes(current, duration)
                current = add_minutes(current, duration + constraints.min_break_between_sessions)

        logger.debug("Scheduled %s sessions (%s min) on %s", len(sessions), used_minutes, day.date())
        return DaySchedule(sessions=sessions, remaining_tasks=remaining)

    def generate_optimal_schedule(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        preferences: UserPreferences,
        pattern: ProductivityPattern,
        days_ahead: int = 14,
        *,
        now: datetime,
    ) -> StudyPlan:
        start = time.perf_counter()
        constraints = SchedulingConstraints.from_preferences(preferences, self._config)
        if not any(block.available for block in constraints.weekday_blocks + constraints.weekend_blocks):
            logger.warning("No available study blocks configured; the plan will be empty.")

        tasks = self.prioritize_study_tasks(self.generate_study_tasks(subjects, sessions, now=now))
        schedule: List[ScheduledSession] = []
        for offset in range(days_ahead):
            day = add_days(now, offset)
            day_schedule = self.schedule_day_optimally(
                tasks,
                constraints.blocks_for(day),
                day,
                pattern,
                constraints,
                now=now,
            )
            schedule.extend(day_schedule.sessions)
            tasks = day_schedule.remaining_tasks

        planned_minutes = sum(session.duration for session in schedule)
        unscheduled_minutes = sum(task.remaining_minutes for task in tasks)
        confidence = self._schedule_confidence(planned_minutes, preferences, days_ahead)

        plan = StudyPlan(
            id=self._ids("plan"),
            generated_at=now,
            valid_until=add_days(now, days_ahead),
            schedule=schedule,
            total_estimated_hours=planned_minutes / 60,
            confidence=confidence,
            unscheduled_minutes=unscheduled_minutes,
            adaptive_factors=AdaptiveFactors(
                productivity_pattern=pattern,
                difficulty_progression=DifficultyProgression(
                    current_level=mean(subject.difficulty for subject in subjects),
                ),
                motivation_factors=MotivationFactors(
                    goal_proximity=self._goal_proximity(subjects, now),
                    progress_momentum=self._progress_momentum(sessions, now),
                    streak_count=streak_days(sessions, now),
                    last_motivation_score=DEFAULT_MOTIVATION_SCORE,
                ),
            ),
        )
        if unscheduled_minutes:
            logger.info(
                "Plan %s leaves %s minutes unscheduled over %s days",
                plan.id,
                unscheduled_minutes,
                days_ahead,
            )
        emit_event(
            "study_plan_generated",
            plan_id=plan.id,
            status="success",
            duration_ms=elapsed_ms(start),
            session_count=len(schedule),
            total_hours=round2(plan.total_estimated_hours),
            unscheduled_minutes=unscheduled_minutes,
            days_ahead=days_ahead,
            confidence=confidence,
        )
        return plan

    def _chunk_topics(self, incomplete: List[Topic], remaining_minutes: float) -> List[List[Topic]]:
        chunk_count = math.ceil(remaining_minutes / self._config.study_chunk_minutes)
        if not incomplete:
            return [[] for _ in range(chunk_count)]
        if chunk_count >= len(incomplete):
            # More chunks than topics: cycle so every chunk covers one topic.
            return [[incomplete[index % len(incomplete)]] for index in range(chunk_count)]
        per_chunk = math.ceil(len(incomplete) / chunk_count)
        chunks = [incomplete[index * per_chunk : (index + 1) * per_chunk] for index in range(chunk_count)]
        return [chunk for chunk in chunks if chunk]

    def _chunk_session_length(self, subject: Subject, topics: Sequence[Topic]) -> int:
        topic_factor = min(2.0, len(topics) / 3) if topics else 1.0
        length = round_half_up(self._config.study_chunk_minutes * (subject.difficulty / 3) * topic_factor)
        return int(clamp(length, self._config.min_session_minutes, self._config.max_session_minutes))

    def _chunk_technique(self, subject: Subject, topics: Sequence[Topic]) -> StudyTechnique:
        if subject.difficulty >= 4:
            return "feynman"
        if len(topics) > 1:
            return "interleaving"
        if subject.category == "quantitative" or (subject.category is None and "math" in subject.name.lower()):
            return "practice-problems"
        return "active-recall"

    def _estimated_effectiveness(self, task: StudyTask, hour: int, pattern: ProductivityPattern) -> float:
        productivity = pattern.productivity_at(hour)
        alignment = 0.8 if task.difficulty <= 3 else productivity
        return clamp(productivity * alignment, 0.0, 1.0)

    def _schedule_confidence(self, planned_minutes: int, preferences: UserPreferences, days_ahead: int) -> float:
        confidence = BASE_CONFIDENCE
        budget_hours = preferences.max_daily_hours * days_ahead
        if planned_minutes / 60 > budget_hours * OVERLOAD_THRESHOLD:
            confidence -= OVERLOAD_CONFIDENCE_PENALTY
        return clamp(confidence, MIN_CONFIDENCE, 1.0)

    def _goal_proximity(self, subjects: Sequence[Subject], now: datetime) -> float:
        if not subjects:
            return 0.0
        avg_days = mean(days_between(subject.deadline, now) for subject in subjects)
        return clamp((GOAL_HORIZON_DAYS - avg_days) / GOAL_HORIZON_DAYS, 0.0, 1.0)

    def _progress_momentum(self, sessions: Sequence[StudySession], now: datetime) -> float:
        recent = [s for s in sessions if days_between(now, s.start_time) <= MOMENTUM_WINDOW_DAYS]
        return min(1.0, len(recent) / MOMENTUM_SESSION_SATURATION)


def streak_days(sessions: Sequence[StudySession], now: datetime) -> int:
    """Consecutive calendar days with at least one session, counting back from today."""
    studied = {localize(session.start_time, now.tzinfo).date() for session in sessions}
    streak = 0
    day = now.date()
    while day in studied:
        streak += 1
        day -= timedelta(days=1)
    return streak


def _ceil_to_minute(moment: datetime) -> datetime:
    floored = moment.replace(second=0, microsecond=0)
    if floored == moment:
        return moment
    return floored + timedelta(minutes=1)


schedule_optimizer = ScheduleOptimizer()

__all__ = [
    "DaySchedule",
    "MIN_SESSION_MINUTES",
    "ScheduleOptimizer",
    "SchedulingConstraints",
    "schedule_optimizer",
    "streak_days",
]
