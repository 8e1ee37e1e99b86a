"""Completion, velocity and deadline forecasts built on productivity patterns."""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .dates import add_days, day_key, day_of_week_name, days_between, hours_between, localize
from .models import (
    DayEffectiveness,
    DeadlinePrediction,
    LearningOutcomes,
    LearningVelocity,
    ProductivityPattern,
    ScheduledSession,
    ScheduleEffectivenessPrediction,
    StudySession,
    Subject,
    SubjectCompletionPrediction,
    Topic,
    TopicRetentionPrediction,
    UserPreferences,
    VelocityFactors,
)
from .productivity import average_hourly_productivity
from .stats import clamp, mean, round2, round_half_up
from .validation import ensure_known_subjects

logger = logging.getLogger(__name__)

DEFAULT_EFFECTIVENESS = 3.0
CAPACITY_HOURS_PER_PRODUCTIVITY = 10
EFFECTIVENESS_BOOST = 1.2
MIN_COMPLETION_PROBABILITY = 0.1
CONFIDENCE_SESSION_SATURATION = 10
NEAR_DEADLINE_DAYS = 7
CRITICAL_DEADLINE_DAYS = 3
RECENT_WINDOW_DAYS = 7
CONSISTENCY_WINDOW_DAYS = 14
VELOCITY_HISTORY_WEEKS = 8
TREND_WINDOW_WEEKS = 3
TREND_THRESHOLD = 0.1
MIN_SESSIONS_FOR_VELOCITY = 7
MAX_DAILY_CAPACITY_HOURS = 8
SUCCESS_FLOOR = 0.05
SUCCESS_CEILING = 0.95
NO_RECENT_MOTIVATION = 0.3
MAX_RETENTION_INTERVAL_DAYS = 30
BURNOUT_ONSET_HOURS = 4
OUTCOME_DAILY_CAP_HOURS = 6
OUTCOME_STUDY_DAY_HOURS = 8
RECENT_PROGRESS_BOOST = 1.1
STALLED_PROGRESS_PENALTY = 0.9


class PerformancePredictor:
    """Forecasts subject completion, study velocity and deadline outcomes."""

    def predict_subject_completion(
        self,
        subject: Subject,
        sessions: Sequence[StudySession],
        pattern: ProductivityPattern,
        preferences: UserPreferences,
        *,
        now: datetime,
    ) -> SubjectCompletionPrediction:
        remaining_hours = subject.remaining_hours
        days_to_deadline = days_between(subject.deadline, now)

        if remaining_hours <= 0:
            return SubjectCompletionPrediction(
                subject_id=subject.id,
                probability=1.0,
                expected_completion_date=now,
                confidence=1.0,
                risk_factors=[],
                recommendations=["Subject already completed!"],
            )

        available_daily_hours = min(
            preferences.max_daily_hours,
            average_hourly_productivity(pattern) * CAPACITY_HOURS_PER_PRODUCTIVITY,
        )
        required_daily_hours = remaining_hours / max(1, days_to_deadline)

        subject_sessions = [session for session in sessions if session.subject_id == subject.id]
        avg_effectiveness = mean(
            (session.effectiveness for session in subject_sessions),
            default=DEFAULT_EFFECTIVENESS,
        )

        probability = min(1.0, available_daily_hours / required_daily_hours)
        probability *= (avg_effectiveness / 5) * EFFECTIVENESS_BOOST
        probability -= (subject.difficulty - 3) * 0.1
        probability = clamp(probability, MIN_COMPLETION_PROBABILITY, 1.0)

        effective_daily_hours = available_daily_hours * (avg_effectiveness / 5)
        expected_completion: Optional[datetime] = None
        if effective_daily_hours > 0:
            expected_completion = add_days(now, math.ceil(remaining_hours / effective_daily_hours))

        risk_factors: List[str] = []
        if required_daily_hours > available_daily_hours * 0.8:
            risk_factors.append("High daily time requirement")
        if subject.difficulty >= 4:
            risk_factors.append("High subject difficulty")
        if days_to_deadline <= NEAR_DEADLINE_DAYS:
            risk_factors.append("Approaching deadline")
        if avg_effectiveness < 3:
            risk_factors.append("Low study effectiveness")

        recommendations: List[str] = []
        if probability < 0.7:
            recommendations.append("Consider extending deadline or reducing scope")
            recommendations.append("Increase daily study time allocation")
        if avg_effectiveness < 3.5:
            recommendations.append("Review and improve study techniques")
        if subject.difficulty >= 4:
            recommendations.append("Break down into smaller, manageable topics")

        return SubjectCompletionPrediction(
            subject_id=subject.id,
            probability=round2(probability),
            expected_completion_date=expected_completion,
            confidence=min(1.0, len(subject_sessions) / CONFIDENCE_SESSION_SATURATION),
            risk_factors=risk_factors,
            recommendations=recommendations[:3],
        )

    def predict_all_completions(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        pattern: ProductivityPattern,
        preferences: UserPreferences,
        *,
        now: datetime,
    ) -> Dict[str, SubjectCompletionPrediction]:
        return {
            subject.id: self.predict_subject_completion(subject, sessions, pattern, preferences, now=now)
            for subject in subjects
        }

    def predict_learning_outcomes(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        pattern: ProductivityPattern,
        *,
        now: datetime,
    ) -> LearningOutcomes:
        """Coarse completion odds that ignore preferences and session quality.

        Capacity is the average hourly productivity over eight hours, capped at
        six hours a day. A session in the last week lifts a subject's odds by
        10%; a quiet week lowers them by 10%.
        """
        ensure_known_subjects(subjects, sessions)
        achievable_daily_hours = min(
            OUTCOME_DAILY_CAP_HOURS,
            average_hourly_productivity(pattern) * OUTCOME_STUDY_DAY_HOURS,
        )
        active_subjects = {session.subject_id for session in _recent(sessions, now, RECENT_WINDOW_DAYS)}

        probabilities: Dict[str, float] = {}
        adjustments: List[str] = []
        for subject in subjects:
            days_remaining = max(1, days_between(subject.deadline, now))
            required_daily_hours = max(0.0, subject.remaining_hours) / days_remaining
            if required_daily_hours <= 0:
                probability = 1.0
            else:
                probability = min(1.0, achievable_daily_hours / required_daily_hours)
            probability = max(MIN_COMPLETION_PROBABILITY, probability - (subject.difficulty - 3) * 0.1)
            probability *= RECENT_PROGRESS_BOOST if subject.id in active_subjects else STALLED_PROGRESS_PENALTY
            probabilities[subject.id] = round2(clamp(probability, MIN_COMPLETION_PROBABILITY, 1.0))

            if probability < 0.7:
                if required_daily_hours > achievable_daily_hours * 1.5:
                    adjustments.append(f"Consider extending deadline for {subject.name} or reducing scope")
                else:
                    adjustments.append(
                        f"Increase daily study time for {subject.name} to {math.ceil(required_daily_hours)} hours"
                    )

        overall = mean(probabilities.values())
        return LearningOutcomes(
            subject_completion_probability=probabilities,
            overall_success_rate=round2(overall),
            recommended_adjustments=adjustments,
        )

    def predict_learning_velocity(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        *,
        now: datetime,
    ) -> LearningVelocity:
        ensure_known_subjects(subjects, sessions)
        if len(sessions) < MIN_SESSIONS_FOR_VELOCITY:
            return LearningVelocity(
                current_velocity=0.0,
                projected_velocity=0.0,
                velocity_trend="stable",
                factors=VelocityFactors(motivation_score=0.5, difficulty_impact=0.0, consistency_score=0.0),
            )

        recent = _recent(sessions, now, RECENT_WINDOW_DAYS)
        current_velocity = sum(session.duration for session in recent) / (60 * RECENT_WINDOW_DAYS)

        trend = self._velocity_trend(self._weekly_velocities(sessions, now))
        motivation = self._motivation_score(subjects, sessions, now)
        difficulty_impact = self._difficulty_impact(subjects, sessions)
        consistency = self._consistency_score(sessions, now)

        trend_multiplier = {"increasing": 1.1, "decreasing": 0.9}.get(trend, 1.0)
        motivation_multiplier = 0.8 + motivation * 0.4
        consistency_multiplier = 0.9 + consistency * 0.2
        projected = current_velocity * trend_multiplier * motivation_multiplier * consistency_multiplier

        return LearningVelocity(
            current_velocity=round2(current_velocity),
            projected_velocity=round2(projected),
            velocity_trend=trend,
            factors=VelocityFactors(
                motivation_score=round2(motivation),
                difficulty_impact=round2(difficulty_impact),
                consistency_score=round2(consistency),
            ),
        )

    def predict_deadline_success(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        current_velocity: float,
        *,
        now: datetime,
    ) -> List[DeadlinePrediction]:
        ensure_known_subjects(subjects, sessions)
        predictions: List[DeadlinePrediction] = []
        for subject in subjects:
            remaining_hours = subject.remaining_hours
            days_remaining = max(1, days_between(subject.deadline, now))
            required_daily_hours = remaining_hours / days_remaining
            probability = 1.0
            recommendations: List[str] = []

            max_daily_capacity = min(MAX_DAILY_CAPACITY_HOURS, current_velocity * 1.5)
            if required_daily_hours > max_daily_capacity:
                probability *= 0.3
                recommendations.append("Consider extending deadline or reducing scope")
            elif required_daily_hours > current_velocity * 1.2:
                probability *= 0.6
                recommendations.append("Increase daily study time significantly")
            elif required_daily_hours > current_velocity:
                probability *= 0.8
                recommendations.append("Increase daily study time moderately")

            probability = max(0.1, probability - (subject.difficulty - 3) * 0.1)
            if subject.difficulty >= 4:
                recommendations.append("Focus on understanding fundamentals first")

            recent = _recent(
                [session for session in sessions if session.subject_id == subject.id],
                now,
                RECENT_WINDOW_DAYS,
            )
            if not recent:
                probability *= 0.7
                recommendations.append("Start studying this subject immediately")
            elif mean(session.effectiveness for session in recent) < 3:
                probability *= 0.8
                recommendations.append("Review study methods and materials")

            if days_remaining <= CRITICAL_DEADLINE_DAYS:
                probability *= 0.7
                recommendations.append("Emergency study mode - focus on key topics only")
            elif days_remaining <= NEAR_DEADLINE_DAYS:
                probability *= 0.85
                recommendations.append("Prioritize this subject in daily schedule")

            predictions.append(
                DeadlinePrediction(
                    subject_id=subject.id,
                    subject_name=subject.name,
                    deadline=subject.deadline,
                    success_probability=round2(clamp(probability, SUCCESS_FLOOR, SUCCESS_CEILING)),
                    required_daily_hours=round2(required_daily_hours),
                    recommendations=recommendations[:2],
                )
            )
        predictions.sort(key=lambda prediction: prediction.success_probability)
        return predictions

    def predict_topic_retention(
        self,
        topic: Topic,
        topic_sessions: Sequence[StudySession],
        subject: Subject,
        *,
        now: datetime,
    ) -> TopicRetentionPrediction:
        if not topic_sessions:
            return TopicRetentionPrediction(
                topic_id=topic.id,
                next_review_date=add_days(now, 1),
                confidence=0.5,
                retention_probability=0.5,
                optimal_interval_days=1.0,
            )

        last_session = max(topic_sessions, key=lambda session: session.start_time)
        days_since = days_between(now, last_session.start_time)
        avg_effectiveness = mean(session.effectiveness for session in topic_sessions)
        session_count = len(topic_sessions)

        memory_strength = (
            (avg_effectiveness / 5) * math.log(session_count + 1) * (6 - subject.difficulty) / 5
        )
        base_retention = math.exp(-days_since / max(1.0, memory_strength * 7))
        retention = base_retention * (6 - topic.difficulty) / 5
        optimal_interval = clamp(memory_strength * 7, 1, MAX_RETENTION_INTERVAL_DAYS)
        confidence = min(1.0, session_count / 5) * (avg_effectiveness / 5)

        return TopicRetentionPrediction(
            topic_id=topic.id,
            next_review_date=add_days(last_session.start_time, round_half_up(optimal_interval)),
            confidence=round2(confidence),
            retention_probability=round2(clamp(retention, 0.1, 1.0)),
            optimal_interval_days=round2(optimal_interval),
        )

    def predict_review_intervals(
        self,
        subject: Subject,
        sessions: Sequence[StudySession],
        *,
        now: datetime,
    ) -> Dict[str, TopicRetentionPrediction]:
        return {
            topic.id: self.predict_topic_retention(
                topic,
                [session for session in sessions if session.topic_id == topic.id],
                subject,
                now=now,
            )
            for topic in subject.topics
        }

    def predict_schedule_effectiveness(
        self,
        planned: Sequence[ScheduledSession],
        pattern: ProductivityPattern,
    ) -> ScheduleEffectivenessPrediction:
        by_day: Dict[str, List[ScheduledSession]] = defaultdict(list)
        for session in planned:
            by_day[day_key(session.start_time)].append(session)

        daily: List[DayEffectiveness] = []
        warnings: List[str] = []
        for key in sorted(by_day):
            day_sessions = by_day[key]
            day = day_sessions[0].start_time
            total_minutes = sum(session.duration for session in day_sessions)
            avg_load = mean(session.cognitive_load for session in day_sessions)
            day_productivity = pattern.day_of_week_productivity.get(day_of_week_name(day), 0.7)
            hour_weighted = 0.0
            if total_minutes > 0:
                hour_weighted = sum(
                    pattern.productivity_at(session.start_time.hour) * (session.duration / total_minutes)
                    for session in day_sessions
                )
            predicted = day_productivity * hour_weighted * max(0.5, 1.2 - avg_load / 5)
            burnout = clamp((total_minutes / 60 - BURNOUT_ONSET_HOURS) / BURNOUT_ONSET_HOURS, 0.0, 1.0)

            daily.append(
                DayEffectiveness(
                    day=day,
                    predicted_productivity=round2(predicted),
                    cognitive_load_score=round2(avg_load),
                    burnout_risk=round2(burnout),
                )
            )
            label = day.strftime("%b %d")
            if burnout > 0.7:
                warnings.append(f"{label}: High burnout risk - consider reducing study load")
            if avg_load > 4:
                warnings.append(f"{label}: Very high cognitive load - balance with easier subjects")

        overall = mean(entry.predicted_productivity for entry in daily)
        return ScheduleEffectivenessPrediction(
            overall_effectiveness=round2(overall),
            daily_predictions=daily,
            recommendations=warnings[:5],
        )

    def _weekly_velocities(self, sessions: Sequence[StudySession], now: datetime) -> List[float]:
        velocities: List[float] = []
        for week in range(VELOCITY_HISTORY_WEEKS):
            newest, oldest = 7 * 24 * week, 7 * 24 * (week + 1)
            minutes = sum(
                session.duration
                for session in sessions
                if newest < hours_between(now, session.start_time) <= oldest
            )
            velocities.insert(0, minutes / 60 / 7)
        return [velocity for velocity in velocities if velocity > 0]

    def _velocity_trend(self, velocities: List[float]) -> str:
        recent = velocities[-TREND_WINDOW_WEEKS:]
        earlier = velocities[-2 * TREND_WINDOW_WEEKS : -TREND_WINDOW_WEEKS]
        if len(recent) < TREND_WINDOW_WEEKS or len(earlier) < TREND_WINDOW_WEEKS:
            return "stable"
        earlier_avg = mean(earlier)
        if earlier_avg <= 0:
            return "stable"
        change = (mean(recent) - earlier_avg) / earlier_avg
        if change > TREND_THRESHOLD:
            return "increasing"
        if change < -TREND_THRESHOLD:
            return "decreasing"
        return "stable"

    def _motivation_score(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        now: datetime,
    ) -> float:
        recent = _recent(sessions, now, RECENT_WINDOW_DAYS)
        if not recent:
            return NO_RECENT_MOTIVATION
        active_days = len({day_key(localize(session.start_time, now.tzinfo)) for session in recent})
        consistency = active_days / RECENT_WINDOW_DAYS
        effectiveness = mean(session.effectiveness for session in recent) / 5
        progress = mean(subject.progress_ratio for subject in subjects)
        return consistency * 0.4 + effectiveness * 0.4 + progress * 0.2

    def _difficulty_impact(self, subjects: Sequence[Subject], sessions: Sequence[StudySession]) -> float:
        if not sessions:
            return 0.0
        difficulties = {subject.id: subject.difficulty for subject in subjects}
        avg_difficulty = mean(difficulties.get(session.subject_id, 3) for session in sessions)
        avg_effectiveness = mean(session.effectiveness for session in sessions)
        return (5 - avg_difficulty) / 5 * (avg_effectiveness / 5)

    def _consistency_score(self, sessions: Sequence[StudySession], now: datetime) -> float:
        if len(sessions) < MIN_SESSIONS_FOR_VELOCITY:
            return 0.5
        daily_hours: Dict[str, float] = defaultdict(float)
        for session in _recent(sessions, now, CONSISTENCY_WINDOW_DAYS):
            daily_hours[day_key(localize(session.start_time, now.tzinfo))] += session.duration / 60
        hours = list(daily_hours.values())
        if not hours:
            return 0.0
        avg = mean(hours)
        if avg <= 0:
            return 0.0
        deviation = math.sqrt(mean((value - avg) ** 2 for value in hours))
        return max(0.0, 1 - deviation / avg)


def _recent(sessions: Sequence[StudySession], now: datetime, days: int) -> List[StudySession]:
    return [session for session in sessions if days_between(now, session.start_time) <= days]


performance_predictor = PerformancePredictor()

__all__ = ["PerformancePredictor", "performance_predictor"]
