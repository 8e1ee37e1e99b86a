"""Learning risk assessment and adaptive recommendations."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import List, Optional, Sequence

from .dates import add_days, days_between, localize
from .models import (
    AdaptiveRecommendation,
    MitigationStrategy,
    ProductivityPattern,
    RiskAssessment,
    RiskFactor,
    StudySession,
    Subject,
)
from .productivity import peak_hours
from .stats import mean
from .techniques import technique_performance

logger = logging.getLogger(__name__)

URGENT_DEADLINE_DAYS = 7
URGENT_PROGRESS_THRESHOLD = 0.8
BURNOUT_DAILY_HOURS = 8
HEAVY_DAILY_HOURS = 6
HIGH_DIFFICULTY = 4
HIGH_DIFFICULTY_SHARE = 0.6
RISK_WINDOW_DAYS = 7
RECOMMENDATION_WINDOW_DAYS = 14
LOW_EFFECTIVENESS = 3.5
WEAK_TECHNIQUE_SCORE = 3
DEFAULT_SESSION_LENGTH = 45
MAX_ADAPTIVE_RECOMMENDATIONS = 5
_IMPACT_RANK = {"high": 3, "medium": 2, "low": 1}


class RiskAnalyzer:
    """Flags deadline, burnout and difficulty risks and suggests adjustments."""

    def assess(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        *,
        now: datetime,
    ) -> RiskAssessment:
        factors: List[RiskFactor] = []
        strategies: List[MitigationStrategy] = []

        urgent = [
            subject
            for subject in subjects
            if days_between(subject.deadline, now) <= URGENT_DEADLINE_DAYS
            and subject.progress_ratio < URGENT_PROGRESS_THRESHOLD
        ]
        if urgent:
            factors.append(
                RiskFactor(
                    type="deadline_pressure",
                    severity=4,
                    description=f"{len(urgent)} subjects have upcoming deadlines with insufficient progress",
                    affected_subjects=[subject.id for subject in urgent],
                    probability=0.8,
                )
            )
            strategies.append(
                MitigationStrategy(
                    risk_type="deadline_pressure",
                    strategy="Increase daily study time by 50% and focus on high-priority topics",
                    expected_reduction=0.6,
                    implementation_effort="high",
                )
            )

        daily_hours = daily_average_hours(recent_sessions(sessions, now, RISK_WINDOW_DAYS), now.tzinfo)
        if daily_hours > BURNOUT_DAILY_HOURS:
            factors.append(
                RiskFactor(
                    type="burnout_risk",
                    severity=3,
                    description="Studying over 8 hours daily increases burnout risk",
                    affected_subjects=[subject.id for subject in subjects],
                    probability=0.6,
                )
            )
            strategies.append(
                MitigationStrategy(
                    risk_type="burnout_risk",
                    strategy="Implement mandatory breaks and limit daily study time to 6-7 hours",
                    expected_reduction=0.7,
                    implementation_effort="medium",
                )
            )

        hard = [subject for subject in subjects if subject.difficulty >= HIGH_DIFFICULTY]
        if subjects and len(hard) / len(subjects) > HIGH_DIFFICULTY_SHARE:
            factors.append(
                RiskFactor(
                    type="topic_difficulty",
                    severity=3,
                    description="High concentration of difficult subjects may overwhelm learning capacity",
                    affected_subjects=[subject.id for subject in hard],
                    probability=0.5,
                )
            )
            strategies.append(
                MitigationStrategy(
                    risk_type="topic_difficulty",
                    strategy="Interleave difficult topics with easier ones and extend learning timeline",
                    expected_reduction=0.5,
                    implementation_effort="medium",
                )
            )

        overall = _overall_risk(factors)
        if overall != "low":
            logger.info("Learning risk is %s (%s factors)", overall, len(factors))
        return RiskAssessment(overall_risk=overall, risk_factors=factors, mitigation_strategies=strategies)

    def adaptive_recommendations(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
        pattern: ProductivityPattern,
        *,
        now: datetime,
    ) -> List[AdaptiveRecommendation]:
        recent = recent_sessions(sessions, now, RECOMMENDATION_WINDOW_DAYS)
        recommendations: List[AdaptiveRecommendation] = []

        if mean(session.effectiveness for session in recent) < LOW_EFFECTIVENESS:
            hours = ", ".join(str(hour) for hour in peak_hours(pattern))
            recommendations.append(
                AdaptiveRecommendation(
                    type="schedule_adjustment",
                    title="Optimize Study Timing",
                    description=f"Schedule challenging subjects during your peak hours: {hours}:00",
                    reasoning="Your productivity is highest during these times based on historical data",
                    impact="high",
                    action_required=True,
                    implement_by=add_days(now, 7),
                )
            )

        performance = technique_performance(sessions)
        if performance:
            technique, score = min(performance.items(), key=lambda entry: entry[1])
            if score < WEAK_TECHNIQUE_SCORE:
                recommendations.append(
                    AdaptiveRecommendation(
                        type="technique_change",
                        title="Switch Study Technique",
                        description=f'Consider replacing "{technique}" with more effective techniques',
                        reasoning=f"This technique shows lower effectiveness ({score:.1f}/5) compared to others",
                        impact="medium",
                    )
                )

        if pattern.session_length_optimal != DEFAULT_SESSION_LENGTH:
            recommendations.append(
                AdaptiveRecommendation(
                    type="schedule_adjustment",
                    title="Adjust Session Length",
                    description=f"Your optimal session length is {pattern.session_length_optimal} minutes",
                    reasoning="Based on your effectiveness data across different session lengths",
                    impact="medium",
                )
            )

        daily_hours = daily_average_hours(recent, now.tzinfo)
        if daily_hours > HEAVY_DAILY_HOURS:
            recommendations.append(
                AdaptiveRecommendation(
                    type="break_modification",
                    title="Prevent Burnout",
                    description="Consider reducing daily study hours and taking more breaks",
                    reasoning=f"You're averaging {daily_hours:.1f} hours daily, which may lead to burnout",
                    impact="high",
                    action_required=True,
                )
            )

        recommendations.sort(key=lambda item: _IMPACT_RANK[item.impact], reverse=True)
        return recommendations[:MAX_ADAPTIVE_RECOMMENDATIONS]


def recent_sessions(sessions: Sequence[StudySession], now: datetime, days: int) -> List[StudySession]:
    return [session for session in sessions if 0 <= days_between(now, session.start_time) <= days]


def daily_average_hours(sessions: Sequence[StudySession], tz: Optional[tzinfo] = None) -> float:
    """Total hours divided by the calendar days spanned, first and last day included."""
    if not sessions:
        return 0.0
    days = sorted(localize(session.start_time, tz).date() for session in sessions)
    span = (days[-1] - days[0]).days + 1
    return sum(session.duration for session in sessions) / 60 / max(1, span)


def _overall_risk(factors: Sequence[RiskFactor]) -> str:
    if not factors:
        return "low"
    severity = mean(factor.severity for factor in factors)
    if severity >= 4:
        return "high"
    if severity >= 2.5:
        return "medium"
    return "low"


risk_analyzer = RiskAnalyzer()

__all__ = ["RiskAnalyzer", "daily_average_hours", "recent_sessions", "risk_analyzer"]
