"""Spaced-repetition scheduling and forgetting-curve estimates for single topics."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .dates import add_days, days_between, same_day, start_of_day
from .models import ReviewDay, ReviewResult, StudySession, Topic
from .stats import clamp, mean, round_half_up

logger = logging.getLogger(__name__)

MIN_EASE_FACTOR = 1.3
MAX_EASE_FACTOR = 2.5
DEFAULT_EASE_FACTOR = 2.5
PASSING_QUALITY = 3
SECOND_INTERVAL_DAYS = 6
OVERDUE_COMPRESSION_THRESHOLD = 1.5
OVERDUE_COMPRESSION_FACTOR = 0.8
DEFAULT_RETENTION_RATE = 0.8
LOW_RETENTION_RATE = 0.7
HIGH_RETENTION_RATE = 0.9
RETENTION_QUALITY_SHIFT = 0.5
MASTERY_REVIEW_SATURATION = 10
MASTERY_RECENT_WINDOW = 5
DEFAULT_REVIEWS_PER_DAY = 10


class RetentionModel:
    """SM-2 review scheduling plus exponential forgetting-curve estimates."""

    def next_review(
        self,
        quality: float,
        ease_factor: float = DEFAULT_EASE_FACTOR,
        interval: int = 1,
        review_count: int = 0,
        *,
        now: datetime,
    ) -> ReviewResult:
        quality = clamp(quality, 0, 5)
        miss = 5 - quality
        new_ease = max(MIN_EASE_FACTOR, ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))

        if quality < PASSING_QUALITY:
            # Failed recall puts the topic back into the learning phase.
            new_interval = 1
            new_count = 0
        else:
            if review_count == 0:
                new_interval = 1
            elif review_count == 1:
                new_interval = SECOND_INTERVAL_DAYS
            else:
                new_interval = round_half_up(interval * new_ease)
            new_count = review_count + 1

        return ReviewResult(
            interval=new_interval,
            ease_factor=new_ease,
            review_count=new_count,
            next_review_date=add_days(now, new_interval),
        )

    def adaptive_review(
        self,
        topic: Topic,
        recent_sessions: Sequence[StudySession],
        user_retention_rate: float = DEFAULT_RETENTION_RATE,
        *,
        now: datetime,
    ) -> ReviewResult:
        latest = _latest_session(session for session in recent_sessions if session.topic_id == topic.id)
        quality: float = latest.effectiveness if latest else PASSING_QUALITY

        if user_retention_rate < LOW_RETENTION_RATE:
            quality -= RETENTION_QUALITY_SHIFT
        elif user_retention_rate > HIGH_RETENTION_RATE:
            quality += RETENTION_QUALITY_SHIFT

        result = self.next_review(
            clamp(quality, 0, 5),
            topic.ease_factor,
            topic.review_interval,
            topic.review_count,
            now=now,
        )

        days_since = days_between(now, topic.last_reviewed) if topic.last_reviewed else 0
        if days_since > result.interval * OVERDUE_COMPRESSION_THRESHOLD:
            compressed = max(1, round_half_up(result.interval * OVERDUE_COMPRESSION_FACTOR))
            logger.debug(
                "Topic %s overdue by %s days; compressing interval %s -> %s",
                topic.id,
                days_since,
                result.interval,
                compressed,
            )
            result = result.model_copy(
                update={"interval": compressed, "next_review_date": add_days(now, compressed)}
            )
        return result

    def retention_probability(
        self,
        days_since_review: float,
        ease_factor: float,
        initial_strength: float = 1.0,
    ) -> float:
        memory_strength = initial_strength * ease_factor
        if memory_strength <= 0:
            return 0.0
        return clamp(math.exp(-days_since_review / memory_strength), 0.0, 1.0)

    def due_for_review(self, topics: Sequence[Topic], *, now: datetime) -> List[Topic]:
        due: List[Topic] = []
        for topic in topics:
            if topic.last_reviewed is None:
                due.append(topic)
                continue
            if days_between(now, topic.last_reviewed) >= topic.review_interval:
                due.append(topic)
        return due

    def mastery_level(self, topic: Topic, sessions: Sequence[StudySession]) -> float:
        topic_sessions = [session for session in sessions if session.topic_id == topic.id]
        if not topic_sessions:
            return 0.0

        review_score = min(1.0, topic.review_count / MASTERY_REVIEW_SATURATION)
        ease_score = (topic.ease_factor - MIN_EASE_FACTOR) / (MAX_EASE_FACTOR - MIN_EASE_FACTOR)
        recent = sorted(topic_sessions, key=lambda session: session.start_time, reverse=True)
        recent = recent[:MASTERY_RECENT_WINDOW]
        recent_score = mean(session.effectiveness for session in recent) / 5

        mastery = review_score * 0.4 + ease_score * 0.3 + recent_score * 0.3
        return clamp(mastery, 0.0, 1.0)

    def prioritize_reviews(
        self,
        topics: Sequence[Topic],
        sessions: Sequence[StudySession],
        max_per_day: int = DEFAULT_REVIEWS_PER_DAY,
        *,
        now: datetime,
    ) -> List[Topic]:
        scored = []
        for topic in topics:
            days_since = days_between(now, topic.last_reviewed) if topic.last_reviewed else math.inf
            retention = self.retention_probability(days_since, topic.ease_factor)
            score = (
                (1 - retention) * 0.4
                + (1 - topic.mastery_level) * 0.3
                + (topic.difficulty / 5) * 0.3
            )
            scored.append((score, topic))
        # sorted() is stable, so equal scores keep their input order.
        ranked = sorted(scored, key=lambda entry: entry[0], reverse=True)
        return [topic for _, topic in ranked[: max(0, max_per_day)]]

    def update_topic_after_session(self, topic: Topic, session: StudySession) -> Topic:
        """Derive the topic's next SM-2 state from a completed session."""
        result = self.next_review(
            session.effectiveness,
            topic.ease_factor,
            topic.review_interval,
            topic.review_count,
            now=session.start_time,
        )
        updated = topic.model_copy(
            update={
                "ease_factor": result.ease_factor,
                "review_interval": result.interval,
                "review_count": result.review_count,
                "last_reviewed": session.start_time,
            }
        )
        mastery = self.mastery_level(updated, [session])
        return updated.model_copy(update={"mastery_level": mastery})

    def review_calendar(
        self,
        topics: Sequence[Topic],
        sessions: Sequence[StudySession],
        days_ahead: int = 30,
        *,
        now: datetime,
        retention_rates: Optional[Dict[str, float]] = None,
        default_rate: float = DEFAULT_RETENTION_RATE,
    ) -> List[ReviewDay]:
        """Per-day review lists for the coming ``days_ahead`` days.

        A topic lands on a day when its adaptive next review falls on that day
        or when it is already overdue by then. Topics within a day are ordered
        from least to most mastered.
        """
        retention_rates = retention_rates or {}
        planned = {
            topic.id: self.adaptive_review(
                topic,
                sessions,
                retention_rates.get(topic.subject_id, default_rate),
                now=now,
            )
            for topic in topics
        }
        calendar: List[ReviewDay] = []
        today = start_of_day(now)
        for offset in range(days_ahead + 1):
            day = add_days(today, offset)
            todays = [
                topic
                for topic in topics
                if same_day(planned[topic.id].next_review_date, day)
                or (
                    topic.last_reviewed is not None
                    and days_between(day, start_of_day(topic.last_reviewed)) >= topic.review_interval
                )
            ]
            if todays:
                todays.sort(key=lambda topic: topic.mastery_level)
                calendar.append(ReviewDay(day=day, topics=todays))
        return calendar


def _latest_session(sessions) -> Optional[StudySession]:
    latest: Optional[StudySession] = None
    for session in sessions:
        if latest is None or session.start_time > latest.start_time:
            latest = session
    return latest


retention_model = RetentionModel()

__all__ = ["RetentionModel", "retention_model"]
