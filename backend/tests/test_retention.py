from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from studyplan.dates import add_days, start_of_day
from studyplan.models import StudySession, Topic
from studyplan.retention import MIN_EASE_FACTOR, RetentionModel
from studyplan.stats import round_half_up

NOW = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


def _topic(
    topic_id: str = "t1",
    *,
    last_reviewed: Optional[datetime] = None,
    review_interval: int = 1,
    review_count: int = 0,
    ease_factor: float = 2.5,
    difficulty: int = 3,
    mastery_level: float = 0.0,
) -> Topic:
    return Topic(
        id=topic_id,
        subject_id="s1",
        name=f"Topic {topic_id}",
        difficulty=difficulty,
        mastery_level=mastery_level,
        review_interval=review_interval,
        review_count=review_count,
        ease_factor=ease_factor,
        last_reviewed=last_reviewed,
    )


def _session(topic_id: str, effectiveness: int, days_ago: int = 1) -> StudySession:
    start = NOW - timedelta(days=days_ago)
    return StudySession(
        id=f"sess-{topic_id}-{days_ago}",
        subject_id="s1",
        topic_id=topic_id,
        start_time=start,
        end_time=start + timedelta(minutes=45),
        duration=45,
        effectiveness=effectiveness,
    )


def test_failed_recall_resets_interval_and_count() -> None:
    model = RetentionModel()
    for quality in (0, 1, 2):
        result = model.next_review(quality, ease_factor=2.2, interval=12, review_count=4, now=NOW)
        assert result.interval == 1
        assert result.review_count == 0
        assert result.next_review_date == NOW + timedelta(days=1)


def test_ease_factor_never_drops_below_floor() -> None:
    model = RetentionModel()
    ease = 2.5
    for _ in range(10):
        result = model.next_review(0, ease_factor=ease, now=NOW)
        assert result.ease_factor >= MIN_EASE_FACTOR
        ease = result.ease_factor
    assert ease == pytest.approx(MIN_EASE_FACTOR)


def test_three_perfect_reviews_follow_sm2_intervals() -> None:
    model = RetentionModel()
    first = model.next_review(5, 2.5, 1, 0, now=NOW)
    second = model.next_review(5, first.ease_factor, first.interval, first.review_count, now=NOW)
    third = model.next_review(5, second.ease_factor, second.interval, second.review_count, now=NOW)

    assert [first.interval, second.interval] == [1, 6]
    assert third.ease_factor == pytest.approx(2.8)
    assert third.interval == round_half_up(6 * third.ease_factor)
    assert 15 <= third.interval <= 17
    assert third.review_count == 3
    assert third.next_review_date == NOW + timedelta(days=third.interval)


def test_quality_is_clamped_to_valid_range() -> None:
    model = RetentionModel()
    high = model.next_review(9, 2.5, 1, 0, now=NOW)
    perfect = model.next_review(5, 2.5, 1, 0, now=NOW)
    assert high == perfect


def test_never_reviewed_topics_are_always_due() -> None:
    model = RetentionModel()
    fresh = _topic("fresh")
    recent = _topic("recent", last_reviewed=NOW - timedelta(days=2), review_interval=3)
    overdue = _topic("overdue", last_reviewed=NOW - timedelta(days=3), review_interval=3)

    due = model.due_for_review([overdue, recent, fresh], now=NOW)

    assert [topic.id for topic in due] == ["overdue", "fresh"]


def test_retention_probability_strictly_decreases_with_time() -> None:
    model = RetentionModel()
    values = [model.retention_probability(days, 2.5) for days in range(0, 31)]
    assert values[0] == pytest.approx(1.0)
    assert all(earlier > later for earlier, later in zip(values, values[1:]))
    assert model.retention_probability(math.inf, 2.5) == 0.0


def test_retention_probability_with_zero_strength_is_zero() -> None:
    assert RetentionModel().retention_probability(1, 2.5, initial_strength=0) == 0.0


def test_mastery_is_zero_without_topic_sessions() -> None:
    model = RetentionModel()
    topic = _topic(review_count=8)
    assert model.mastery_level(topic, [_session("other", 5)]) == 0.0


def test_mastery_blends_reviews_ease_and_recent_effectiveness() -> None:
    model = RetentionModel()
    topic = _topic(review_count=5, ease_factor=2.5)
    sessions = [_session("t1", 4, days_ago=1), _session("t1", 4, days_ago=2)]

    assert model.mastery_level(topic, sessions) == pytest.approx(0.4 * 0.5 + 0.3 * 1.0 + 0.3 * 0.8)


def test_adaptive_review_compresses_overdue_intervals() -> None:
    model = RetentionModel()
    topic = _topic(last_reviewed=NOW - timedelta(days=30), review_interval=6, review_count=2)

    result = model.adaptive_review(topic, [], now=NOW)

    # Quality 3 gives ease 2.36 and interval 14; 30 days overdue compresses it to 11.
    assert result.ease_factor == pytest.approx(2.36)
    assert result.interval == 11
    assert result.next_review_date == NOW + timedelta(days=11)


def test_adaptive_review_keeps_interval_when_not_overdue() -> None:
    model = RetentionModel()
    topic = _topic(last_reviewed=NOW - timedelta(days=6), review_interval=6, review_count=2)

    result = model.adaptive_review(topic, [], now=NOW)

    assert result.interval == 14


def test_low_retention_rate_can_push_recall_below_passing() -> None:
    model = RetentionModel()
    topic = _topic(review_interval=6, review_count=3, last_reviewed=NOW - timedelta(days=1))
    sessions = [_session("t1", 3, days_ago=1)]

    lenient = model.adaptive_review(topic, sessions, user_retention_rate=0.8, now=NOW)
    strict = model.adaptive_review(topic, sessions, user_retention_rate=0.6, now=NOW)

    assert lenient.review_count == 4
    assert strict.interval == 1
    assert strict.review_count == 0


def test_adaptive_review_uses_latest_session_for_quality() -> None:
    model = RetentionModel()
    topic = _topic(review_count=1, last_reviewed=NOW - timedelta(days=1))
    sessions = [_session("t1", 1, days_ago=5), _session("t1", 5, days_ago=1)]

    result = model.adaptive_review(topic, sessions, now=NOW)

    assert result.interval == 6


def test_prioritize_reviews_is_stable_and_capped() -> None:
    model = RetentionModel()
    topics = [_topic(f"t{index}") for index in range(5)]

    ranked = model.prioritize_reviews(topics, [], max_per_day=3, now=NOW)

    assert [topic.id for topic in ranked] == ["t0", "t1", "t2"]


def test_prioritize_reviews_favours_hard_forgotten_topics() -> None:
    model = RetentionModel()
    easy = _topic("easy", last_reviewed=NOW, difficulty=1, mastery_level=0.9)
    hard = _topic("hard", difficulty=5)

    ranked = model.prioritize_reviews([easy, hard], [], now=NOW)

    assert [topic.id for topic in ranked] == ["hard", "easy"]


def test_update_topic_after_session_returns_new_state() -> None:
    model = RetentionModel()
    topic = _topic()
    session = _session("t1", 5, days_ago=1)

    updated = model.update_topic_after_session(topic, session)

    assert updated is not topic
    assert topic.review_count == 0
    assert topic.last_reviewed is None
    assert updated.review_count == 1
    assert updated.review_interval == 1
    assert updated.last_reviewed == session.start_time
    assert 0.0 < updated.mastery_level <= 1.0


def test_review_calendar_places_new_topic_on_next_day() -> None:
    model = RetentionModel()
    calendar = model.review_calendar([_topic()], [], days_ahead=7, now=NOW)

    assert len(calendar) == 1
    assert calendar[0].day == add_days(start_of_day(NOW), 1)
    assert [topic.id for topic in calendar[0].topics] == ["t1"]


def test_review_calendar_orders_topics_by_mastery() -> None:
    model = RetentionModel()
    strong = _topic("strong", mastery_level=0.9)
    weak = _topic("weak", mastery_level=0.1)

    calendar = model.review_calendar([strong, weak], [], days_ahead=3, now=NOW)

    assert [topic.id for topic in calendar[0].topics] == ["weak", "strong"]
