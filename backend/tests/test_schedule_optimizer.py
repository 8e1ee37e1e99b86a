from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from studyplan.dates import at_time
from studyplan.errors import UnknownSubjectError
from studyplan.ids import SequentialIdProvider
from studyplan.models import StudySession, StudyTask, Subject, TimeBlock, Topic, UserPreferences
from studyplan.productivity import ProductivityPatternAnalyzer
from studyplan.schedule_optimizer import (
    MIN_SESSION_MINUTES,
    ScheduleOptimizer,
    SchedulingConstraints,
    streak_days,
)
from studyplan.telemetry import capture_events

# Monday morning.
NOW = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


def _optimizer() -> ScheduleOptimizer:
    return ScheduleOptimizer(id_provider=SequentialIdProvider())


def _subject(
    subject_id: str = "s1",
    *,
    name: str = "Biology",
    days_left: int = 20,
    estimated_hours: float = 3,
    completed_hours: float = 0,
    difficulty: int = 3,
    priority: int = 2,
    cognitive_load: int = 3,
    topics: Optional[List[Topic]] = None,
) -> Subject:
    return Subject(
        id=subject_id,
        name=name,
        deadline=NOW + timedelta(days=days_left),
        priority=priority,
        difficulty=difficulty,
        estimated_hours=estimated_hours,
        completed_hours=completed_hours,
        cognitive_load=cognitive_load,
        topics=topics or [],
    )


def _topic(topic_id: str, subject_id: str = "s1", *, reviewed: bool = True, completed: bool = False) -> Topic:
    return Topic(
        id=topic_id,
        subject_id=subject_id,
        name=topic_id,
        completed=completed,
        last_reviewed=NOW if reviewed else None,
    )


def _task(
    task_id: str,
    *,
    difficulty: int = 3,
    priority: int = 2,
    cognitive_load: int = 3,
    remaining: int = 45,
    optimal: int = 45,
    days: int = 20,
    review: bool = False,
) -> StudyTask:
    return StudyTask(
        id=task_id,
        subject_id="s1",
        topic_ids=[],
        difficulty=difficulty,
        priority=priority,
        cognitive_load=cognitive_load,
        remaining_minutes=remaining,
        optimal_session_length=optimal,
        days_until_deadline=days,
        is_review_due=review,
    )


def _preferences(**overrides) -> UserPreferences:
    values = dict(
        weekday_study_hours=[TimeBlock(start="09:00", end="12:00"), TimeBlock(start="14:00", end="17:00")],
        weekend_study_hours=[TimeBlock(start="10:00", end="12:00")],
        session_length=45,
        max_daily_hours=4,
        min_break_between_sessions=10,
    )
    values.update(overrides)
    return UserPreferences(**values)


def _pattern():
    return ProductivityPatternAnalyzer().default_pattern()


def test_study_tasks_cycle_topics_across_chunks() -> None:
    subject = _subject(estimated_hours=3, topics=[_topic("a"), _topic("b")])

    tasks = _optimizer().generate_study_tasks([subject], [], now=NOW)

    assert len(tasks) == 4
    assert [task.topic_ids for task in tasks] == [["a"], ["b"], ["a"], ["b"]]
    assert all(task.remaining_minutes == 45 and not task.is_review_due for task in tasks)
    assert all(task.optimal_session_length == 30 for task in tasks)
    assert all(task.days_until_deadline == 20 for task in tasks)


def test_study_tasks_split_many_topics_between_chunks() -> None:
    topics = [_topic(f"t{index}") for index in range(6)]
    subject = _subject(estimated_hours=1.5, difficulty=2, topics=topics)

    tasks = _optimizer().generate_study_tasks([subject], [], now=NOW)

    assert [task.topic_ids for task in tasks] == [["t0", "t1", "t2"], ["t3", "t4", "t5"]]
    assert all(task.recommended_technique == "interleaving" for task in tasks)
    assert all(task.optimal_session_length == 30 for task in tasks)


def test_chunk_technique_and_length_follow_subject() -> None:
    hard = _subject("hard", difficulty=5, estimated_hours=0.75, topics=[_topic(f"h{i}", "hard") for i in range(6)])
    maths = _subject("maths", name="Applied Math", estimated_hours=0.75, topics=[_topic("m1", "maths")])

    tasks = _optimizer().generate_study_tasks([hard, maths], [], now=NOW)
    by_subject = {task.subject_id: task for task in tasks}

    assert by_subject["hard"].recommended_technique == "feynman"
    assert by_subject["hard"].optimal_session_length == 120
    assert by_subject["maths"].recommended_technique == "practice-problems"


def test_review_tasks_for_due_topics_of_urgent_subject() -> None:
    subject = _subject(days_left=5, priority=3, cognitive_load=1, topics=[_topic("a", reviewed=False, completed=True)])

    tasks = _optimizer().generate_study_tasks([subject], [], now=NOW)

    assert len(tasks) == 1
    review = tasks[0]
    assert review.is_review_due
    assert review.topic_ids == ["a"]
    assert review.priority == 1
    assert review.cognitive_load == 1
    assert review.remaining_minutes == 20
    assert review.optimal_session_length == 20
    assert review.recommended_technique == "active-recall"


def test_finished_subjects_produce_no_tasks() -> None:
    subject = _subject(estimated_hours=5, completed_hours=5, topics=[_topic("a", reviewed=False)])
    assert _optimizer().generate_study_tasks([subject], [], now=NOW) == []


def test_subject_without_topics_still_gets_study_chunks() -> None:
    tasks = _optimizer().generate_study_tasks([_subject(estimated_hours=1)], [], now=NOW)

    assert len(tasks) == 2
    assert all(task.topic_ids == [] for task in tasks)
    assert all(task.optimal_session_length == 45 for task in tasks)


def test_study_tasks_reject_sessions_for_unknown_subjects() -> None:
    ghost = StudySession(id="x", subject_id="ghost", start_time=NOW - timedelta(days=1), duration=30)
    with pytest.raises(UnknownSubjectError) as excinfo:
        _optimizer().generate_study_tasks([_subject()], [ghost], now=NOW)
    assert excinfo.value.subject_ids == ["ghost"]


def test_prioritize_puts_reviews_and_deadlines_first() -> None:
    tasks = [
        _task("later", days=25),
        _task("review", days=25, review=True),
        _task("soon", days=3),
        _task("later-twin", days=25),
    ]

    ordered = _optimizer().prioritize_study_tasks(tasks)

    assert [task.id for task in ordered] == ["soon", "review", "later", "later-twin"]
    assert [task.id for task in tasks][0] == "later"


def test_select_optimal_task_breaks_ties_by_input_order() -> None:
    constraints = SchedulingConstraints.from_preferences(_preferences())
    tasks = [_task("first"), _task("second")]

    chosen = _optimizer().select_optimal_task(tasks, 9, 60, _pattern(), constraints)

    assert chosen is not None and chosen.id == "first"


def test_select_optimal_task_only_considers_fitting_tasks() -> None:
    constraints = SchedulingConstraints.from_preferences(_preferences())
    tasks = [_task("long", optimal=90, review=True), _task("short", optimal=30)]

    optimizer = _optimizer()
    assert optimizer.select_optimal_task(tasks, 9, 45, _pattern(), constraints).id == "short"
    assert optimizer.select_optimal_task(tasks, 9, 20, _pattern(), constraints) is None


def test_select_optimal_task_respects_evening_load_ceiling() -> None:
    constraints = SchedulingConstraints.from_preferences(_preferences())
    tasks = [_task("heavy", cognitive_load=5), _task("light", cognitive_load=2)]

    optimizer = _optimizer()
    assert optimizer.select_optimal_task(tasks, 9, 60, _pattern(), constraints).id == "heavy"
    assert optimizer.select_optimal_task(tasks, 20, 60, _pattern(), constraints).id == "light"


def test_schedule_day_sessions_are_long_enough_and_disjoint() -> None:
    optimizer = _optimizer()
    preferences = _preferences(max_daily_hours=8)
    constraints = SchedulingConstraints.from_preferences(preferences)
    tasks = [_task(f"task-{index}", optimal=30 + 15 * (index % 4), review=index % 3 == 0) for index in range(12)]
    tasks[0] = _task("task-0", optimal=20, remaining=20, review=True)
    before = [task.model_copy() for task in tasks]

    day = optimizer.schedule_day_optimally(
        tasks, preferences.weekday_study_hours, NOW, _pattern(), constraints, now=NOW
    )

    assert day.sessions
    assert all(session.duration >= MIN_SESSION_MINUTES for session in day.sessions)
    ordered = sorted(day.sessions, key=lambda session: session.start_time)
    for earlier, later in zip(ordered, ordered[1:]):
        assert earlier.end_time <= later.start_time
    for session in day.sessions:
        inside = any(
            at_time(NOW, block.start) <= session.start_time and session.end_time <= at_time(NOW, block.end)
            for block in preferences.weekday_study_hours
        )
        assert inside
    assert tasks == before
    assert day.scheduled_minutes <= 8 * 60


def test_schedule_day_gives_reviews_a_full_slot() -> None:
    optimizer = _optimizer()
    preferences = _preferences()
    constraints = SchedulingConstraints.from_preferences(preferences)
    review = _task("review", optimal=20, remaining=20, review=True)

    day = optimizer.schedule_day_optimally(
        [review], [TimeBlock(start="09:00", end="10:00")], NOW, _pattern(), constraints
    )

    assert [session.duration for session in day.sessions] == [30]
    assert day.sessions[0].is_review
    assert day.remaining_tasks == []


def test_schedule_day_skips_time_before_now() -> None:
    optimizer = _optimizer()
    preferences = _preferences()
    constraints = SchedulingConstraints.from_preferences(preferences)
    late_morning = NOW.replace(hour=10, minute=30)

    day = optimizer.schedule_day_optimally(
        [_task("a"), _task("b")],
        [TimeBlock(start="09:00", end="12:00")],
        late_morning,
        _pattern(),
        constraints,
        now=late_morning,
    )

    assert day.sessions
    assert all(session.start_time >= late_morning for session in day.sessions)


def test_schedule_day_ignores_unavailable_blocks_and_caps_daily_minutes() -> None:
    optimizer = _optimizer()
    preferences = _preferences(max_daily_hours=1)
    constraints = SchedulingConstraints.from_preferences(preferences)
    blocks = [TimeBlock(start="06:00", end="08:00", available=False), TimeBlock(start="09:00", end="17:00")]
    tasks = [_task(f"t{index}", optimal=30) for index in range(6)]

    day = optimizer.schedule_day_optimally(tasks, blocks, NOW, _pattern(), constraints)

    assert day.scheduled_minutes <= 60
    assert all(session.start_time.hour >= 9 for session in day.sessions)


def test_weekend_days_use_weekend_blocks() -> None:
    constraints = SchedulingConstraints.from_preferences(_preferences())
    saturday = NOW + timedelta(days=5)

    blocks = constraints.blocks_for(saturday)

    assert [(block.start, block.end) for block in blocks] == [("10:00", "12:00")]
    assert len(constraints.blocks_for(NOW)) == 2


def test_generate_optimal_schedule_is_reproducible_and_emits_event() -> None:
    with capture_events() as events:
        subjects = [
            _subject("bio", estimated_hours=6, topics=[_topic("cells", "bio"), _topic("genes", "bio", reviewed=False)]),
            _subject("chem", name="Chemistry", days_left=4, estimated_hours=3, difficulty=4),
        ]
        first = _optimizer().generate_optimal_schedule(subjects, [], _preferences(), _pattern(), 7, now=NOW)
        second = _optimizer().generate_optimal_schedule(subjects, [], _preferences(), _pattern(), 7, now=NOW)

    assert first.model_dump() == second.model_dump()
    assert first.schedule
    assert first.valid_until == NOW + timedelta(days=7)
    assert first.total_estimated_hours == pytest.approx(sum(s.duration for s in first.schedule) / 60)
    assert all(session.start_time >= NOW for session in first.schedule)
    assert first.adaptive_factors.difficulty_progression.current_level == pytest.approx(3.5)
    assert first.adaptive_factors.motivation_factors.last_motivation_score == 4
    assert [event.name for event in events] == ["study_plan_generated", "study_plan_generated"]
    assert events[0].payload["status"] == "success"
    assert events[0].payload["session_count"] == len(first.schedule)


def test_overbooked_plan_loses_confidence() -> None:
    subject = _subject(estimated_hours=10, topics=[_topic("a")])
    preferences = _preferences(max_daily_hours=1)

    plan = _optimizer().generate_optimal_schedule([subject], [], preferences, _pattern(), 2, now=NOW)

    assert sum(session.duration for session in plan.schedule) == 120
    assert plan.confidence == pytest.approx(0.6)
    assert plan.unscheduled_minutes > 0


def test_lightly_booked_plan_keeps_base_confidence() -> None:
    subject = _subject(estimated_hours=1, topics=[_topic("a")])

    plan = _optimizer().generate_optimal_schedule([subject], [], _preferences(), _pattern(), 14, now=NOW)

    assert plan.confidence == pytest.approx(0.8)
    assert plan.unscheduled_minutes == 0


def test_streak_counts_back_from_today() -> None:
    sessions = [
        StudySession(id=f"s{days}", subject_id="s1", start_time=NOW - timedelta(days=days), duration=30)
        for days in (0, 1, 2, 4)
    ]
    assert streak_days(sessions, NOW) == 3
    assert streak_days(sessions[1:], NOW) == 0


def test_streak_reads_days_in_the_timezone_of_now() -> None:
    eastern = timezone(timedelta(hours=-5))
    now = datetime(2024, 3, 4, 21, 30, tzinfo=eastern)
    # Mar 4 20:00 and Mar 3 18:00 in the eastern zone.
    sessions = [
        StudySession(id="late", subject_id="s1", start_time=datetime(2024, 3, 5, 1, 0, tzinfo=timezone.utc)),
        StudySession(id="early", subject_id="s1", start_time=datetime(2024, 3, 3, 23, 0, tzinfo=timezone.utc)),
    ]

    assert streak_days(sessions, now) == 2
    assert streak_days(sessions, now.astimezone(timezone.utc)) == 1
