"""Structural checks applied before any planner computation runs."""

from __future__ import annotations

from typing import Sequence, Set

from .errors import DuplicateIdentifierError, UnknownSubjectError
from .models import StudySession, Subject


def ensure_unique_subjects(subjects: Sequence[Subject]) -> None:
    seen: Set[str] = set()
    for subject in subjects:
        if subject.id in seen:
            raise DuplicateIdentifierError(subject.id)
        seen.add(subject.id)


def ensure_known_subjects(subjects: Sequence[Subject], sessions: Sequence[StudySession]) -> None:
    """Fail fast when a session points at a subject that was not supplied.

    Orphaned sessions would otherwise be folded into learner-wide averages and
    skew every downstream statistic.
    """
    known = {subject.id for subject in subjects}
    unknown = [session.subject_id for session in sessions if session.subject_id not in known]
    if unknown:
        raise UnknownSubjectError(unknown)


def validate_inputs(subjects: Sequence[Subject], sessions: Sequence[StudySession]) -> None:
    ensure_unique_subjects(subjects)
    ensure_known_subjects(subjects, sessions)


__all__ = ["ensure_known_subjects", "ensure_unique_subjects", "validate_inputs"]
