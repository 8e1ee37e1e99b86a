"""Domain errors raised for structurally invalid planner input."""

from __future__ import annotations

from typing import Iterable, List


class StudyPlanError(ValueError):
    """Base class for planner input errors."""


class UnknownSubjectError(StudyPlanError):
    """Raised when study sessions reference subjects the caller did not supply."""

    def __init__(self, subject_ids: Iterable[str]) -> None:
        self.subject_ids: List[str] = sorted(set(subject_ids))
        super().__init__(
            "Study sessions reference unknown subject ids: " + ", ".join(self.subject_ids)
        )


class DuplicateIdentifierError(StudyPlanError):
    """Raised when two subjects share an identifier."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Subject id {identifier!r} appears more than once.")


class InvalidTimeBlockError(StudyPlanError):
    """Raised when a time block cannot be parsed as HH:MM."""


__all__ = [
    "DuplicateIdentifierError",
    "InvalidTimeBlockError",
    "StudyPlanError",
    "UnknownSubjectError",
]
