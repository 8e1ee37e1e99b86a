"""Study technique suggestions driven by the engine's rule table."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .engine_config import EngineConfig, TechniqueRule, default_engine_config
from .models import StudySession, Subject, TechniqueSuggestion
from .stats import mean

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.7
EXPERIENCE_BONUS_PER_SESSION = 0.02
MAX_EXPERIENCE_BONUS = 0.2
EXPERIENCE_TECHNIQUES = frozenset({"active-recall", "spaced-repetition", "practice-problems"})


@dataclass
class _Merged:
    technique: str
    reasoning: str
    expected_improvement: float
    subject_ids: List[str] = field(default_factory=list)
    confidences: List[float] = field(default_factory=list)


class TechniqueAdvisor:
    """Matches subjects against technique rules and merges the results per technique."""

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self._config = config or default_engine_config()

    def matching_rules(self, subject: Subject) -> List[TechniqueRule]:
        return [rule for rule in self._config.technique_rules if _rule_matches(rule, subject)]

    def suggest(
        self,
        subjects: Sequence[Subject],
        sessions: Sequence[StudySession],
    ) -> List[TechniqueSuggestion]:
        merged: Dict[str, _Merged] = {}
        for subject in subjects:
            subject_sessions = [session for session in sessions if session.subject_id == subject.id]
            already_used = {session.technique for session in subject_sessions}
            confidence = self._confidence(subject_sessions)
            for rule in self.matching_rules(subject):
                for technique, improvement, reasoning in rule.suggestions:
                    if technique in already_used:
                        continue
                    entry = merged.get(technique)
                    if entry is None:
                        entry = merged[technique] = _Merged(technique, reasoning, improvement)
                    entry.expected_improvement = max(entry.expected_improvement, improvement)
                    if subject.id not in entry.subject_ids:
                        entry.subject_ids.append(subject.id)
                    entry.confidences.append(confidence)

        ranked = sorted(merged.values(), key=lambda entry: entry.expected_improvement, reverse=True)
        suggestions = [
            TechniqueSuggestion(
                technique=entry.technique,
                subject_ids=entry.subject_ids,
                reasoning=entry.reasoning,
                expected_improvement=entry.expected_improvement,
                confidence_level=mean(entry.confidences, default=BASE_CONFIDENCE),
            )
            for entry in ranked[: self._config.max_technique_suggestions]
        ]
        logger.debug("Produced %s technique suggestions from %s candidates", len(suggestions), len(merged))
        return suggestions

    def _confidence(self, subject_sessions: Sequence[StudySession]) -> float:
        experience = sum(1 for session in subject_sessions if session.technique in EXPERIENCE_TECHNIQUES)
        bonus = min(MAX_EXPERIENCE_BONUS, experience * EXPERIENCE_BONUS_PER_SESSION)
        return min(1.0, BASE_CONFIDENCE + bonus)


def technique_performance(sessions: Sequence[StudySession]) -> Dict[str, float]:
    """Mean effectiveness per technique, in first-seen order."""
    scores: Dict[str, List[int]] = defaultdict(list)
    for session in sessions:
        scores[session.technique].append(session.effectiveness)
    return {technique: mean(values) for technique, values in scores.items()}


def _rule_matches(rule: TechniqueRule, subject: Subject) -> bool:
    if rule.min_difficulty is not None and subject.difficulty < rule.min_difficulty:
        return False
    if rule.min_topics is not None and len(subject.topics) < rule.min_topics:
        return False
    if rule.categories or rule.keywords:
        if subject.category is not None:
            return subject.category in rule.categories
        name = subject.name.lower()
        return any(keyword in name for keyword in rule.keywords)
    return True


technique_advisor = TechniqueAdvisor()

__all__ = ["TechniqueAdvisor", "technique_advisor", "technique_performance"]
