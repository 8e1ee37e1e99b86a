"""Value objects exchanged between callers and the planner engine."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .dates import add_minutes, parse_hhmm

StudyTechnique = Literal[
    "active-recall",
    "spaced-repetition",
    "pomodoro",
    "feynman",
    "mind-mapping",
    "flashcards",
    "practice-problems",
    "summarization",
    "teaching-others",
    "interleaving",
]

STUDY_TECHNIQUES: tuple[str, ...] = (
    "active-recall",
    "spaced-repetition",
    "pomodoro",
    "feynman",
    "mind-mapping",
    "flashcards",
    "practice-problems",
    "summarization",
    "teaching-others",
    "interleaving",
)

SubjectCategory = Literal["quantitative", "memorization", "conceptual", "language"]
TimeOfDay = Literal["morning", "afternoon", "evening"]
VelocityTrend = Literal["increasing", "decreasing", "stable"]
RiskLevel = Literal["low", "medium", "high"]
RiskType = Literal["deadline_pressure", "burnout_risk", "topic_difficulty", "time_shortage"]
Impact = Literal["high", "medium", "low"]


class Topic(BaseModel):
    """Single reviewable unit of a subject, carrying its SM-2 state."""

    id: str
    subject_id: str
    name: str = ""
    completed: bool = False
    difficulty: int = Field(default=3, ge=1, le=5)
    mastery_level: float = Field(default=0.0, ge=0.0, le=1.0)
    review_interval: int = Field(default=1, ge=0)
    review_count: int = Field(default=0, ge=0)
    ease_factor: float = Field(default=2.5, ge=1.3)
    last_reviewed: Optional[datetime] = None


class Subject(BaseModel):
    """Course or exam the learner is preparing for."""

    id: str
    name: str
    deadline: datetime
    priority: int = Field(default=2, ge=1, le=3)
    difficulty: int = Field(default=3, ge=1, le=5)
    estimated_hours: float = Field(default=0.0, ge=0.0)
    completed_hours: float = Field(default=0.0, ge=0.0)
    topics: List[Topic] = Field(default_factory=list)
    cognitive_load: int = Field(default=3, ge=1, le=5)
    retention_rate: float = Field(default=0.8, ge=0.0, le=1.0)
    category: Optional[SubjectCategory] = None
    study_techniques: List[StudyTechnique] = Field(default_factory=list)

    @property
    def remaining_hours(self) -> float:
        return self.estimated_hours - self.completed_hours

    @property
    def progress_ratio(self) -> float:
        """Completed share of the estimate, clamped to [0, 1]."""
        if self.estimated_hours <= 0:
            return 1.0
        return max(0.0, min(1.0, self.completed_hours / self.estimated_hours))


class StudySession(BaseModel):
    """Historical study session reported by the learner."""

    id: str
    subject_id: str
    topic_id: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: float = Field(default=0.0, ge=0.0)
    effectiveness: int = Field(default=3, ge=1, le=5)
    technique: StudyTechnique = "active-recall"
    interruptions: int = Field(default=0, ge=0)


class TimeBlock(BaseModel):
    start: str
    end: str
    available: bool = True

    @field_validator("start", "end")
    @classmethod
    def _validate_hhmm(cls, value: str) -> str:
        parse_hhmm(value)
        return value


class UserPreferences(BaseModel):
    peak_hours: List[int] = Field(default_factory=list)
    session_length: int = Field(default=45, ge=1)
    break_length: int = Field(default=15, ge=0)
    weekday_study_hours: List[TimeBlock] = Field(default_factory=list)
    weekend_study_hours: List[TimeBlock] = Field(default_factory=list)
    max_daily_hours: float = Field(default=4.0, ge=0.0)
    min_break_between_sessions: int = Field(default=10, ge=0)

    @field_validator("peak_hours")
    @classmethod
    def _validate_peak_hours(cls, value: List[int]) -> List[int]:
        return [hour for hour in value if 0 <= hour <= 23]


class ProductivityPattern(BaseModel):
    hourly_productivity: Dict[int, float]
    day_of_week_productivity: Dict[str, float]
    session_length_optimal: int = 45
    break_length_optimal: int = 15
    focus_decline_rate: float = 0.02
    is_default: bool = False

    @model_validator(mode="after")
    def _fill_missing_hours(self) -> "ProductivityPattern":
        for hour in range(24):
            self.hourly_productivity.setdefault(hour, 0.5)
        return self

    def productivity_at(self, hour: int) -> float:
        return self.hourly_productivity.get(hour % 24, 0.5)


class ReviewResult(BaseModel):
    interval: int
    ease_factor: float
    review_count: int
    next_review_date: datetime


class ReviewDay(BaseModel):
    day: datetime
    topics: List[Topic] = Field(default_factory=list)


class StudyTask(BaseModel):
    """Ephemeral unit of remaining work consumed by a single scheduling run."""

    id: str
    subject_id: str
    topic_ids: List[str] = Field(default_factory=list)
    difficulty: int = Field(ge=1, le=5)
    priority: int = Field(ge=1, le=3)
    cognitive_load: int = Field(ge=1, le=5)
    remaining_minutes: int = Field(ge=0)
    optimal_session_length: int = Field(ge=1)
    days_until_deadline: int
    is_review_due: bool = False
    recommended_technique: StudyTechnique = "active-recall"


class ScheduledSession(BaseModel):
    id: str
    task_id: str
    subject_id: str
    topic_ids: List[str] = Field(default_factory=list)
    start_time: datetime
    duration: int
    technique: StudyTechnique
    difficulty: int
    priority: int
    cognitive_load: int
    estimated_effectiveness: float = Field(ge=0.0, le=1.0)
    is_review: bool = False

    @property
    def end_time(self) -> datetime:
        return add_minutes(self.start_time, self.duration)


class DifficultyProgression(BaseModel):
    current_level: float
    mastery_threshold: float = 0.8
    progression_rate: float = 0.1
    adaptation_speed: float = 0.2


class MotivationFactors(BaseModel):
    goal_proximity: float = Field(ge=0.0, le=1.0)
    progress_momentum: float = Field(ge=0.0, le=1.0)
    streak_count: int = Field(default=0, ge=0)
    last_motivation_score: int = Field(default=4, ge=1, le=5)


class AdaptiveFactors(BaseModel):
    productivity_pattern: ProductivityPattern
    difficulty_progression: DifficultyProgression
    motivation_factors: MotivationFactors


class StudyPlan(BaseModel):
    id: str
    generated_at: datetime
    valid_until: datetime
    schedule: List[ScheduledSession] = Field(default_factory=list)
    total_estimated_hours: float = 0.0
    confidence: float = Field(ge=0.0, le=1.0)
    unscheduled_minutes: int = 0
    adaptive_factors: AdaptiveFactors


class SubjectCompletionPrediction(BaseModel):
    subject_id: str
    probability: float
    expected_completion_date: Optional[datetime]
    confidence: float
    risk_factors: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class VelocityFactors(BaseModel):
    motivation_score: float
    difficulty_impact: float
    consistency_score: float


class LearningVelocity(BaseModel):
    current_velocity: float
    projected_velocity: float
    velocity_trend: VelocityTrend
    factors: VelocityFactors


class DeadlinePrediction(BaseModel):
    subject_id: str
    subject_name: str
    deadline: datetime
    success_probability: float = Field(ge=0.05, le=0.95)
    required_daily_hours: float
    recommendations: List[str] = Field(default_factory=list)


class LearningOutcomes(BaseModel):
    """Quick completion outlook from the productivity curve alone."""

    subject_completion_probability: Dict[str, float] = Field(default_factory=dict)
    overall_success_rate: float = Field(ge=0.0, le=1.0)
    recommended_adjustments: List[str] = Field(default_factory=list)


class TopicRetentionPrediction(BaseModel):
    topic_id: str
    next_review_date: datetime
    confidence: float
    retention_probability: float
    optimal_interval_days: float


class DayEffectiveness(BaseModel):
    day: datetime
    predicted_productivity: float
    cognitive_load_score: float
    burnout_risk: float


class ScheduleEffectivenessPrediction(BaseModel):
    overall_effectiveness: float
    daily_predictions: List[DayEffectiveness] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class PerformanceMetrics(BaseModel):
    overall_productivity: float
    subject_mastery: Dict[str, float] = Field(default_factory=dict)
    study_velocity: float
    retention_rate: float
    goal_achievement_rate: float
    session_effectiveness: float
    focus_score: float
    streak_days: int
    total_study_hours: float
    sessions_completed: int


class RiskFactor(BaseModel):
    type: RiskType
    severity: int = Field(ge=1, le=5)
    description: str
    affected_subjects: List[str] = Field(default_factory=list)
    probability: float = Field(ge=0.0, le=1.0)


class MitigationStrategy(BaseModel):
    risk_type: RiskType
    strategy: str
    expected_reduction: float = Field(ge=0.0, le=1.0)
    implementation_effort: Impact


class RiskAssessment(BaseModel):
    overall_risk: RiskLevel
    risk_factors: List[RiskFactor] = Field(default_factory=list)
    mitigation_strategies: List[MitigationStrategy] = Field(default_factory=list)


class AdaptiveRecommendation(BaseModel):
    type: Literal["schedule_adjustment", "technique_change", "break_modification", "goal_revision"]
    title: str
    description: str
    reasoning: str
    impact: Impact
    action_required: bool = False
    implement_by: Optional[datetime] = None


class TechniqueSuggestion(BaseModel):
    technique: StudyTechnique
    subject_ids: List[str] = Field(default_factory=list)
    reasoning: str
    expected_improvement: float = Field(ge=0.0, le=1.0)
    confidence_level: float = Field(ge=0.0, le=1.0)


class BreakSuggestion(BaseModel):
    activity: str
    duration: int
    reasoning: str


class DifficultyAdjustment(BaseModel):
    adjustment: Literal["increase", "decrease", "maintain"]
    reasoning: str
    new_difficulty: Optional[int] = None


class StudyInsights(BaseModel):
    """Aggregated bundle returned by the recommendation engine."""

    generated_at: datetime
    recommended_schedule: StudyPlan
    productivity_pattern: ProductivityPattern
    study_technique_suggestions: List[TechniqueSuggestion] = Field(default_factory=list)
    retention_predictions: Dict[str, float] = Field(default_factory=dict)
    optimal_review_times: Dict[str, datetime] = Field(default_factory=dict)
    review_queue: List[Topic] = Field(default_factory=list)
    performance_analysis: PerformanceMetrics
    adaptive_recommendations: List[AdaptiveRecommendation] = Field(default_factory=list)
    risk_assessment: RiskAssessment
    completion_predictions: Dict[str, SubjectCompletionPrediction] = Field(default_factory=dict)
    learning_velocity: LearningVelocity
    deadline_outlook: List[DeadlinePrediction] = Field(default_factory=list)
    learning_outcomes: Optional[LearningOutcomes] = None


__all__ = [
    "AdaptiveFactors",
    "AdaptiveRecommendation",
    "BreakSuggestion",
    "DayEffectiveness",
    "DeadlinePrediction",
    "DifficultyAdjustment",
    "DifficultyProgression",
    "LearningOutcomes",
    "LearningVelocity",
    "MitigationStrategy",
    "MotivationFactors",
    "PerformanceMetrics",
    "ProductivityPattern",
    "ReviewDay",
    "ReviewResult",
    "RiskAssessment",
    "RiskFactor",
    "STUDY_TECHNIQUES",
    "ScheduleEffectivenessPrediction",
    "ScheduledSession",
    "StudyInsights",
    "StudyPlan",
    "StudySession",
    "StudyTask",
    "StudyTechnique",
    "Subject",
    "SubjectCompletionPrediction",
    "TechniqueSuggestion",
    "TimeBlock",
    "Topic",
    "TopicRetentionPrediction",
    "UserPreferences",
    "VelocityFactors",
]
