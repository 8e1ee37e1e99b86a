"""Adaptive study scheduling and retention engine."""

from .errors import DuplicateIdentifierError, InvalidTimeBlockError, StudyPlanError, UnknownSubjectError
from .predictor import PerformancePredictor, performance_predictor
from .productivity import ProductivityPatternAnalyzer, productivity_analyzer
from .recommendations import RecommendationEngine
from .retention import RetentionModel, retention_model
from .risk import RiskAnalyzer, risk_analyzer
from .schedule_optimizer import DaySchedule, ScheduleOptimizer, SchedulingConstraints, schedule_optimizer
from .techniques import TechniqueAdvisor, technique_advisor

__all__ = [
    "DaySchedule",
    "DuplicateIdentifierError",
    "InvalidTimeBlockError",
    "PerformancePredictor",
    "ProductivityPatternAnalyzer",
    "RecommendationEngine",
    "RetentionModel",
    "RiskAnalyzer",
    "ScheduleOptimizer",
    "SchedulingConstraints",
    "StudyPlanError",
    "TechniqueAdvisor",
    "UnknownSubjectError",
    "performance_predictor",
    "productivity_analyzer",
    "retention_model",
    "risk_analyzer",
    "schedule_optimizer",
    "technique_advisor",
]
