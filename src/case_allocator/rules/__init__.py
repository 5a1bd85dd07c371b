"""Allocation rule configuration and case distribution."""

from .models import (
    DPD_BUCKETS,
    AgentWorkload,
    AllocationRule,
    ApplyResult,
    DistributionResult,
    GeographyOption,
    RuleDraft,
    RuleStatus,
    RuleType,
    SimulationResult,
    WizardStep,
)
from .registry import RuleTypeRegistry, get_steps
from .distribution import (
    DistributionCalculator,
    capacity_weighted_split,
    distribute_percentages_evenly,
    even_split,
    percentage_split,
)
from .errors import (
    ApiError,
    ComputationInvariantViolation,
    NetworkError,
    PersistenceError,
    ValidationError,
    WizardStateError,
)
from .wizard import WizardStateMachine, validate_step
from .simulation import RuleSimulationPresenter
from .search import GeographySearch

__all__ = [
    "DPD_BUCKETS",
    "AgentWorkload",
    "AllocationRule",
    "ApplyResult",
    "DistributionResult",
    "GeographyOption",
    "RuleDraft",
    "RuleStatus",
    "RuleType",
    "SimulationResult",
    "WizardStep",
    "RuleTypeRegistry",
    "get_steps",
    "DistributionCalculator",
    "capacity_weighted_split",
    "distribute_percentages_evenly",
    "even_split",
    "percentage_split",
    "ApiError",
    "ComputationInvariantViolation",
    "NetworkError",
    "PersistenceError",
    "ValidationError",
    "WizardStateError",
    "WizardStateMachine",
    "validate_step",
    "RuleSimulationPresenter",
    "GeographySearch",
]
