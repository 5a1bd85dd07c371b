"""Data models for allocation rules, drafts and distributions."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Union

AgentId = Union[int, str]

DEFAULT_PRIORITY = 1
DEFAULT_MAX_CASES_PER_AGENT = 50

# Days-past-due ranges a rule can optionally be limited to
DPD_BUCKETS = ("0-30", "30-60", "60-90", "90+")


class RuleType(Enum):
    """How a rule distributes unallocated cases."""

    GEOGRAPHY = "GEOGRAPHY"
    CAPACITY_BASED = "CAPACITY_BASED"
    PERCENTAGE_SPLIT = "PERCENTAGE_SPLIT"


class WizardStep(Enum):
    """Configuration steps of the rule wizard."""

    BASIC = "basic"
    TYPE = "type"
    GEOGRAPHY = "geography"
    AGENTS = "agents"
    REVIEW = "review"


class RuleStatus(Enum):
    """Lifecycle status of a persisted rule."""

    DRAFT = "DRAFT"
    READY_FOR_APPLY = "READY_FOR_APPLY"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


@dataclass(frozen=True)
class AllocationRule:
    """A rule as persisted by the backend.

    Identity fields (id, created_at, created_by) never change. Updating the
    configuration yields a new instance carrying the same id.
    """

    id: int
    name: str
    rule_type: RuleType
    priority: int = DEFAULT_PRIORITY
    status: RuleStatus = RuleStatus.DRAFT
    description: str = ""

    # Geography filter
    states: List[str] = field(default_factory=list)
    cities: List[str] = field(default_factory=list)
    buckets: List[str] = field(default_factory=list)

    # Agent assignment
    agent_ids: List[AgentId] = field(default_factory=list)
    percentages: List[int] = field(default_factory=list)
    max_cases_per_agent: Optional[int] = None

    # Audit
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def with_configuration(self, **changes) -> "AllocationRule":
        """Return a new version of this rule with configuration fields changed."""
        for frozen in ("id", "created_at", "created_by"):
            if frozen in changes:
                raise ValueError(f"{frozen} cannot be changed on an existing rule")
        return replace(self, **changes)


@dataclass
class RuleDraft:
    """Mutable, unpersisted rule configuration owned by one wizard."""

    name: str = ""
    description: str = ""
    rule_type: Optional[RuleType] = None
    priority: int = DEFAULT_PRIORITY

    states: List[str] = field(default_factory=list)
    cities: List[str] = field(default_factory=list)
    buckets: List[str] = field(default_factory=list)

    # agent_ids and percentages are parallel lists
    agent_ids: List[AgentId] = field(default_factory=list)
    percentages: List[int] = field(default_factory=list)
    max_cases_per_agent: int = DEFAULT_MAX_CASES_PER_AGENT

    source_rule_id: Optional[int] = None

    @property
    def is_edit(self) -> bool:
        return self.source_rule_id is not None

    @property
    def percentage_total(self) -> int:
        return sum(self.percentages)

    @classmethod
    def from_rule(cls, rule: AllocationRule) -> "RuleDraft":
        """Seed a draft with every configuration field of a persisted rule."""
        percentages = list(rule.percentages)
        # Keep the parallel lists aligned even if the backend omitted percentages
        if len(percentages) < len(rule.agent_ids):
            percentages.extend([0] * (len(rule.agent_ids) - len(percentages)))
        return cls(
            name=rule.name,
            description=rule.description,
            rule_type=rule.rule_type,
            priority=rule.priority,
            states=list(rule.states),
            cities=list(rule.cities),
            buckets=list(rule.buckets),
            agent_ids=list(rule.agent_ids),
            percentages=percentages[:len(rule.agent_ids)],
            max_cases_per_agent=rule.max_cases_per_agent or DEFAULT_MAX_CASES_PER_AGENT,
            source_rule_id=rule.id,
        )


@dataclass
class AgentWorkload:
    """Snapshot of an agent's capacity and current load."""

    agent_id: AgentId
    name: str
    capacity: int
    current_workload: int = 0
    geography: str = ""

    @property
    def available_capacity(self) -> int:
        return max(self.capacity - self.current_workload, 0)

    @property
    def utilization_percentage(self) -> float:
        if self.capacity <= 0:
            return 0.0
        return round(self.current_workload / self.capacity * 100, 1)


@dataclass
class DistributionResult:
    """Per-agent case counts produced by a distribution function."""

    allocations: Dict[AgentId, int] = field(default_factory=dict)
    requested: int = 0
    unallocated: int = 0

    @property
    def total_allocated(self) -> int:
        return sum(self.allocations.values())

    def get(self, agent_id: AgentId) -> int:
        return self.allocations.get(agent_id, 0)


@dataclass
class SimulationResult:
    """Preview of what applying a rule would allocate."""

    matching_case_count: int
    eligible_agents: List[AgentWorkload] = field(default_factory=list)
    suggested_distribution: Dict[AgentId, int] = field(default_factory=dict)
    unallocated: int = 0
    rule_id: Optional[int] = None
    # Degraded data sources or an incomplete draft
    warnings: List[str] = field(default_factory=list)

    @property
    def total_suggested(self) -> int:
        return sum(self.suggested_distribution.values())


@dataclass
class ApplyResult:
    """Outcome of applying a persisted rule."""

    rule_id: int
    total_cases_allocated: int
    allocations: Dict[AgentId, int] = field(default_factory=dict)
    status: Optional[RuleStatus] = None


@dataclass
class GeographyOption:
    """An entry of the state or city catalog."""

    id: int
    code: str
    value: str
    is_active: bool = True
    display_order: int = 0
