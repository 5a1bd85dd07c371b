"""Pydantic models for the allocation backend's request/response bodies."""

from datetime import datetime
from typing import Optional, List, Dict, Any, Union

from pydantic import BaseModel, ConfigDict, Field

from ..rules.models import (
    AgentWorkload,
    AllocationRule,
    ApplyResult,
    GeographyOption,
    RuleDraft,
    RuleStatus,
    RuleType,
    SimulationResult,
)

AgentIdField = Union[int, str]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ApiEnvelope(_WireModel):
    """Wrapper every backend response comes in."""

    status: str
    message: str = ""
    payload: Any = None
    data: Any = None
    error_code: Optional[str] = Field(default=None, alias="errorCode")

    @property
    def ok(self) -> bool:
        return self.status.lower() == "success"

    @property
    def body(self) -> Any:
        return self.payload if self.payload is not None else self.data


class RuleRequest(_WireModel):
    """Create/update rule request body."""

    name: str
    description: Optional[str] = None
    rule_type: RuleType = Field(alias="ruleType")
    priority: int = 1
    states: Optional[List[str]] = None
    cities: Optional[List[str]] = None
    buckets: Optional[List[str]] = None
    agent_ids: Optional[List[AgentIdField]] = Field(default=None, alias="agentIds")
    percentages: Optional[List[int]] = None
    max_cases_per_agent: Optional[int] = Field(default=None, alias="maxCasesPerAgent")

    @classmethod
    def from_draft(cls, draft: RuleDraft) -> "RuleRequest":
        if draft.rule_type is None:
            raise ValueError("Draft has no rule type")
        is_percentage = draft.rule_type == RuleType.PERCENTAGE_SPLIT
        return cls(
            name=draft.name.strip(),
            description=draft.description.strip() or None,
            rule_type=draft.rule_type,
            priority=draft.priority,
            states=list(draft.states) or None,
            cities=list(draft.cities) or None,
            buckets=list(draft.buckets) or None,
            agent_ids=list(draft.agent_ids) or None,
            percentages=list(draft.percentages) if is_percentage else None,
            max_cases_per_agent=draft.max_cases_per_agent,
        )

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RuleResponse(_WireModel):
    """Persisted rule as returned by the backend."""

    id: int
    name: str
    description: Optional[str] = None
    rule_type: RuleType = Field(alias="ruleType")
    priority: Optional[int] = None
    status: Optional[RuleStatus] = None
    states: Optional[List[str]] = None
    cities: Optional[List[str]] = None
    buckets: Optional[List[str]] = None
    agent_ids: Optional[List[AgentIdField]] = Field(default=None, alias="agentIds")
    percentages: Optional[List[int]] = None
    max_cases_per_agent: Optional[int] = Field(default=None, alias="maxCasesPerAgent")
    created_by: Optional[int] = Field(default=None, alias="createdBy")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    def to_domain(self) -> AllocationRule:
        return AllocationRule(
            id=self.id,
            name=self.name,
            rule_type=self.rule_type,
            priority=self.priority or 1,
            status=self.status or RuleStatus.DRAFT,
            description=self.description or "",
            states=list(self.states or []),
            cities=list(self.cities or []),
            buckets=list(self.buckets or []),
            agent_ids=list(self.agent_ids or []),
            percentages=list(self.percentages or []),
            max_cases_per_agent=self.max_cases_per_agent,
            created_by=self.created_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class AgentWorkloadEntry(_WireModel):
    """Agent capacity row, either from the workload API or a simulation."""

    agent_id: AgentIdField = Field(alias="agentId")
    agent_name: Optional[str] = Field(default=None, alias="agentName")
    geography: Optional[str] = None
    capacity: int = 0
    current_workload: Optional[int] = Field(default=None, alias="currentWorkload")
    active_allocations: Optional[int] = Field(default=None, alias="activeAllocations")
    available_capacity: Optional[int] = Field(default=None, alias="availableCapacity")

    def to_domain(self) -> AgentWorkload:
        if self.current_workload is not None:
            current = self.current_workload
        elif self.active_allocations is not None:
            current = self.active_allocations
        elif self.available_capacity is not None:
            current = self.capacity - self.available_capacity
        else:
            current = 0
        return AgentWorkload(
            agent_id=self.agent_id,
            name=self.agent_name or str(self.agent_id),
            capacity=self.capacity,
            current_workload=max(current, 0),
            geography=self.geography or "",
        )


class SimulationResponse(_WireModel):
    rule_id: Optional[int] = Field(default=None, alias="ruleId")
    unallocated_cases: Optional[int] = Field(default=None, alias="unallocatedCases")
    matching_case_count: Optional[int] = Field(default=None, alias="matchingCaseCount")
    total_matching_cases: Optional[int] = Field(default=None, alias="totalMatchingCases")
    eligible_agents: List[AgentWorkloadEntry] = Field(default_factory=list, alias="eligibleAgents")
    suggested_distribution: Dict[str, int] = Field(default_factory=dict, alias="suggestedDistribution")

    def to_domain(self) -> SimulationResult:
        for count in (self.matching_case_count, self.unallocated_cases, self.total_matching_cases):
            if count is not None:
                matching = count
                break
        else:
            matching = 0

        agents = [entry.to_domain() for entry in self.eligible_agents]
        # JSON object keys are strings; map them back to the agents' own ids
        ids_by_key = {str(agent.agent_id): agent.agent_id for agent in agents}
        distribution = {
            ids_by_key.get(key, key): count
            for key, count in self.suggested_distribution.items()
        }
        return SimulationResult(
            matching_case_count=matching,
            eligible_agents=agents,
            suggested_distribution=distribution,
            unallocated=max(matching - sum(distribution.values()), 0),
            rule_id=self.rule_id,
        )


class ApplyRequest(_WireModel):
    """Apply request body. Empty means the backend picks the agents."""

    agent_ids: Optional[List[AgentIdField]] = Field(default=None, alias="agentIds")
    percentages: Optional[List[int]] = None

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AgentAllocation(_WireModel):
    agent_id: AgentIdField = Field(alias="agentId")
    allocated: int = 0


class ApplyResponse(_WireModel):
    rule_id: int = Field(alias="ruleId")
    total_cases_allocated: int = Field(default=0, alias="totalCasesAllocated")
    allocations: List[AgentAllocation] = Field(default_factory=list)
    status: Optional[RuleStatus] = None

    def to_domain(self) -> ApplyResult:
        return ApplyResult(
            rule_id=self.rule_id,
            total_cases_allocated=self.total_cases_allocated,
            allocations={a.agent_id: a.allocated for a in self.allocations},
            status=self.status,
        )


class MasterDataEntry(_WireModel):
    """Catalog row from the master data service."""

    id: int
    code: Optional[str] = None
    value: str
    display_order: int = Field(default=0, alias="displayOrder")
    is_active: bool = Field(default=True, alias="isActive")

    def to_domain(self) -> GeographyOption:
        return GeographyOption(
            id=self.id,
            code=self.code or self.value,
            value=self.value,
            is_active=self.is_active,
            display_order=self.display_order,
        )


class CasePage(_WireModel):
    total_elements: int = Field(default=0, alias="totalElements")
    total_pages: int = Field(default=0, alias="totalPages")
