"""Dry-run simulation of a rule draft against live agent and case data."""

import asyncio
import logging
from typing import List, Tuple

from .distribution import capacity_weighted_split, even_split, percentage_split
from .models import (
    AgentWorkload,
    DistributionResult,
    RuleDraft,
    RuleType,
    SimulationResult,
    WizardStep,
)
from .wizard import validate_step

logger = logging.getLogger(__name__)


class RuleSimulationPresenter:
    """Preview what a rule would allocate without changing anything.

    Safe to call any number of times before the rule is committed.
    """

    def __init__(self, case_inventory, workload_snapshot, gateway=None):
        self.case_inventory = case_inventory
        self.workload_snapshot = workload_snapshot
        self.gateway = gateway

    async def simulate(self, draft: RuleDraft) -> SimulationResult:
        if draft.rule_type is None:
            raise ValueError("Select a rule type before simulating")

        geography_filtered = draft.rule_type == RuleType.GEOGRAPHY
        matching, workloads = await asyncio.gather(
            self.case_inventory.count_unallocated(
                states=draft.states if geography_filtered else None,
                cities=draft.cities if geography_filtered else None,
            ),
            self.workload_snapshot.fetch_workloads(),
        )

        warnings = self.case_inventory.take_warnings() + self.workload_snapshot.take_warnings()
        eligible = self.eligible_agents(draft, workloads)

        # A draft switched to PERCENTAGE_SPLIT on REVIEW may never have
        # visited the agents step
        incomplete = None
        if draft.rule_type == RuleType.PERCENTAGE_SPLIT:
            incomplete = validate_step(WizardStep.AGENTS, draft)
        if incomplete:
            warnings.append(incomplete)
            distribution = DistributionResult({}, requested=matching, unallocated=matching)
        else:
            distribution = self.distribute(draft, eligible, matching)

        logger.debug(
            f"Simulated {draft.rule_type.value}: {matching} cases over "
            f"{len(eligible)} agents, {distribution.unallocated} unallocated"
        )
        return SimulationResult(
            matching_case_count=matching,
            eligible_agents=eligible,
            suggested_distribution=dict(distribution.allocations),
            unallocated=distribution.unallocated,
            warnings=warnings,
        )

    async def simulate_rule(self, rule_id: int) -> SimulationResult:
        """Server-side simulation of an already persisted rule."""
        if self.gateway is None:
            raise RuntimeError("No persistence gateway configured")
        return await self.gateway.simulate(rule_id)

    @staticmethod
    def eligible_agents(draft: RuleDraft, workloads: List[AgentWorkload]) -> List[AgentWorkload]:
        if draft.rule_type == RuleType.PERCENTAGE_SPLIT:
            by_id = {w.agent_id: w for w in workloads}
            return [
                by_id.get(agent_id) or AgentWorkload(agent_id=agent_id, name=str(agent_id), capacity=0)
                for agent_id in draft.agent_ids
            ]

        with_room = [w for w in workloads if w.available_capacity > 0]
        if draft.rule_type == RuleType.GEOGRAPHY:
            regions = {code.lower() for code in draft.states + draft.cities}
            in_region = [w for w in with_room if w.geography.lower() in regions]
            return in_region or with_room
        return with_room

    @staticmethod
    def distribute(
        draft: RuleDraft,
        eligible: List[AgentWorkload],
        total: int
    ) -> DistributionResult:
        if draft.rule_type == RuleType.PERCENTAGE_SPLIT:
            shares: List[Tuple] = list(zip(draft.agent_ids, draft.percentages))
            return percentage_split(shares, total)
        if draft.rule_type == RuleType.CAPACITY_BASED:
            return capacity_weighted_split(eligible, total, per_agent_cap=draft.max_cases_per_agent)
        return even_split([w.agent_id for w in eligible], total)
