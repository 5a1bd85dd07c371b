"""Shared fakes for the async collaborators of the wizard and simulator."""

import asyncio
from datetime import datetime
from typing import List, Optional

import pytest
from case_allocator.rules import (
    AgentWorkload,
    AllocationRule,
    ApplyResult,
    GeographyOption,
    PersistenceError,
    RuleStatus,
    SimulationResult,
)


class FakeGateway:
    """In-memory rule store."""

    def __init__(self):
        self.created = []
        self.updated = []
        self.applied = []
        self.fail_with: Optional[PersistenceError] = None
        self.hold: Optional[asyncio.Event] = None
        self.rules = {}
        self._next_id = 100

    def _save(self, rule_id, draft) -> AllocationRule:
        rule = AllocationRule(
            id=rule_id,
            name=draft.name,
            rule_type=draft.rule_type,
            priority=draft.priority,
            status=RuleStatus.DRAFT,
            description=draft.description,
            states=list(draft.states),
            cities=list(draft.cities),
            buckets=list(draft.buckets),
            agent_ids=list(draft.agent_ids),
            percentages=list(draft.percentages),
            max_cases_per_agent=draft.max_cases_per_agent,
            created_at=datetime(2024, 1, 1),
        )
        self.rules[rule_id] = rule
        return rule

    async def create(self, draft) -> AllocationRule:
        if self.hold:
            await self.hold.wait()
        if self.fail_with:
            raise self.fail_with
        self.created.append(draft)
        self._next_id += 1
        return self._save(self._next_id, draft)

    async def update(self, rule_id, draft) -> AllocationRule:
        if self.fail_with:
            raise self.fail_with
        self.updated.append((rule_id, draft))
        return self._save(rule_id, draft)

    async def get_rule(self, rule_id) -> AllocationRule:
        if rule_id not in self.rules:
            raise PersistenceError(f"Rule {rule_id} not found", status_code=404)
        return self.rules[rule_id]

    async def list_rules(self) -> List[AllocationRule]:
        return sorted(self.rules.values(), key=lambda r: r.priority)

    async def simulate(self, rule_id) -> SimulationResult:
        return SimulationResult(matching_case_count=3, suggested_distribution={1: 3}, rule_id=rule_id)

    async def apply(self, rule_id, agent_ids=None, percentages=None) -> ApplyResult:
        self.applied.append((rule_id, agent_ids, percentages))
        return ApplyResult(rule_id=rule_id, total_cases_allocated=3, allocations={1: 3})

    async def delete(self, rule_id):
        await self.get_rule(rule_id)
        del self.rules[rule_id]


class FakeSource:
    """Warning queue shared by the read-only fakes."""

    def __init__(self):
        self.warnings: List[str] = []

    def take_warnings(self) -> List[str]:
        warnings, self.warnings = self.warnings, []
        return warnings


class FakeCatalog(FakeSource):
    """State/city catalog; ``hold`` blocks responses until set."""

    def __init__(self, states=None, cities=None):
        super().__init__()
        self.states = states or []
        self.cities = cities or []
        self.hold: Optional[asyncio.Event] = None
        self.searches = []

    async def _respond(self, options):
        snapshot = list(options)
        hold = self.hold
        if hold:
            await hold.wait()
        return snapshot

    async def list_states(self):
        return await self._respond(self.states)

    async def list_cities(self):
        return await self._respond(self.cities)

    async def search(self, kind, query):
        self.searches.append((kind, query))
        options = self.states if kind == "STATE" else self.cities
        return await self._respond([o for o in options if query.lower() in o.value.lower()])


class FakeWorkloads(FakeSource):
    def __init__(self, agents=None):
        super().__init__()
        self.agents = agents or []

    async def fetch_workloads(self, agent_ids=None, geographies=None):
        return list(self.agents)


class FakeInventory(FakeSource):
    def __init__(self, count=0):
        super().__init__()
        self.count = count
        self.calls = []

    async def count_unallocated(self, states=None, cities=None):
        self.calls.append((states, cities))
        return self.count


def option(option_id, code, value, order=0):
    return GeographyOption(id=option_id, code=code, value=value, display_order=order)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def catalog():
    return FakeCatalog(
        states=[option(1, "OH", "Ohio"), option(2, "TX", "Texas")],
        cities=[option(10, "CMH", "Columbus"), option(11, "AUS", "Austin")],
    )


@pytest.fixture
def workloads():
    return FakeWorkloads([
        AgentWorkload(agent_id=1, name="Alice", capacity=10, current_workload=2, geography="OH"),
        AgentWorkload(agent_id=2, name="Bob", capacity=10, current_workload=0, geography="TX"),
        AgentWorkload(agent_id=3, name="Cara", capacity=5, current_workload=5, geography="OH"),
    ])
