"""Distribution calculator.

Pure functions that turn a list of agents and a number of cases into a
per-agent case count. Every function conserves units: the counts it hands
out plus any reported ``unallocated`` remainder always equal the requested
total.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from .errors import ComputationInvariantViolation
from .models import AgentId, AgentWorkload, DistributionResult


def _check_total(total_units: int):
    if total_units < 0:
        raise ValueError(f"total_units must be non-negative, got {total_units}")


def _check_unique(agent_ids: Sequence[AgentId]):
    if len(set(agent_ids)) != len(agent_ids):
        raise ValueError("agent ids must be unique")


def _conserved(result: DistributionResult) -> DistributionResult:
    if any(count < 0 for count in result.allocations.values()):
        raise ComputationInvariantViolation(f"negative allocation in {result.allocations}")
    if result.total_allocated + result.unallocated != result.requested:
        raise ComputationInvariantViolation(
            f"allocated {result.total_allocated} + unallocated {result.unallocated} "
            f"!= requested {result.requested}"
        )
    return result


def even_split(agent_ids: Sequence[AgentId], total_units: int) -> DistributionResult:
    """Split units evenly, remainder one at a time from the first agent.

    >>> even_split(["A", "B", "C"], 10).allocations
    {'A': 4, 'B': 3, 'C': 3}
    """
    _check_total(total_units)
    _check_unique(agent_ids)

    if not agent_ids:
        return _conserved(DistributionResult({}, requested=total_units, unallocated=total_units))

    share, remainder = divmod(total_units, len(agent_ids))
    allocations = {
        agent_id: share + (1 if index < remainder else 0)
        for index, agent_id in enumerate(agent_ids)
    }
    return _conserved(DistributionResult(allocations, requested=total_units))


def capacity_weighted_split(
    agents: Sequence[AgentWorkload],
    total_units: int,
    per_agent_cap: Optional[int] = None
) -> DistributionResult:
    """Fill the least loaded agents first without exceeding available capacity.

    Agents are ordered by current workload (ties by id) and receive one unit
    per pass in that order, skipping agents that are full, until either the
    units or the capacity run out. Whatever can't be placed is reported as
    ``unallocated``.
    """
    _check_total(total_units)
    _check_unique([a.agent_id for a in agents])
    if per_agent_cap is not None and per_agent_cap < 0:
        raise ValueError(f"per_agent_cap must be non-negative, got {per_agent_cap}")

    ordered = sorted(agents, key=lambda a: (a.current_workload, a.agent_id))

    remaining: Dict[AgentId, int] = {}
    for agent in ordered:
        room = agent.available_capacity
        if per_agent_cap is not None:
            room = min(room, per_agent_cap)
        remaining[agent.agent_id] = room

    allocations: Dict[AgentId, int] = {a.agent_id: 0 for a in ordered}
    units_left = total_units

    while units_left > 0:
        open_agents = [a.agent_id for a in ordered if remaining[a.agent_id] > 0]
        if not open_agents:
            break

        if units_left >= len(open_agents):
            # A full pass: one unit each, repeated as many whole passes as
            # the tightest open agent allows.
            passes = min(units_left // len(open_agents), min(remaining[a] for a in open_agents))
            for agent_id in open_agents:
                allocations[agent_id] += passes
                remaining[agent_id] -= passes
            units_left -= passes * len(open_agents)
        else:
            for agent_id in open_agents[:units_left]:
                allocations[agent_id] += 1
                remaining[agent_id] -= 1
            units_left = 0

    return _conserved(DistributionResult(allocations, requested=total_units, unallocated=units_left))


def percentage_split(
    agents: Sequence[Tuple[AgentId, int]],
    total_units: int
) -> DistributionResult:
    """Split units by whole-number percentages using largest remainders.

    Each agent gets ``floor(total * pct / 100)``. The shortfall left by the
    flooring goes one unit at a time to the agents with the largest
    fractional remainder, ties in input order.

    >>> percentage_split([("A", 50), ("B", 30), ("C", 20)], 7).allocations
    {'A': 4, 'B': 2, 'C': 1}
    """
    _check_total(total_units)
    _check_unique([agent_id for agent_id, _ in agents])
    for agent_id, percentage in agents:
        if percentage < 0:
            raise ValueError(f"percentage for {agent_id} must be non-negative")
    total_percentage = sum(p for _, p in agents)
    if total_percentage != 100:
        raise ValueError(f"percentages must add up to 100, got {total_percentage}")

    allocations: Dict[AgentId, int] = {}
    remainders: List[Tuple[int, int, AgentId]] = []
    for index, (agent_id, percentage) in enumerate(agents):
        floor, fraction = divmod(total_units * percentage, 100)
        allocations[agent_id] = floor
        remainders.append((-fraction, index, agent_id))

    shortfall = total_units - sum(allocations.values())
    for _, _, agent_id in sorted(remainders)[:shortfall]:
        allocations[agent_id] += 1

    return _conserved(DistributionResult(allocations, requested=total_units))


def distribute_percentages_evenly(count: int) -> List[int]:
    """Whole-number percentages summing to 100, remainder on the first slot."""
    if count <= 0:
        return []
    share, remainder = divmod(100, count)
    return [share + remainder if i == 0 else share for i in range(count)]


class DistributionCalculator:
    """Object facade over the distribution functions."""

    def even_split(self, agent_ids, total_units):
        return even_split(agent_ids, total_units)

    def capacity_weighted_split(self, agents, total_units, per_agent_cap=None):
        return capacity_weighted_split(agents, total_units, per_agent_cap)

    def percentage_split(self, agents, total_units):
        return percentage_split(agents, total_units)
