"""Read-only data sources used by the wizard and the simulator.

These adapters never raise on transport failure. They log, queue a warning
for the caller to collect with ``take_warnings()``, and return an empty
result so the wizard stays usable for the steps that don't need the
missing data.
"""

import logging
from typing import Optional, List, Sequence

from pydantic import ValidationError as SchemaError

from ..rules.errors import NetworkError
from ..rules.models import AgentId, AgentWorkload, GeographyOption
from .api_client import ApiClient
from .schemas import AgentWorkloadEntry, CasePage, MasterDataEntry

logger = logging.getLogger(__name__)

MASTER_DATA_PATH = "/master-data"
WORKLOAD_PATH = "/allocations/agents/workload"
UNALLOCATED_CASES_PATH = "/case-sourcing/unallocated"

STATE = "STATE"
CITY = "CITY"


def _join(values: Optional[Sequence]) -> Optional[str]:
    if not values:
        return None
    return ",".join(str(v) for v in values)


class _DegradingAdapter:
    """Shared warning bookkeeping."""

    def __init__(self, client: Optional[ApiClient] = None):
        self.client = client or ApiClient()
        self.warnings: List[str] = []

    def _degrade(self, what: str, error: Exception):
        warning = f"Could not load {what}: {error}"
        logger.warning(warning)
        self.warnings.append(warning)

    def take_warnings(self) -> List[str]:
        """Return the queued warnings and clear them."""
        warnings, self.warnings = self.warnings, []
        return warnings


class GeographyCatalogAdapter(_DegradingAdapter):
    """State and city catalog from the master data service."""

    async def list_states(self) -> List[GeographyOption]:
        return await self._fetch(STATE)

    async def list_cities(self) -> List[GeographyOption]:
        return await self._fetch(CITY)

    async def search(self, kind: str, query: str) -> List[GeographyOption]:
        """Server-side free-text search within one catalog type."""
        return await self._fetch(kind, query.strip() or None)

    async def _fetch(self, kind: str, query: Optional[str] = None) -> List[GeographyOption]:
        label = "states" if kind == STATE else "cities"
        try:
            rows = await self.client.arequest(
                "GET", MASTER_DATA_PATH, params={"type": kind, "search": query}
            )
            entries = [MasterDataEntry.model_validate(row) for row in rows or []]
        except (NetworkError, SchemaError) as e:
            self._degrade(label, e)
            return []

        options = [entry.to_domain() for entry in entries if entry.is_active]
        options.sort(key=lambda o: o.display_order)
        return options


class AgentCapacitySnapshotAdapter(_DegradingAdapter):
    """Current agent capacity and workload."""

    async def fetch_workloads(
        self,
        agent_ids: Optional[Sequence[AgentId]] = None,
        geographies: Optional[Sequence[str]] = None
    ) -> List[AgentWorkload]:
        try:
            rows = await self.client.arequest(
                "GET",
                WORKLOAD_PATH,
                params={"agentIds": _join(agent_ids), "geographies": _join(geographies)},
            )
            entries = [AgentWorkloadEntry.model_validate(row) for row in rows or []]
        except (NetworkError, SchemaError) as e:
            self._degrade("agent workload", e)
            return []
        return [entry.to_domain() for entry in entries]


class CaseInventoryAdapter(_DegradingAdapter):
    """Counts of unallocated cases, optionally filtered by geography."""

    async def count_unallocated(
        self,
        states: Optional[Sequence[str]] = None,
        cities: Optional[Sequence[str]] = None
    ) -> int:
        try:
            body = await self.client.arequest(
                "GET",
                UNALLOCATED_CASES_PATH,
                params={
                    "page": 0,
                    "size": 1,
                    "states": _join(states),
                    "cities": _join(cities),
                },
            )
            page = CasePage.model_validate(body or {})
        except (NetworkError, SchemaError) as e:
            self._degrade("unallocated case count", e)
            return 0
        return page.total_elements
