"""Backend connectors for catalogs, workloads and rule persistence."""

from .api_client import ApiClient
from .catalogs import (
    AgentCapacitySnapshotAdapter,
    CaseInventoryAdapter,
    GeographyCatalogAdapter,
    STATE,
    CITY,
)
from .gateway import RulePersistenceGateway

__all__ = [
    "ApiClient",
    "AgentCapacitySnapshotAdapter",
    "CaseInventoryAdapter",
    "GeographyCatalogAdapter",
    "RulePersistenceGateway",
    "STATE",
    "CITY",
]
