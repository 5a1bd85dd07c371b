"""Rule persistence gateway: create, update, simulate and apply rules."""

import logging
from typing import Optional, List, Sequence

from pydantic import ValidationError as SchemaError

from ..rules.errors import ApiError, NetworkError, PersistenceError
from ..rules.models import AgentId, AllocationRule, ApplyResult, RuleDraft, SimulationResult
from .api_client import ApiClient
from .schemas import ApplyRequest, ApplyResponse, RuleRequest, RuleResponse, SimulationResponse

logger = logging.getLogger(__name__)

RULES_PATH = "/allocations/allocation-rules"


class RulePersistenceGateway:
    """Backend rule store.

    Every failure is raised as ``PersistenceError`` carrying the backend's
    message. Nothing is retried here; the operator decides whether to retry.
    """

    def __init__(self, client: Optional[ApiClient] = None):
        self.client = client or ApiClient()

    async def _call(self, action: str, method: str, path: str, body=None):
        try:
            return await self.client.arequest(method, path, json=body)
        except ApiError as e:
            logger.error(f"Failed to {action}: {e.message}")
            raise PersistenceError(e.message, status_code=e.status_code,
                                   error_code=e.error_code) from e
        except NetworkError as e:
            logger.error(f"Failed to {action}: {e}")
            raise PersistenceError(str(e)) from e

    @staticmethod
    def _parse(model, payload, action: str):
        try:
            return model.model_validate(payload or {})
        except SchemaError as e:
            raise PersistenceError(f"Unexpected response when trying to {action}") from e

    async def create(self, draft: RuleDraft) -> AllocationRule:
        body = RuleRequest.from_draft(draft).to_body()
        payload = await self._call("create rule", "POST", RULES_PATH, body)
        rule = self._parse(RuleResponse, payload, "create rule").to_domain()
        logger.info(f"Created allocation rule {rule.id} ({rule.name})")
        return rule

    async def update(self, rule_id: int, draft: RuleDraft) -> AllocationRule:
        body = RuleRequest.from_draft(draft).to_body()
        payload = await self._call("update rule", "PUT", f"{RULES_PATH}/{rule_id}", body)
        rule = self._parse(RuleResponse, payload, "update rule").to_domain()
        logger.info(f"Updated allocation rule {rule.id} ({rule.name})")
        return rule

    async def list_rules(self) -> List[AllocationRule]:
        payload = await self._call("list rules", "GET", RULES_PATH)
        rules = [self._parse(RuleResponse, row, "list rules").to_domain() for row in payload or []]
        rules.sort(key=lambda r: r.priority)
        return rules

    async def get_rule(self, rule_id: int) -> AllocationRule:
        payload = await self._call("fetch rule", "GET", f"{RULES_PATH}/{rule_id}")
        return self._parse(RuleResponse, payload, "fetch rule").to_domain()

    async def delete(self, rule_id: int):
        await self._call("delete rule", "DELETE", f"{RULES_PATH}/{rule_id}")
        logger.info(f"Deleted allocation rule {rule_id}")

    async def simulate(self, rule_id: int) -> SimulationResult:
        payload = await self._call("simulate rule", "POST", f"{RULES_PATH}/{rule_id}/simulate")
        result = self._parse(SimulationResponse, payload, "simulate rule").to_domain()
        if result.rule_id is None:
            result.rule_id = rule_id
        return result

    async def apply(
        self,
        rule_id: int,
        agent_ids: Optional[Sequence[AgentId]] = None,
        percentages: Optional[Sequence[int]] = None
    ) -> ApplyResult:
        """Apply a rule. Without overrides the backend detects the agents."""
        body = ApplyRequest(
            agent_ids=list(agent_ids) if agent_ids else None,
            percentages=list(percentages) if percentages else None,
        ).to_body()
        payload = await self._call("apply rule", "POST", f"{RULES_PATH}/{rule_id}/apply", body)
        result = self._parse(ApplyResponse, payload, "apply rule").to_domain()
        logger.info(f"Applied rule {rule_id}: {result.total_cases_allocated} cases allocated")
        return result
