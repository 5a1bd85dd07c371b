"""Rule configuration wizard.

The wizard owns a single ``RuleDraft`` while it is open and walks the
operator through the steps the registry lists for the draft's rule type.
Validation failures are kept on the wizard as an inline error message and
never raised to the caller.
"""

import asyncio
import copy
import logging
from typing import Optional, List

from ..core.config import settings
from .distribution import distribute_percentages_evenly
from .errors import PersistenceError, ValidationError, WizardStateError
from .models import (
    DPD_BUCKETS,
    AgentId,
    AgentWorkload,
    AllocationRule,
    GeographyOption,
    RuleDraft,
    RuleType,
    SimulationResult,
    WizardStep,
)
from .registry import RuleTypeRegistry

logger = logging.getLogger(__name__)

MIN_PRIORITY = 1
MAX_PRIORITY = 100
MIN_CASES_PER_AGENT = 1
MAX_CASES_PER_AGENT = 500


def _check_basic(draft: RuleDraft):
    if not draft.name.strip():
        raise ValidationError("name", "Rule name is required")
    if not MIN_PRIORITY <= draft.priority <= MAX_PRIORITY:
        raise ValidationError(
            "priority", f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}"
        )


def _check_type(draft: RuleDraft):
    if draft.rule_type is None:
        raise ValidationError("rule_type", "Please select a rule type")


def _check_geography(draft: RuleDraft):
    if not draft.states and not draft.cities:
        raise ValidationError("geography", "Please select at least one state or city")


def _check_agents(draft: RuleDraft):
    if not draft.agent_ids:
        raise ValidationError("agent_ids", "Please select at least one agent")
    if not MIN_CASES_PER_AGENT <= draft.max_cases_per_agent <= MAX_CASES_PER_AGENT:
        raise ValidationError(
            "max_cases_per_agent",
            f"Max cases per agent must be between {MIN_CASES_PER_AGENT} and {MAX_CASES_PER_AGENT}"
        )
    if draft.rule_type == RuleType.PERCENTAGE_SPLIT and draft.percentage_total != 100:
        raise ValidationError("percentages", "Percentages must add up to 100%")


_STEP_CHECKS = {
    WizardStep.BASIC: _check_basic,
    WizardStep.TYPE: _check_type,
    WizardStep.GEOGRAPHY: _check_geography,
    WizardStep.AGENTS: _check_agents,
}


def validate_step(step: WizardStep, draft: RuleDraft) -> Optional[str]:
    """Return the first violated rule's message for a step, or None."""
    check = _STEP_CHECKS.get(step)
    if check is None:
        return None
    try:
        check(draft)
    except ValidationError as e:
        return e.message
    return None


class WizardStateMachine:
    """Create or edit one allocation rule, step by step."""

    def __init__(
        self,
        gateway,
        geography_catalog=None,
        workload_snapshot=None,
        registry: Optional[RuleTypeRegistry] = None
    ):
        self.gateway = gateway
        self.geography_catalog = geography_catalog
        self.workload_snapshot = workload_snapshot
        self.registry = registry or RuleTypeRegistry()

        self.draft: Optional[RuleDraft] = None
        self.is_open = False
        self.is_submitting = False
        self.error: Optional[str] = None
        self.warnings: List[str] = []

        # Reference data loaded on open
        self.states: List[GeographyOption] = []
        self.cities: List[GeographyOption] = []
        self.agents: List[AgentWorkload] = []

        self._index = 0
        self._session = 0

    # === Lifecycle ===

    async def open(self, source_rule: Optional[AllocationRule] = None):
        """Seed a fresh draft and load the catalogs it needs.

        Catalog results that arrive after the wizard was closed (or reopened)
        are dropped.
        """
        self._session += 1
        session = self._session

        if source_rule:
            self.draft = RuleDraft.from_rule(source_rule)
        else:
            self.draft = RuleDraft(max_cases_per_agent=settings.default_max_cases_per_agent)
        self.is_open = True
        self.is_submitting = False
        self._index = 0
        self.error = None
        self.warnings = []
        self.states, self.cities, self.agents = [], [], []

        await self._load_reference_data(session)

    async def _load_reference_data(self, session: int):
        async def nothing():
            return []

        states, cities, agents = await asyncio.gather(
            self.geography_catalog.list_states() if self.geography_catalog else nothing(),
            self.geography_catalog.list_cities() if self.geography_catalog else nothing(),
            self.workload_snapshot.fetch_workloads() if self.workload_snapshot else nothing(),
        )

        warnings = []
        for adapter in (self.geography_catalog, self.workload_snapshot):
            if adapter is not None:
                warnings.extend(adapter.take_warnings())

        if not self._is_current(session):
            logger.debug(f"Discarding reference data for closed wizard session {session}")
            return

        self.states, self.cities, self.agents = states, cities, agents
        self.warnings.extend(warnings)

    def _is_current(self, session: int) -> bool:
        return self.is_open and session == self._session

    def close(self):
        """Discard the draft and go idle."""
        self.is_open = False
        self.is_submitting = False
        self.draft = None
        self.error = None
        self._index = 0

    def _require_open(self) -> RuleDraft:
        if not self.is_open or self.draft is None:
            raise WizardStateError("Wizard is not open")
        return self.draft

    # === Navigation ===

    @property
    def steps(self) -> List[WizardStep]:
        if self.draft is None:
            return []
        return self.registry.get_steps(self.draft.rule_type)

    @property
    def step_index(self) -> int:
        return self._index

    @property
    def current_step(self) -> Optional[WizardStep]:
        steps = self.steps
        return steps[self._index] if steps else None

    @property
    def is_first_step(self) -> bool:
        return self._index == 0

    @property
    def is_last_step(self) -> bool:
        return self._index == len(self.steps) - 1

    def validate(self) -> Optional[str]:
        """Validate the current step, recording the message as the inline error."""
        draft = self._require_open()
        self.error = validate_step(self.current_step, draft)
        return self.error

    def next(self) -> Optional[str]:
        """Advance one step if the current one is valid. Returns the error, if any."""
        message = self.validate()
        if message:
            return message
        if not self.is_last_step:
            self._index += 1
        return None

    def previous(self) -> Optional[str]:
        self._require_open()
        self.error = None
        if self._index > 0:
            self._index -= 1
        return None

    # === Draft mutation ===

    def update_basic(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[int] = None
    ):
        draft = self._require_open()
        if name is not None:
            draft.name = name
        if description is not None:
            draft.description = description
        if priority is not None:
            draft.priority = priority

    def set_rule_type(self, rule_type: RuleType):
        """Change the rule type, keeping the position on a step that still exists."""
        draft = self._require_open()
        current = self.current_step
        draft.rule_type = rule_type

        steps = self.steps
        if current in steps:
            self._index = steps.index(current)
        else:
            self._index = min(self._index, len(steps) - 1)

    def toggle_state(self, code: str):
        draft = self._require_open()
        if code in draft.states:
            draft.states.remove(code)
        else:
            draft.states.append(code)

    def toggle_city(self, code: str):
        draft = self._require_open()
        if code in draft.cities:
            draft.cities.remove(code)
        else:
            draft.cities.append(code)

    def toggle_bucket(self, bucket: str):
        draft = self._require_open()
        if bucket not in DPD_BUCKETS:
            raise ValueError(f"Unknown DPD bucket {bucket!r}, expected one of {', '.join(DPD_BUCKETS)}")
        if bucket in draft.buckets:
            draft.buckets.remove(bucket)
        else:
            draft.buckets.append(bucket)

    def toggle_agent(self, agent_id: AgentId):
        """Select or deselect an agent, keeping percentages parallel."""
        draft = self._require_open()
        if agent_id in draft.agent_ids:
            index = draft.agent_ids.index(agent_id)
            del draft.agent_ids[index]
            del draft.percentages[index]
        else:
            draft.agent_ids.append(agent_id)
            draft.percentages.append(0)

    def set_percentage(self, agent_id: AgentId, value: int):
        draft = self._require_open()
        if agent_id not in draft.agent_ids:
            raise KeyError(f"Agent {agent_id} is not selected")
        if not 0 <= value <= 100:
            raise ValueError(f"Percentage must be between 0 and 100, got {value}")
        draft.percentages[draft.agent_ids.index(agent_id)] = value

    def distribute_evenly(self):
        draft = self._require_open()
        draft.percentages = distribute_percentages_evenly(len(draft.agent_ids))

    def set_max_cases_per_agent(self, value: int):
        draft = self._require_open()
        draft.max_cases_per_agent = value

    @property
    def percentage_total(self) -> int:
        return self.draft.percentage_total if self.draft else 0

    def dismiss_error(self):
        self.error = None

    def dismiss_warnings(self):
        self.warnings = []

    # === Terminal actions ===

    async def simulate(self, presenter) -> SimulationResult:
        """Preview the draft. The wizard's draft is not touched."""
        draft = self._require_open()
        return await presenter.simulate(copy.deepcopy(draft))

    async def submit(self) -> Optional[AllocationRule]:
        """Persist the draft from the REVIEW step.

        Returns the saved rule and closes the wizard. Returns None if a step
        fails validation or a submit is already in flight. Persistence errors
        are recorded on the wizard and re-raised; the draft is kept.

        If the wizard was closed or reopened while the call was in flight,
        the outcome is still returned or raised but the wizard is left alone.
        """
        draft = self._require_open()
        if self.current_step != WizardStep.REVIEW:
            raise WizardStateError("Rules can only be submitted from the review step")
        if self.is_submitting:
            return None

        for step in self.steps:
            message = validate_step(step, draft)
            if message:
                self.error = message
                return None

        session = self._session
        self.is_submitting = True
        self.error = None
        try:
            if draft.is_edit:
                rule = await self.gateway.update(draft.source_rule_id, draft)
            else:
                rule = await self.gateway.create(draft)
        except PersistenceError as e:
            if self._is_current(session):
                self.error = e.message or "Failed to save rule"
            raise
        finally:
            if self._is_current(session):
                self.is_submitting = False

        logger.info(f"Saved allocation rule {rule.id} ({rule.name})")
        if self._is_current(session):
            self.close()
        else:
            logger.debug(f"Wizard session {session} ended before its submit settled")
        return rule
