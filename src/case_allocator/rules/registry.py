"""Rule type registry: which wizard steps each rule type needs."""

from typing import List, Optional

from .models import RuleType, WizardStep


RULE_TYPE_LABELS = {
    RuleType.PERCENTAGE_SPLIT: "Percentage Split",
    RuleType.CAPACITY_BASED: "Capacity Based",
    RuleType.GEOGRAPHY: "Geography",
}

RULE_TYPE_DESCRIPTIONS = {
    RuleType.PERCENTAGE_SPLIT: "Distribute cases among agents based on percentage allocation",
    RuleType.CAPACITY_BASED: "Allocate based on agent capacity and current workload",
    RuleType.GEOGRAPHY: "Allocate cases based on geographic region mapping",
}

STEP_LABELS = {
    WizardStep.BASIC: "Basic Info",
    WizardStep.TYPE: "Rule Type",
    WizardStep.GEOGRAPHY: "Geography",
    WizardStep.AGENTS: "Agents",
    WizardStep.REVIEW: "Review",
}

# Types where the operator picks agents by hand. The others auto-detect
# eligible agents when the rule is applied.
_EXPLICIT_AGENT_TYPES = frozenset({RuleType.PERCENTAGE_SPLIT})
_GEOGRAPHY_TYPES = frozenset({RuleType.GEOGRAPHY})


def requires_geography(rule_type: Optional[RuleType]) -> bool:
    return rule_type in _GEOGRAPHY_TYPES


def requires_agent_selection(rule_type: Optional[RuleType]) -> bool:
    return rule_type in _EXPLICIT_AGENT_TYPES


def get_steps(rule_type: Optional[RuleType]) -> List[WizardStep]:
    """Ordered wizard steps for a rule type.

    Always starts with BASIC, TYPE and ends with REVIEW. Type-specific steps
    are inserted just before REVIEW. ``None`` (type not chosen yet) yields
    the minimal sequence.
    """
    steps = [WizardStep.BASIC, WizardStep.TYPE]
    if requires_geography(rule_type):
        steps.append(WizardStep.GEOGRAPHY)
    if requires_agent_selection(rule_type):
        steps.append(WizardStep.AGENTS)
    steps.append(WizardStep.REVIEW)
    return steps


def rule_type_label(rule_type: RuleType) -> str:
    return RULE_TYPE_LABELS.get(rule_type, rule_type.value)


def rule_type_description(rule_type: RuleType) -> str:
    return RULE_TYPE_DESCRIPTIONS.get(rule_type, "")


def step_label(step: WizardStep) -> str:
    return STEP_LABELS[step]


class RuleTypeRegistry:
    """Object facade over the module functions, for injection into the wizard."""

    def get_steps(self, rule_type: Optional[RuleType]) -> List[WizardStep]:
        return get_steps(rule_type)

    def requires_geography(self, rule_type: Optional[RuleType]) -> bool:
        return requires_geography(rule_type)

    def requires_agent_selection(self, rule_type: Optional[RuleType]) -> bool:
        return requires_agent_selection(rule_type)

    def label(self, rule_type: RuleType) -> str:
        return rule_type_label(rule_type)

    def description(self, rule_type: RuleType) -> str:
        return rule_type_description(rule_type)
