"""Main CLI entry point for the allocops command."""

import asyncio
import logging
from typing import Optional, List, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt, Confirm
from rich.table import Table

from .. import __version__
from ..core.config import settings
from ..connectors import (
    ApiClient,
    AgentCapacitySnapshotAdapter,
    CaseInventoryAdapter,
    GeographyCatalogAdapter,
    RulePersistenceGateway,
)
from ..rules import (
    AgentWorkload,
    AllocationRule,
    DPD_BUCKETS,
    PersistenceError,
    RuleSimulationPresenter,
    RuleType,
    SimulationResult,
    WizardStateMachine,
    WizardStep,
    capacity_weighted_split,
    even_split,
    get_steps,
    percentage_split,
)
from ..rules.registry import rule_type_description, rule_type_label, step_label

console = Console()

RULE_TYPE_CHOICES = [t.value for t in RuleType]


def get_client() -> ApiClient:
    return ApiClient()


def get_gateway() -> RulePersistenceGateway:
    return RulePersistenceGateway(get_client())


def get_presenter(gateway: Optional[RulePersistenceGateway] = None) -> RuleSimulationPresenter:
    client = get_client()
    return RuleSimulationPresenter(
        CaseInventoryAdapter(client),
        AgentCapacitySnapshotAdapter(client),
        gateway=gateway,
    )


def get_wizard(gateway: RulePersistenceGateway) -> WizardStateMachine:
    client = get_client()
    return WizardStateMachine(
        gateway,
        geography_catalog=GeographyCatalogAdapter(client),
        workload_snapshot=AgentCapacitySnapshotAdapter(client),
    )


def _parse_agent_spec(spec: str) -> AgentWorkload:
    """Parse ``ID[:CAPACITY[:WORKLOAD]]``."""
    parts = spec.split(":")
    if len(parts) > 3 or not parts[0]:
        raise click.BadParameter(f"expected ID[:CAPACITY[:WORKLOAD]], got {spec!r}")
    try:
        capacity = int(parts[1]) if len(parts) > 1 else 0
        workload = int(parts[2]) if len(parts) > 2 else 0
    except ValueError:
        raise click.BadParameter(f"capacity and workload must be integers in {spec!r}")
    return AgentWorkload(agent_id=parts[0], name=parts[0], capacity=capacity, current_workload=workload)


def _print_distribution(title: str, allocations, agents: List[AgentWorkload], unallocated: int):
    table = Table(title=title)
    table.add_column("Agent", style="cyan")
    table.add_column("Capacity", justify="right")
    table.add_column("Available", justify="right")
    table.add_column("Cases", justify="right", style="bold")

    known = {a.agent_id: a for a in agents}
    for agent_id, count in allocations.items():
        agent = known.get(agent_id)
        table.add_row(
            agent.name if agent else str(agent_id),
            str(agent.capacity) if agent else "-",
            str(agent.available_capacity) if agent else "-",
            str(count)
        )

    console.print(table)
    if unallocated:
        console.print(f"[yellow]{unallocated} case(s) could not be allocated[/yellow]")


def _print_simulation(result: SimulationResult):
    console.print(f"Matching cases: [bold]{result.matching_case_count}[/bold]")
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    if not result.eligible_agents:
        console.print("[yellow]No eligible agents found.[/yellow]")
        return
    _print_distribution(
        f"Suggested distribution ({len(result.eligible_agents)} agents)",
        result.suggested_distribution,
        result.eligible_agents,
        result.unallocated,
    )


def _print_rule(rule: AllocationRule):
    lines = [
        f"[bold]Type:[/bold] {rule_type_label(rule.rule_type)}",
        f"[bold]Status:[/bold] {rule.status.value}",
        f"[bold]Priority:[/bold] {rule.priority}",
        f"[bold]Description:[/bold] {rule.description}" if rule.description else None,
        f"[bold]States:[/bold] {', '.join(rule.states)}" if rule.states else None,
        f"[bold]Cities:[/bold] {', '.join(rule.cities)}" if rule.cities else None,
        f"[bold]DPD Buckets:[/bold] {', '.join(rule.buckets)}" if rule.buckets else None,
    ]
    if rule.agent_ids:
        agents = ", ".join(
            f"{a} ({p}%)" if rule.rule_type == RuleType.PERCENTAGE_SPLIT else str(a)
            for a, p in zip(rule.agent_ids, rule.percentages or [0] * len(rule.agent_ids))
        )
        lines.append(f"[bold]Agents:[/bold] {agents}")
    console.print(Panel("\n".join(filter(None, lines)), title=f"Rule #{rule.id}: {rule.name}"))


@click.group()
@click.version_option(version=__version__, prog_name="allocops")
def cli():
    """Case allocation rules - configure, preview and apply.

    \b
    Quick Start:
      allocops wizard                                   # Create a rule
      allocops rules list                               # View rules
      allocops rules simulate 12                        # Preview a rule
      allocops preview -t PERCENTAGE_SPLIT -n 7 \\
          -a A -a B -a C -p 50 -p 30 -p 20              # Local dry run
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("rule_type", type=click.Choice(RULE_TYPE_CHOICES))
def steps(rule_type: str):
    """Show the wizard steps for a rule type."""
    rt = RuleType(rule_type)
    sequence = get_steps(rt)
    console.print(f"[bold]{rule_type_label(rt)}[/bold] - {rule_type_description(rt)}")
    for number, step in enumerate(sequence, 1):
        console.print(f"  {number}. {step_label(step)}")


@cli.command()
@click.option("--type", "-t", "rule_type", type=click.Choice(RULE_TYPE_CHOICES), required=True,
              help="Rule type")
@click.option("--total", "-n", type=click.IntRange(min=0), required=True, help="Cases to distribute")
@click.option("--agent", "-a", "agent_specs", multiple=True, required=True,
              help="Agent as ID[:CAPACITY[:WORKLOAD]] (repeatable)")
@click.option("--percent", "-p", "percents", type=int, multiple=True,
              help="Percentage per agent, same order as --agent (PERCENTAGE_SPLIT)")
@click.option("--max-cases", type=click.IntRange(min=1), help="Per-agent cap (CAPACITY_BASED)")
def preview(rule_type: str, total: int, agent_specs: Tuple[str, ...], percents: Tuple[int, ...],
            max_cases: Optional[int]):
    """Dry-run a distribution locally, without the backend."""
    agents = [_parse_agent_spec(spec) for spec in agent_specs]
    rt = RuleType(rule_type)

    if rt == RuleType.PERCENTAGE_SPLIT and len(percents) != len(agents):
        raise click.UsageError("Give one --percent per --agent for PERCENTAGE_SPLIT")

    try:
        if rt == RuleType.PERCENTAGE_SPLIT:
            result = percentage_split(list(zip([a.agent_id for a in agents], percents)), total)
        elif rt == RuleType.CAPACITY_BASED:
            result = capacity_weighted_split(agents, total, per_agent_cap=max_cases)
        else:
            result = even_split([a.agent_id for a in agents], total)
    except ValueError as e:
        raise click.UsageError(str(e))

    _print_distribution(f"{rule_type_label(rt)}: {total} cases", result.allocations, agents,
                        result.unallocated)


# ============================================================================
# PERSISTED RULES
# ============================================================================

@cli.group()
def rules():
    """Manage persisted allocation rules."""
    pass


@rules.command("list")
def list_rules():
    """List allocation rules by priority."""
    try:
        found = asyncio.run(get_gateway().list_rules())
    except PersistenceError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise SystemExit(1)

    if not found:
        console.print("[yellow]No allocation rules found.[/yellow]")
        return

    table = Table(title=f"Allocation Rules ({len(found)})")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Priority", justify="right")
    table.add_column("Name", style="cyan", max_width=30)
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Geography", max_width=30)

    for rule in found:
        table.add_row(
            str(rule.id),
            str(rule.priority),
            rule.name[:30],
            rule_type_label(rule.rule_type),
            rule.status.value,
            ", ".join(rule.states + rule.cities)[:30],
        )

    console.print(table)


@rules.command("show")
@click.argument("rule_id", type=int)
def show_rule(rule_id: int):
    """Show one rule."""
    try:
        rule = asyncio.run(get_gateway().get_rule(rule_id))
    except PersistenceError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise SystemExit(1)
    _print_rule(rule)


@rules.command("simulate")
@click.argument("rule_id", type=int)
def simulate_rule(rule_id: int):
    """Preview what applying a rule would allocate."""
    gateway = get_gateway()
    try:
        result = asyncio.run(get_presenter(gateway).simulate_rule(rule_id))
    except PersistenceError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise SystemExit(1)
    _print_simulation(result)


@rules.command("apply")
@click.argument("rule_id", type=int)
@click.option("--agent", "-a", "agent_ids", type=int, multiple=True,
              help="Override agents (default: detected by the backend)")
@click.option("--percent", "-p", "percents", type=int, multiple=True,
              help="Override percentages, same order as --agent")
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation")
def apply_rule(rule_id: int, agent_ids: Tuple[int, ...], percents: Tuple[int, ...], yes: bool):
    """Allocate unallocated cases using a rule."""
    if percents and len(percents) != len(agent_ids):
        raise click.UsageError("Give one --percent per --agent")
    if not yes and not Confirm.ask(f"Apply rule #{rule_id} to all matching unallocated cases?"):
        console.print("[dim]Cancelled[/dim]")
        return

    try:
        result = asyncio.run(get_gateway().apply(rule_id, agent_ids or None, percents or None))
    except PersistenceError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise SystemExit(1)

    console.print(f"[green]✓ Rule applied. {result.total_cases_allocated} cases allocated.[/green]")
    if result.allocations:
        _print_distribution("Allocations", result.allocations, [], 0)


@rules.command("delete")
@click.argument("rule_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation")
def delete_rule(rule_id: int, yes: bool):
    """Delete a rule."""
    if not yes and not Confirm.ask(f"Delete rule #{rule_id}?"):
        console.print("[dim]Cancelled[/dim]")
        return
    try:
        asyncio.run(get_gateway().delete(rule_id))
    except PersistenceError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise SystemExit(1)
    console.print(f"[green]✓ Rule #{rule_id} deleted[/green]")


# ============================================================================
# INTERACTIVE WIZARD
# ============================================================================

def _split_codes(text: str) -> List[str]:
    return [part.strip() for part in text.split(",") if part.strip()]


def _sync_selection(current: List, wanted: List, toggle):
    for item in [c for c in current if c not in wanted]:
        toggle(item)
    for item in [w for w in wanted if w not in current]:
        toggle(item)


def _resolve_agent_id(text: str, agents: List[AgentWorkload]):
    for agent in agents:
        if str(agent.agent_id) == text:
            return agent.agent_id
    return int(text) if text.isdigit() else text


def _print_stepper(wizard: WizardStateMachine):
    labels = []
    for index, step in enumerate(wizard.steps):
        label = step_label(step)
        if index < wizard.step_index:
            labels.append(f"[green]✓ {label}[/green]")
        elif index == wizard.step_index:
            labels.append(f"[bold cyan]{index + 1}. {label}[/bold cyan]")
        else:
            labels.append(f"[dim]{index + 1}. {label}[/dim]")
    console.print("  ›  ".join(labels))


def _ask_basic(wizard: WizardStateMachine):
    draft = wizard.draft
    wizard.update_basic(
        name=Prompt.ask("Rule name", default=draft.name or ...),
        description=Prompt.ask("Description", default=draft.description),
        priority=IntPrompt.ask("Priority (lower = higher priority)", default=draft.priority),
    )


def _ask_type(wizard: WizardStateMachine):
    for rt in RuleType:
        console.print(f"  [cyan]{rt.value}[/cyan] - {rule_type_description(rt)}")
    current = wizard.draft.rule_type.value if wizard.draft.rule_type else ...
    choice = Prompt.ask("Rule type", choices=RULE_TYPE_CHOICES, default=current)
    wizard.set_rule_type(RuleType(choice))


def _ask_geography(wizard: WizardStateMachine):
    draft = wizard.draft
    if wizard.states:
        console.print("States: " + ", ".join(f"{o.code} ({o.value})" for o in wizard.states))
    if wizard.cities:
        console.print("Cities: " + ", ".join(f"{o.code} ({o.value})" for o in wizard.cities))
    states = _split_codes(Prompt.ask("State codes (comma separated)", default=",".join(draft.states)))
    cities = _split_codes(Prompt.ask("City codes (comma separated)", default=",".join(draft.cities)))
    _sync_selection(list(draft.states), states, wizard.toggle_state)
    _sync_selection(list(draft.cities), cities, wizard.toggle_city)

    console.print("DPD buckets: " + ", ".join(DPD_BUCKETS))
    buckets = _split_codes(Prompt.ask("DPD buckets (comma separated, optional)", default=",".join(draft.buckets)))
    try:
        _sync_selection(list(draft.buckets), buckets, wizard.toggle_bucket)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")


def _ask_agents(wizard: WizardStateMachine):
    draft = wizard.draft
    if wizard.agents:
        table = Table(title="Agents")
        table.add_column("ID", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("Geography")
        table.add_column("Capacity", justify="right")
        table.add_column("Available", justify="right")
        for agent in wizard.agents:
            table.add_row(str(agent.agent_id), agent.name, agent.geography,
                          str(agent.capacity), str(agent.available_capacity))
        console.print(table)
    else:
        console.print("[yellow]No agents found[/yellow]")

    wanted = [
        _resolve_agent_id(text, wizard.agents)
        for text in _split_codes(Prompt.ask(
            "Agent IDs (comma separated)", default=",".join(str(a) for a in draft.agent_ids)
        ))
    ]
    _sync_selection(list(draft.agent_ids), wanted, wizard.toggle_agent)
    wizard.set_max_cases_per_agent(
        IntPrompt.ask("Max cases per agent", default=draft.max_cases_per_agent)
    )

    if draft.rule_type == RuleType.PERCENTAGE_SPLIT and draft.agent_ids:
        if Confirm.ask("Distribute evenly?", default=draft.percentage_total != 100):
            wizard.distribute_evenly()
        else:
            for agent_id, current in zip(list(draft.agent_ids), list(draft.percentages)):
                wizard.set_percentage(agent_id, IntPrompt.ask(f"  % for agent {agent_id}", default=current))
        console.print(f"Total: {draft.percentage_total}%")


def _print_review(wizard: WizardStateMachine):
    draft = wizard.draft
    lines = [
        f"[bold]Name:[/bold] {draft.name}",
        f"[bold]Description:[/bold] {draft.description}" if draft.description else None,
        f"[bold]Type:[/bold] {rule_type_label(draft.rule_type)}",
        f"[bold]Priority:[/bold] {draft.priority}",
        f"[bold]States:[/bold] {', '.join(draft.states)}" if draft.states else None,
        f"[bold]Cities:[/bold] {', '.join(draft.cities)}" if draft.cities else None,
        f"[bold]DPD Buckets:[/bold] {', '.join(draft.buckets)}" if draft.buckets else None,
    ]
    if draft.agent_ids:
        lines.append(f"[bold]Agents:[/bold] {', '.join(str(a) for a in draft.agent_ids)}")
        lines.append(f"[bold]Max cases per agent:[/bold] {draft.max_cases_per_agent}")
    if draft.rule_type == RuleType.PERCENTAGE_SPLIT:
        lines.append(f"[bold]Percentages:[/bold] {', '.join(f'{p}%' for p in draft.percentages)}")
    console.print(Panel("\n".join(filter(None, lines)), title="Review"))


_STEP_PROMPTS = {
    WizardStep.BASIC: _ask_basic,
    WizardStep.TYPE: _ask_type,
    WizardStep.GEOGRAPHY: _ask_geography,
    WizardStep.AGENTS: _ask_agents,
}


async def _run_wizard(wizard: WizardStateMachine, presenter: RuleSimulationPresenter,
                      source: Optional[AllocationRule]) -> Optional[AllocationRule]:
    await wizard.open(source)
    for warning in wizard.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    wizard.dismiss_warnings()

    while wizard.is_open:
        _print_stepper(wizard)
        step = wizard.current_step

        if step != WizardStep.REVIEW:
            _STEP_PROMPTS[step](wizard)
            action = Prompt.ask("Continue", choices=["next", "back", "cancel"], default="next")
            if action == "cancel":
                wizard.close()
            elif action == "back":
                wizard.previous()
            elif wizard.next():
                console.print(f"[red]{wizard.error}[/red]")
            continue

        _print_review(wizard)
        action = Prompt.ask("Action", choices=["submit", "simulate", "back", "cancel"], default="submit")
        if action == "cancel":
            wizard.close()
        elif action == "back":
            wizard.previous()
        elif action == "simulate":
            try:
                _print_simulation(await wizard.simulate(presenter))
            except ValueError as e:
                console.print(f"[red]{e}[/red]")
        else:
            try:
                rule = await wizard.submit()
            except PersistenceError:
                console.print(f"[red]Error:[/red] {wizard.error}")
                wizard.dismiss_error()
                continue
            if rule is None:
                console.print(f"[red]{wizard.error}[/red]")
                continue
            return rule

    return None


@cli.command()
@click.option("--edit", "edit_id", type=int, help="Edit an existing rule instead of creating one")
def wizard(edit_id: Optional[int]):
    """Create or edit an allocation rule step by step."""
    gateway = get_gateway()
    try:
        source = asyncio.run(gateway.get_rule(edit_id)) if edit_id else None
    except PersistenceError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise SystemExit(1)

    title = "Edit Allocation Rule" if source else "Create Allocation Rule"
    console.print(Panel.fit(title))

    rule = asyncio.run(_run_wizard(get_wizard(gateway), get_presenter(gateway), source))
    if rule is None:
        console.print("[dim]Wizard closed, nothing saved[/dim]")
        return

    verb = "updated" if source else "created"
    console.print(f"[green]✓ Rule #{rule.id} {verb}[/green]")
    _print_rule(rule)


if __name__ == "__main__":
    cli()
