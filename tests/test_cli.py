"""Tests for the allocops command line."""

import pytest
from click.testing import CliRunner
from case_allocator.cli import main
from case_allocator.cli.main import cli
from case_allocator.rules import (
    AllocationRule,
    RuleSimulationPresenter,
    RuleStatus,
    RuleType,
    WizardStateMachine,
)

from conftest import FakeInventory


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def backend(monkeypatch, gateway, catalog, workloads):
    """Point every command at in-memory fakes."""
    monkeypatch.setattr(main, "get_gateway", lambda: gateway)
    monkeypatch.setattr(
        main, "get_presenter",
        lambda gw=None: RuleSimulationPresenter(FakeInventory(count=10), workloads, gateway=gw),
    )
    monkeypatch.setattr(
        main, "get_wizard",
        lambda gw: WizardStateMachine(gw, geography_catalog=catalog, workload_snapshot=workloads),
    )
    gateway.rules[7] = AllocationRule(
        id=7, name="Ohio", rule_type=RuleType.GEOGRAPHY, priority=2,
        status=RuleStatus.ACTIVE, states=["OH"],
    )
    return gateway


class TestSteps:
    def test_geography_steps(self, runner):
        result = runner.invoke(cli, ["steps", "GEOGRAPHY"])
        assert result.exit_code == 0
        assert "1. Basic Info" in result.output
        assert "3. Geography" in result.output
        assert "4. Review" in result.output

    def test_unknown_type(self, runner):
        result = runner.invoke(cli, ["steps", "ROUND_ROBIN"])
        assert result.exit_code == 2


class TestPreview:
    """Local dry runs."""

    def test_percentage_split(self, runner):
        result = runner.invoke(cli, [
            "preview", "-t", "PERCENTAGE_SPLIT", "-n", "7",
            "-a", "A", "-a", "B", "-a", "C", "-p", "50", "-p", "30", "-p", "20",
        ])
        assert result.exit_code == 0
        assert "Percentage Split: 7 cases" in result.output

    def test_percent_count_mismatch(self, runner):
        result = runner.invoke(cli, [
            "preview", "-t", "PERCENTAGE_SPLIT", "-n", "7", "-a", "A", "-a", "B", "-p", "100",
        ])
        assert result.exit_code == 2

    def test_percentages_not_100(self, runner):
        result = runner.invoke(cli, [
            "preview", "-t", "PERCENTAGE_SPLIT", "-n", "7", "-a", "A", "-a", "B", "-p", "50", "-p", "40",
        ])
        assert result.exit_code == 2
        assert "add up to 100" in result.output

    def test_capacity_reports_unallocated(self, runner):
        result = runner.invoke(cli, [
            "preview", "-t", "CAPACITY_BASED", "-n", "20", "-a", "A:5:3", "-a", "B:10",
        ])
        assert result.exit_code == 0
        assert "8 case(s) could not be allocated" in result.output

    def test_bad_agent_spec(self, runner):
        result = runner.invoke(cli, ["preview", "-t", "GEOGRAPHY", "-n", "3", "-a", "A:lots"])
        assert result.exit_code == 2


class TestRules:
    """Persisted rule commands."""

    def test_list(self, runner, backend):
        result = runner.invoke(cli, ["rules", "list"])
        assert result.exit_code == 0
        assert "Ohio" in result.output
        assert "ACTIVE" in result.output

    def test_list_empty(self, runner, backend):
        backend.rules.clear()
        result = runner.invoke(cli, ["rules", "list"])
        assert "No allocation rules found" in result.output

    def test_show_missing(self, runner, backend):
        result = runner.invoke(cli, ["rules", "show", "99"])
        assert result.exit_code == 1
        assert "Rule 99 not found" in result.output

    def test_show_buckets(self, runner, backend):
        backend.rules[7] = backend.rules[7].with_configuration(buckets=["90+"])
        result = runner.invoke(cli, ["rules", "show", "7"])
        assert result.exit_code == 0
        assert "DPD Buckets: 90+" in result.output

    def test_simulate(self, runner, backend):
        result = runner.invoke(cli, ["rules", "simulate", "7"])
        assert result.exit_code == 0
        assert "Matching cases: 3" in result.output

    def test_apply(self, runner, backend):
        result = runner.invoke(cli, ["rules", "apply", "7", "-a", "1", "-a", "2",
                                     "-p", "50", "-p", "50", "--yes"])
        assert result.exit_code == 0
        assert "3 cases allocated" in result.output
        assert backend.applied == [(7, (1, 2), (50, 50))]

    def test_apply_cancelled(self, runner, backend):
        result = runner.invoke(cli, ["rules", "apply", "7"], input="n\n")
        assert "Cancelled" in result.output
        assert backend.applied == []

    def test_delete(self, runner, backend):
        result = runner.invoke(cli, ["rules", "delete", "7", "--yes"])
        assert result.exit_code == 0
        assert 7 not in backend.rules


class TestWizardCommand:
    """Interactive rule creation."""

    def test_create_capacity_rule(self, runner, backend):
        answers = "\n".join([
            "Capacity rule",   # name
            "",                # description
            "3",               # priority
            "",                # next
            "CAPACITY_BASED",  # rule type
            "",                # next
            "submit",
        ]) + "\n"
        result = runner.invoke(cli, ["wizard"], input=answers)

        assert result.exit_code == 0, result.output
        assert "Rule #101 created" in result.output
        assert backend.created[0].name == "Capacity rule"
        assert backend.created[0].priority == 3

    def test_validation_error_shown(self, runner, backend):
        answers = "\n".join([
            "", "", "1", "",   # empty name is rejected
            "Retry", "", "1", "",
            "CAPACITY_BASED", "",
            "submit",
        ]) + "\n"
        result = runner.invoke(cli, ["wizard"], input=answers)

        assert "Rule name is required" in result.output
        assert backend.created[0].name == "Retry"

    def test_cancel(self, runner, backend):
        result = runner.invoke(cli, ["wizard"], input="Draft\n\n1\ncancel\n")
        assert "nothing saved" in result.output
        assert backend.created == []

    def test_edit_missing_rule(self, runner, backend):
        result = runner.invoke(cli, ["wizard", "--edit", "99"])
        assert result.exit_code == 1

    def test_geography_rule_with_buckets(self, runner, backend):
        answers = "\n".join([
            "Ohio late stage", "", "1", "",
            "GEOGRAPHY", "",
            "OH",              # states
            "",                # cities
            "60-90, 90+",      # DPD buckets
            "",
            "submit",
        ]) + "\n"
        result = runner.invoke(cli, ["wizard"], input=answers)

        assert result.exit_code == 0, result.output
        assert "DPD Buckets: 60-90, 90+" in result.output
        assert backend.created[0].states == ["OH"]
        assert backend.created[0].buckets == ["60-90", "90+"]

    def test_simulation_warnings_shown(self, runner, backend, monkeypatch, workloads):
        """A simulation built on a failed case count says so."""
        inventory = FakeInventory(count=0)
        inventory.warnings = ["Could not load unallocated case count: connection refused"]
        monkeypatch.setattr(
            main, "get_presenter",
            lambda gw=None: RuleSimulationPresenter(inventory, workloads, gateway=gw),
        )
        answers = "\n".join([
            "Capacity rule", "", "1", "",
            "CAPACITY_BASED", "",
            "simulate",
            "cancel",
        ]) + "\n"
        result = runner.invoke(cli, ["wizard"], input=answers)

        assert "Matching cases: 0" in result.output
        assert "Warning: Could not load unallocated case count: connection refused" in result.output
        assert backend.created == []
