"""Tests for test runs, event handlers and services."""

import logging
from pathlib import Path

import pytest
from rich.console import Console

from autostep.core.build import build_and_report
from autostep.core.execution import (
    CommandLineResultsCollector,
    ConsoleResultsWriter,
    ExecutionEventHandler,
    RunResult,
    ScenarioOutcome,
    ScenarioResult,
    ServiceRegistry,
    StepContext,
)
from autostep.core.extensions import (
    EXTENSIONS_DIRECTORY,
    ExtensionEntryPoint,
    LoadedExtension,
    LoadedExtensions,
)
from autostep.core.project import create_project

FEATURE = """Feature: Shopping
  Scenario: Add to basket
    Given the shop is open
    When I add 'apples' to the basket
    Then the basket contains 1 item

  Scenario: Empty basket
    Given the shop is open
    Then the basket contains 0 item
"""


class Recorder(ExecutionEventHandler):
    def __init__(self):
        self.events: list[str] = []

    async def on_run_start(self, test_run, services):
        self.events.append("start")

    async def on_scenario_complete(self, result, services):
        self.events.append(f"scenario:{result.scenario}:{result.outcome.value}")

    async def on_run_complete(self, result, services):
        self.events.append("complete")


async def linked_project(project_dir: Path, configuration, steps: ExtensionEntryPoint):
    (project_dir / "shop.as").write_text(FEATURE, encoding="utf-8")
    extensions = LoadedExtensions(project_dir / EXTENSIONS_DIRECTORY)
    extensions.add(LoadedExtension(package="Shop", entry_point=steps))
    project = await create_project(project_dir, configuration, extensions)
    verdict = await build_and_report(project)
    assert verdict.success
    return project


class ShopSteps(ExtensionEntryPoint):
    def __init__(self, fail_on: str | None = None):
        self.fail_on = fail_on
        self.calls: list[str] = []

    def attach_to_project(self, configuration, project):
        project.register_step("given", "the shop is open", self.open_shop)
        project.register_step("when", "I add {item} to the basket", self.add_item)
        project.register_step("then", "the basket contains {count} item", self.check_basket)

    def open_shop(self, context: StepContext):
        self.calls.append("open")
        context.variables["basket"] = []

    async def add_item(self, context: StepContext, item: str):
        self.calls.append(f"add {item}")
        if self.fail_on == "add":
            raise RuntimeError("out of stock")
        context.variables["basket"].append(item)

    def check_basket(self, context: StepContext, count: str):
        self.calls.append(f"check {count}")
        assert len(context.variables["basket"]) == int(count)


class TestServiceRegistry:
    def test_register_and_resolve(self):
        services = ServiceRegistry()
        writer = ConsoleResultsWriter()
        services.register_instance(ConsoleResultsWriter, writer)

        assert services.resolve(ConsoleResultsWriter) is writer
        assert ConsoleResultsWriter in services

    def test_missing_service(self):
        services = ServiceRegistry()
        assert services.try_resolve(ConsoleResultsWriter) is None
        with pytest.raises(LookupError):
            services.resolve(ConsoleResultsWriter)


class TestRunResult:
    def test_counts(self):
        result = RunResult(
            scenarios=[
                ScenarioResult("F", "a", ScenarioOutcome.PASSED),
                ScenarioResult("F", "b", ScenarioOutcome.FAILED),
            ]
        )
        assert result.passed is False
        assert result.passed_count == 1
        assert result.failed_count == 1

    def test_empty_run_passes(self):
        assert RunResult().passed is True


class TestTestRun:
    @pytest.mark.asyncio
    async def test_all_scenarios_pass(self, project_dir: Path, empty_configuration):
        steps = ShopSteps()
        project = await linked_project(project_dir, empty_configuration, steps)
        test_run = project.create_test_run(empty_configuration)
        recorder = Recorder()
        test_run.events.append(recorder)

        result = await test_run.execute()

        assert result.passed is True
        assert steps.calls == ["open", "add apples", "check 1", "open", "check 0"]
        assert recorder.events == [
            "start",
            "scenario:Add to basket:passed",
            "scenario:Empty basket:passed",
            "complete",
        ]

    @pytest.mark.asyncio
    async def test_failing_step_skips_rest_of_scenario(self, project_dir: Path, empty_configuration):
        steps = ShopSteps(fail_on="add")
        project = await linked_project(project_dir, empty_configuration, steps)
        test_run = project.create_test_run(empty_configuration)

        result = await test_run.execute()

        assert result.passed is False
        assert result.failed_count == 1
        failed = result.scenarios[0]
        assert failed.failed_step == "When I add 'apples' to the basket"
        assert isinstance(failed.error, RuntimeError)
        assert "check 1" not in steps.calls
        assert result.scenarios[1].passed

    @pytest.mark.asyncio
    async def test_configure_services_runs_before_start(self, project_dir: Path, empty_configuration):
        project = await linked_project(project_dir, empty_configuration, ShopSteps())
        test_run = project.create_test_run(empty_configuration)
        seen: list[object] = []

        class NeedsService(ExecutionEventHandler):
            async def on_run_start(self, test_run, services):
                seen.append(services.resolve(str))

        test_run.events.append(NeedsService())

        def configure_services(configuration, services):
            assert configuration is empty_configuration
            services.register_instance(str, "registered")

        await test_run.execute(configure_services=configure_services)

        assert seen == ["registered"]


class TestCommandLineResultsCollector:
    @pytest.mark.asyncio
    async def test_logs_and_writes_summary(self, caplog):
        console = Console(record=True, width=120)
        services = ServiceRegistry()
        services.register_instance(ConsoleResultsWriter, ConsoleResultsWriter(console))
        collector = CommandLineResultsCollector(logging.getLogger("autostep.run"))
        passed = ScenarioResult("Shop", "Open", ScenarioOutcome.PASSED)
        failed = ScenarioResult(
            "Shop", "Buy", ScenarioOutcome.FAILED, failed_step="When I buy", error=RuntimeError("no")
        )

        with caplog.at_level(logging.INFO, logger="autostep.run"):
            await collector.on_scenario_complete(passed, services)
            await collector.on_scenario_complete(failed, services)
        await collector.on_run_complete(RunResult(scenarios=[passed, failed]), services)

        assert "Scenario 'Open' passed." in caplog.text
        assert "Scenario 'Buy' failed at step 'When I buy': no" in caplog.text
        output = console.export_text()
        assert "Test Results" in output
        assert "1 passed, 1 failed" in output
