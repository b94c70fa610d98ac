"""
Test execution.

A ``TestRun`` walks the compiled features of a linked project and runs
each scenario's steps in order. A step runs by calling the callback of the
step definition it is bound to; definitions without a callback pass
without doing anything. The first step that raises fails its scenario and
the remaining steps of that scenario are skipped.

Event handlers added to ``TestRun.events`` are notified when the run
starts, after every scenario, and when the run completes. Services
registered in the ``ServiceRegistry`` (by the command and by extensions)
are available to steps and event handlers.
"""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeVar

from rich import box
from rich.console import Console
from rich.table import Table

from .config import ResolvedConfiguration
from .parser import FeatureSpec, ScenarioSpec

if TYPE_CHECKING:
    from .project import Project

logger = logging.getLogger(__name__)

T = TypeVar("T")

ConfigureServices = Callable[[ResolvedConfiguration, "ServiceRegistry"], None]


class ServiceRegistry:
    """Registered service instances, keyed by type."""

    def __init__(self) -> None:
        self._services: dict[type, Any] = {}

    def register_instance(self, service_type: type[T], instance: T) -> None:
        self._services[service_type] = instance

    def resolve(self, service_type: type[T]) -> T:
        try:
            return self._services[service_type]
        except KeyError:
            raise LookupError(f"No service registered for {service_type.__name__}") from None

    def try_resolve(self, service_type: type[T]) -> T | None:
        return self._services.get(service_type)

    def __contains__(self, service_type: object) -> bool:
        return service_type in self._services


class ScenarioOutcome(StrEnum):
    PASSED = "passed"
    FAILED = "failed"


@dataclass
class ScenarioResult:
    """Result of running one scenario."""

    feature: str
    scenario: str
    outcome: ScenarioOutcome
    failed_step: str | None = None
    error: BaseException | None = None
    elapsed: float = 0.0

    @property
    def passed(self) -> bool:
        return self.outcome == ScenarioOutcome.PASSED


@dataclass
class RunResult:
    """Result of a whole test run."""

    scenarios: list[ScenarioResult] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def passed(self) -> bool:
        return all(s.passed for s in self.scenarios)

    @property
    def passed_count(self) -> int:
        return sum(1 for s in self.scenarios if s.passed)

    @property
    def failed_count(self) -> int:
        return len(self.scenarios) - self.passed_count


@dataclass
class StepContext:
    """What a step callback receives as its first argument."""

    configuration: ResolvedConfiguration
    services: ServiceRegistry
    feature: FeatureSpec
    scenario: ScenarioSpec
    variables: dict[str, Any] = field(default_factory=dict)


class ExecutionEventHandler:
    """Base class for test run event handlers. All hooks default to no-ops."""

    async def on_run_start(self, test_run: TestRun, services: ServiceRegistry) -> None:
        pass

    async def on_scenario_complete(self, result: ScenarioResult, services: ServiceRegistry) -> None:
        pass

    async def on_run_complete(self, result: RunResult, services: ServiceRegistry) -> None:
        pass


class ConsoleResultsWriter:
    """Writes a run summary to the console."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def write_summary(self, result: RunResult) -> None:
        table = Table(title="Test Results", box=box.SIMPLE)
        table.add_column("Feature")
        table.add_column("Scenario")
        table.add_column("Result")

        for scenario in result.scenarios:
            status = "[green]passed[/green]" if scenario.passed else "[red]failed[/red]"
            table.add_row(scenario.feature, scenario.scenario, status)

        self.console.print(table)
        self.console.print(
            f"{result.passed_count} passed, {result.failed_count} failed "
            f"({len(result.scenarios)} scenarios in {result.elapsed:.2f}s)"
        )


class CommandLineResultsCollector(ExecutionEventHandler):
    """Logs scenario results as they complete and writes the final summary."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    async def on_scenario_complete(self, result: ScenarioResult, services: ServiceRegistry) -> None:
        if result.passed:
            self.log.info("Scenario '%s' passed.", result.scenario)
        else:
            self.log.error(
                "Scenario '%s' failed at step '%s': %s",
                result.scenario,
                result.failed_step,
                result.error,
            )

    async def on_run_complete(self, result: RunResult, services: ServiceRegistry) -> None:
        writer = services.try_resolve(ConsoleResultsWriter)
        if writer is not None:
            writer.write_summary(result)


class TestRun:
    """
    A single execution of a project's features.

    Attributes:
        project: The linked project
        configuration: Project configuration for this run
        features: Features to execute, in order
        events: Event handlers notified during the run
    """

    __test__ = False

    def __init__(
        self,
        project: Project,
        configuration: ResolvedConfiguration,
        features: list[FeatureSpec],
    ):
        self.project = project
        self.configuration = configuration
        self.features = features
        self.events: list[ExecutionEventHandler] = []

    async def execute(
        self,
        log: logging.Logger | None = None,
        configure_services: ConfigureServices | None = None,
    ) -> RunResult:
        """
        Run every scenario.

        Args:
            log: Logger for run progress
            configure_services: Called once, before the run starts, to
                register services

        Returns:
            RunResult with one entry per scenario
        """
        log = log or logger
        services = ServiceRegistry()
        services.register_instance(ResolvedConfiguration, self.configuration)
        if configure_services is not None:
            configure_services(self.configuration, services)

        for handler in self.events:
            await handler.on_run_start(self, services)

        result = RunResult()
        started = time.perf_counter()

        for feature in self.features:
            log.debug("Executing feature '%s'", feature.title)
            for scenario in feature.scenarios:
                scenario_result = await self._run_scenario(feature, scenario, services, log)
                result.scenarios.append(scenario_result)
                for handler in self.events:
                    await handler.on_scenario_complete(scenario_result, services)

        result.elapsed = time.perf_counter() - started

        for handler in self.events:
            await handler.on_run_complete(result, services)

        return result

    async def _run_scenario(
        self,
        feature: FeatureSpec,
        scenario: ScenarioSpec,
        services: ServiceRegistry,
        log: logging.Logger,
    ) -> ScenarioResult:
        context = StepContext(
            configuration=self.configuration,
            services=services,
            feature=feature,
            scenario=scenario,
        )
        started = time.perf_counter()

        for step in scenario.steps:
            if step.binding is None:
                raise RuntimeError(f"Step '{step}' is not bound; link the project before running it.")

            callback = step.binding.definition.callback
            if callback is None:
                log.debug("Step '%s' has no implementation; skipping", step)
                continue

            try:
                outcome = callback(context, *step.binding.arguments)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                return ScenarioResult(
                    feature=feature.title,
                    scenario=scenario.title,
                    outcome=ScenarioOutcome.FAILED,
                    failed_step=str(step),
                    error=e,
                    elapsed=time.perf_counter() - started,
                )

        return ScenarioResult(
            feature=feature.title,
            scenario=scenario.title,
            outcome=ScenarioOutcome.PASSED,
            elapsed=time.perf_counter() - started,
        )
