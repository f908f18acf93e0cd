"""
Priority scheduler - runs one automation cycle over an owner's scenarios.
"""

import time
from concurrent.futures import Executor
from decimal import Decimal
from typing import Callable, List, Optional

from .cycle_data import CycleData
from .emergency import EmergencyStop
from .exceptions import DataFetchError
from .handlers import ScenarioDispatcher
from .logging_config import setup_logger
from .models import (
    AutomationContext,
    AutomationScenario,
    ExecutionResult,
    Executed,
    Failed,
    ScenarioExecutionResult,
    ScenarioOutcome,
    Skipped,
    is_completed,
)
from .performance import PerformanceTracker
from .providers.base import MarketProvider
from .registry import ScenarioRegistry
from .triggers import TriggerEvaluator

logger = setup_logger()

DEFAULT_HIGH_PRIORITY_THRESHOLD = 8


class PriorityScheduler:
    """
    Evaluates an owner's scenarios in descending priority, one at a time.

    A scenario above the high-priority threshold that executes suppresses all
    remaining scenarios of the cycle, so one cycle never issues conflicting
    portfolio moves. Scenario-level failures are reported in the result and
    never abort the cycle.
    """

    def __init__(
        self,
        registry: ScenarioRegistry,
        evaluator: TriggerEvaluator,
        dispatcher: ScenarioDispatcher,
        tracker: PerformanceTracker,
        emergency_stop: EmergencyStop,
        provider: MarketProvider,
        executor: Executor,
        call_timeout: float,
        high_priority_threshold: int = DEFAULT_HIGH_PRIORITY_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.tracker = tracker
        self.emergency_stop = emergency_stop
        self.provider = provider
        self.executor = executor
        self.call_timeout = call_timeout
        self.high_priority_threshold = high_priority_threshold
        self.clock = clock

    def execute_automation_tasks(self, context: AutomationContext) -> ExecutionResult:
        with self.registry.owner_lock(context.owner):
            if self.emergency_stop.is_engaged(context.owner):
                logger.warning("PriorityScheduler: Emergency stop engaged, skipping all scenarios for %s", context.owner)
                results = [self._result(s, Skipped(reason="Emergency stop engaged")) for s in context.scenarios]
                return ExecutionResult(skip=True, message="Emergency stop engaged", scenario_results=results)

            logger.info("PriorityScheduler: Executing automation tasks for %s", context.owner)
            results = self._run_scenarios(context)

        return self._aggregate(context.owner, results)

    def _run_scenarios(self, context: AutomationContext) -> List[ScenarioExecutionResult]:
        cycle = CycleData(context.owner, self.provider, self.executor, self.call_timeout)
        results: List[ScenarioExecutionResult] = []
        preempted_by: Optional[AutomationScenario] = None

        for scenario in list(context.scenarios):
            if preempted_by is not None:
                results.append(
                    self._result(scenario, Skipped(reason=f"Preempted by high-priority scenario {preempted_by.name}"))
                )
                continue

            if not scenario.enabled:
                results.append(self._result(scenario, Skipped(reason="Scenario disabled")))
                continue

            gate = self._check_triggers(scenario, context, cycle)
            if gate is not None:
                results.append(self._result(scenario, gate))
                continue

            outcome = self._dispatch(scenario, context, cycle)
            result = self._result(scenario, outcome, next_check=self._next_check(scenario))
            results.append(result)

            self.tracker.record(context, result)
            if is_completed(outcome):
                scenario.state.last_execution = self.clock()

            if scenario.priority > self.high_priority_threshold and result.executed:
                logger.info(
                    "PriorityScheduler: High priority scenario %s executed, skipping lower priority scenarios",
                    scenario.name,
                )
                preempted_by = scenario

        return results

    def _check_triggers(
        self, scenario: AutomationScenario, context: AutomationContext, cycle: CycleData
    ) -> Optional[ScenarioOutcome]:
        """None when the scenario should run, otherwise the outcome that replaces running it."""
        try:
            if self.evaluator.check_scenario_triggers(scenario, context, cycle):
                return None
            return Skipped(reason="Triggers not met, skipping scenario")
        except DataFetchError as ex:
            logger.warning("PriorityScheduler: Trigger data unavailable for scenario %s: %s", scenario.name, ex)
            return Skipped(reason=f"Trigger data unavailable: {ex}", data_unavailable=True)
        except Exception as ex:
            logger.error("PriorityScheduler: Error evaluating triggers of %s: %s", scenario.name, ex, exc_info=True)
            return Failed(error=f"Trigger evaluation error: {ex}")

    def _dispatch(self, scenario: AutomationScenario, context: AutomationContext, cycle: CycleData) -> ScenarioOutcome:
        try:
            return self.dispatcher.dispatch(scenario, context, cycle)
        except DataFetchError as ex:
            logger.warning("PriorityScheduler: Skipping scenario %s, data fetch failed: %s", scenario.name, ex)
            return Skipped(reason=f"Data fetch failed: {ex}", data_unavailable=True)
        except Exception as ex:
            logger.error("PriorityScheduler: Error executing scenario %s: %s", scenario.name, ex, exc_info=True)
            return Failed(error=f"Error: {ex}")

    def _next_check(self, scenario: AutomationScenario) -> Optional[float]:
        try:
            return self.dispatcher.next_check(scenario)
        except Exception as ex:
            logger.warning("PriorityScheduler: Could not compute next check for %s: %s", scenario.name, ex)
            return None

    @staticmethod
    def _result(
        scenario: AutomationScenario, outcome: ScenarioOutcome, next_check: Optional[float] = None
    ) -> ScenarioExecutionResult:
        return ScenarioExecutionResult(
            scenario_id=scenario.id,
            scenario_name=scenario.name,
            priority=scenario.priority,
            outcome=outcome,
            next_check=next_check,
        )

    @staticmethod
    def _aggregate(owner: str, results: List[ScenarioExecutionResult]) -> ExecutionResult:
        transactions = []
        total_profit = Decimal("0")
        total_gas = Decimal("0")
        risk_assessment = None

        for result in results:
            if not isinstance(result.outcome, Executed):
                continue
            transactions.extend(result.outcome.transactions)
            total_profit += result.outcome.profit
            total_gas += result.outcome.gas_used
            if risk_assessment is None:
                risk_assessment = result.outcome.risk_assessment

        executed = sum(1 for r in results if r.executed)

        if not transactions:
            logger.info("PriorityScheduler: No scenarios required execution for %s", owner)
            return ExecutionResult(
                skip=True,
                message="No scenarios required execution",
                risk_assessment=risk_assessment,
                scenario_results=results,
            )

        logger.info(
            "PriorityScheduler: %s scenarios executed for %s with %s transactions", executed, owner, len(transactions)
        )
        return ExecutionResult(
            skip=False,
            message=f"Executed {executed} scenarios successfully",
            transactions=transactions,
            gas_estimate=total_gas,
            expected_profit=total_profit,
            risk_assessment=risk_assessment,
            scenario_results=results,
        )
