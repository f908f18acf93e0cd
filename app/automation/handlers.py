"""
Scenario handlers and the registry that dispatches scenarios to them.

Yield optimization and portfolio rebalancing run the in-engine pipeline
(metrics -> risk -> rebalance). Every other scenario type is delegated to the
injected strategy advisor.
"""

import time
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from .config_loader import EngineConfig
from .cycle_data import CycleData
from .decorators import call_with_timeout
from .exceptions import ComputationError
from .logging_config import setup_logger
from .models import (
    AutomationContext,
    AutomationScenario,
    Executed,
    Failed,
    PortfolioRebalancingParams,
    PositionMonitoringParams,
    ScenarioOutcome,
    ScenarioType,
    Skipped,
    StrategyRequest,
    YieldOptimizationParams,
)
from .providers.base import StrategyAdvisor
from .strategy.metrics import calculate_portfolio_metrics
from .strategy.rebalance import RebalanceGenerator
from .strategy.risk import assess_risk
from .transactions import TransactionBuilder

logger = setup_logger()


class ScenarioHandler(ABC):
    """Runs one triggered scenario and reports its outcome."""

    @abstractmethod
    def handle(self, scenario: AutomationScenario, context: AutomationContext, cycle: CycleData) -> ScenarioOutcome:
        """Execute the scenario. DataFetchError propagates to the scheduler."""

    def next_check(self, scenario: AutomationScenario, now: float) -> Optional[float]:
        return None


class RebalanceScenarioHandler(ScenarioHandler):
    """In-engine pipeline for yield optimization and portfolio rebalancing."""

    def __init__(self, config: EngineConfig, generator: RebalanceGenerator, builder: TransactionBuilder):
        self.config = config
        self.generator = generator
        self.builder = builder

    def handle(self, scenario: AutomationScenario, context: AutomationContext, cycle: CycleData) -> ScenarioOutcome:
        params = scenario.parameters
        if not isinstance(params, (YieldOptimizationParams, PortfolioRebalancingParams)):
            raise ComputationError(f"Scenario {scenario.id} has no rebalance parameters")

        risk_tolerance = getattr(params, "risk_tolerance", None) or context.global_config.risk_tolerance

        account = cycle.account()
        opportunities = cycle.opportunities(self.config.strategy.min_liquidity, risk_tolerance)

        try:
            metrics = calculate_portfolio_metrics(account, self.config.assets)
            risk = assess_risk(account, metrics, self.config.assets)
            needs_rebalance = self.generator.should_rebalance(account, metrics, risk, opportunities, params.target_apy)
        except Exception as ex:
            raise ComputationError(f"Portfolio analysis failed for {context.owner}: {ex}") from ex

        if not needs_rebalance:
            return Skipped(
                reason=(
                    f"Portfolio is optimized. Current APY: {metrics.net_apy:.2f}%, "
                    f"Health Factor: {metrics.health_factor}"
                ),
                recommendations=risk.recommendations,
            )

        try:
            actions = self.generator.generate_rebalance_actions(
                account, opportunities, risk, risk_tolerance, params.max_position_size
            )
        except Exception as ex:
            raise ComputationError(f"Rebalance action generation failed for {context.owner}: {ex}") from ex

        if not actions:
            return Skipped(reason="No profitable rebalancing opportunities found", recommendations=risk.recommendations)

        built = self.builder.build_all(actions, context.owner)
        if not built:
            return Skipped(reason="No rebalance transactions could be built", recommendations=risk.recommendations)
        actions = [action for action, _ in built]
        transactions = [tx for _, tx in built]
        total_gain = sum((action.expected_gain for action in actions), Decimal("0"))
        gas_estimate = Decimal(self.config.GAS_PER_TRANSACTION) * len(transactions)

        logger.info(
            "RebalanceScenarioHandler: %s actions for %s, expected yearly gain %s",
            len(actions), context.owner, total_gain,
        )
        return Executed(
            transactions=transactions,
            profit=total_gain,
            gas_used=gas_estimate,
            recommendations=risk.recommendations,
            message=f"Rebalancing portfolio with {len(actions)} actions. Expected yearly gain: {total_gain:.2f} USD",
            risk_assessment=risk.overall_risk,
        )


ADVISOR_INSTRUCTIONS = {
    ScenarioType.RISK_MANAGEMENT: (
        "Assess liquidation, concentration and protocol exposure and take risk mitigation actions "
        "within the given limits."
    ),
    ScenarioType.POSITION_MONITORING: (
        "Check health factors, APY changes and liquidation risk across all positions and report "
        "status with recommendations. Do not transact."
    ),
    ScenarioType.LIQUIDATION_PROTECTION: (
        "Check every position for liquidation risk and take the listed protective actions if the "
        "health factor is below the minimum."
    ),
    ScenarioType.PROFIT_TAKING: "Take profits on the target assets once the profit threshold is reached.",
    ScenarioType.STOP_LOSS: "Cut losses on the target assets once the stop loss threshold is reached.",
}


class AdvisorScenarioHandler(ScenarioHandler):
    """Delegates a scenario to the external strategy advisor."""

    def __init__(self, advisor: StrategyAdvisor, executor: Executor, timeout: float):
        self.advisor = advisor
        self.executor = executor
        self.timeout = timeout

    def build_request(self, scenario: AutomationScenario, context: AutomationContext) -> StrategyRequest:
        parameters: Dict[str, Any] = scenario.parameters.to_dict()
        parameters.update(
            {
                "max_slippage": str(context.global_config.max_slippage),
                "risk_tolerance": context.global_config.risk_tolerance.value,
                "emergency_stop_loss": str(context.global_config.emergency_stop_loss),
                "preferred_protocols": list(context.global_config.preferred_protocols),
            }
        )
        return StrategyRequest(
            owner=context.owner,
            chain_id=context.chain_id,
            scenario_type=scenario.type,
            instructions=ADVISOR_INSTRUCTIONS[scenario.type],
            parameters=parameters,
        )

    def handle(self, scenario: AutomationScenario, context: AutomationContext, cycle: CycleData) -> ScenarioOutcome:
        request = self.build_request(scenario, context)
        advice = call_with_timeout(
            self.executor, self.timeout, f"Strategy advisor ({scenario.type.value})", self.advisor.run, request
        )

        if not advice.success:
            return Failed(error=f"{scenario.name} failed: {advice.error or 'unknown advisor error'}")

        if scenario.type == ScenarioType.POSITION_MONITORING:
            return Skipped(reason="Position monitoring completed", recommendations=advice.recommendations)

        return Executed(
            transactions=advice.transactions,
            profit=advice.profit,
            gas_used=advice.gas_used,
            recommendations=advice.recommendations,
            message=f"{scenario.name} completed",
        )

    def next_check(self, scenario: AutomationScenario, now: float) -> Optional[float]:
        if isinstance(scenario.parameters, PositionMonitoringParams):
            return now + scenario.parameters.check_interval
        return None


HANDLER_REGISTRY = {
    ScenarioType.YIELD_OPTIMIZATION: "rebalance",
    ScenarioType.PORTFOLIO_REBALANCING: "rebalance",
    ScenarioType.RISK_MANAGEMENT: "advisor",
    ScenarioType.POSITION_MONITORING: "advisor",
    ScenarioType.LIQUIDATION_PROTECTION: "advisor",
    ScenarioType.PROFIT_TAKING: "advisor",
    ScenarioType.STOP_LOSS: "advisor",
}


class ScenarioDispatcher:
    """Maps scenario types to their handler instances."""

    def __init__(self, handlers: Dict[str, ScenarioHandler], clock: Callable[[], float] = time.time):
        self.handlers = handlers
        self.clock = clock

    def get_handler(self, scenario_type: ScenarioType) -> ScenarioHandler:
        key = HANDLER_REGISTRY.get(scenario_type)
        if key is None or key not in self.handlers:
            raise ValueError(f"No handler for scenario type: {scenario_type}")
        return self.handlers[key]

    def dispatch(
        self, scenario: AutomationScenario, context: AutomationContext, cycle: CycleData
    ) -> ScenarioOutcome:
        logger.info("ScenarioDispatcher: Executing scenario %s (%s) for %s", scenario.name, scenario.type.value, context.owner)
        return self.get_handler(scenario.type).handle(scenario, context, cycle)

    def next_check(self, scenario: AutomationScenario) -> Optional[float]:
        return self.get_handler(scenario.type).next_check(scenario, self.clock())
