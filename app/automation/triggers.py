"""
Trigger evaluation: decides whether a scenario's conditions currently hold.
"""

import math
import time
from decimal import Decimal
from typing import Callable, Optional

from .config_loader import StrategySettings
from .cycle_data import CycleData
from .logging_config import setup_logger
from .models import AutomationContext, AutomationScenario, AutomationTrigger, Comparison, TriggerType
from .strategy.metrics import calculate_net_apy

logger = setup_logger()

TIME_UNITS = {
    "every_seconds": 1,
    "every_minutes": 60,
    "every_hours": 3600,
    "every_days": 86400,
}
APY_GAP_CONDITIONS = ("better_apy_available", "apy_gap")
EQUALS_TOLERANCE = 1e-9


def profit_percent(supplied: Decimal, borrowed: Decimal, net_deposits: Decimal) -> Decimal:
    """Unrealized profit of the account relative to what the owner put in."""
    if net_deposits <= 0:
        return Decimal("0")
    return (supplied - borrowed - net_deposits) / net_deposits * 100


def compare(signal: float, comparison: Comparison, threshold: float, baseline: Optional[float] = None) -> bool:
    if comparison == Comparison.GREATER_THAN:
        return signal > threshold
    if comparison == Comparison.LESS_THAN:
        return signal < threshold
    if comparison == Comparison.EQUALS:
        return math.isclose(signal, threshold, rel_tol=EQUALS_TOLERANCE, abs_tol=EQUALS_TOLERANCE)
    if comparison == Comparison.PERCENTAGE_CHANGE:
        if baseline is None or baseline == 0 or not math.isfinite(baseline) or not math.isfinite(signal):
            return False
        return abs(signal - baseline) / abs(baseline) * 100 >= threshold
    raise ValueError(f"Unknown comparison: {comparison}")


class TriggerEvaluator:
    """
    Evaluates triggers against live signals.

    Signals come from the cycle's cached market data, so every trigger of a
    cycle sees the same snapshot. A failed fetch raises DataFetchError.
    """

    def __init__(self, strategy: StrategySettings, clock: Callable[[], float] = time.time):
        self.strategy = strategy
        self.clock = clock

    def check_scenario_triggers(
        self, scenario: AutomationScenario, context: AutomationContext, cycle: CycleData
    ) -> bool:
        """All triggers must hold. An empty trigger list holds."""
        for index, trigger in enumerate(scenario.triggers):
            if not self.evaluate(trigger, scenario, context, cycle, index):
                logger.debug(
                    "TriggerEvaluator: %s trigger %s (%s) not met for scenario %s",
                    context.owner, index, trigger.type.value, scenario.id,
                )
                return False
        return True

    def evaluate(
        self,
        trigger: AutomationTrigger,
        scenario: AutomationScenario,
        context: AutomationContext,
        cycle: CycleData,
        index: int = 0,
    ) -> bool:
        """
        Whether one trigger holds right now.

        For time_based triggers the value is seconds unless the condition label
        names a unit (every_minutes, every_hours, every_days), which scales it.
        """
        if trigger.type == TriggerType.TIME_BASED:
            return self._evaluate_time(trigger, scenario)

        signal = self.read_signal(trigger, context, cycle)
        baseline = scenario.state.baselines.get(index)
        if trigger.comparison == Comparison.PERCENTAGE_CHANGE:
            scenario.state.baselines[index] = signal
        return compare(signal, trigger.comparison, trigger.value, baseline)

    def _evaluate_time(self, trigger: AutomationTrigger, scenario: AutomationScenario) -> bool:
        interval = trigger.value * TIME_UNITS.get(trigger.condition, 1)
        return self.clock() - scenario.state.last_execution >= interval

    def read_signal(self, trigger: AutomationTrigger, context: AutomationContext, cycle: CycleData) -> float:
        """Current value of the live signal a trigger watches."""
        if trigger.type == TriggerType.PRICE_BASED:
            return float(cycle.asset_price(trigger.condition))

        account = cycle.account()

        if trigger.type == TriggerType.HEALTH_FACTOR:
            return float(account.health_factor)

        if trigger.type == TriggerType.APY_BASED:
            net_apy = calculate_net_apy(account.positions)
            if trigger.condition not in APY_GAP_CONDITIONS:
                return float(net_apy)
            opportunities = cycle.opportunities(self.strategy.min_liquidity, context.global_config.risk_tolerance)
            if not opportunities:
                return 0.0
            return float(max(o.apy for o in opportunities) - net_apy)

        profit = profit_percent(account.total_supplied_usd, account.total_borrowed_usd, account.net_deposits_usd)
        if trigger.type == TriggerType.PROFIT_THRESHOLD:
            return float(profit)
        if trigger.type == TriggerType.LOSS_THRESHOLD:
            return float(max(Decimal("0"), -profit))

        raise ValueError(f"Unknown trigger type: {trigger.type}")
