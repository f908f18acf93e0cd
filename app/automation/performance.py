"""
Performance tracker - folds scenario outcomes into a context's running metrics.
"""

import time
from decimal import Decimal
from typing import Callable

from .models import AutomationContext, Executed, ScenarioExecutionResult, is_completed


class PerformanceTracker:
    """Decimal accounting of executions, success rate, profit and gas per owner."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock

    def record(self, context: AutomationContext, result: ScenarioExecutionResult) -> None:
        """
        Record one dispatched scenario. Callers hold the owner's lock.

        Every dispatched scenario counts as an execution. Failures and skips
        caused by unavailable data lower the success rate, other skips do not.
        """
        metrics = context.performance_metrics
        metrics.total_executions += 1
        metrics.last_execution = self.clock()

        if is_completed(result.outcome):
            metrics.successful_executions += 1
        metrics.success_rate = metrics.successful_executions / metrics.total_executions

        if isinstance(result.outcome, Executed):
            metrics.total_profit += Decimal(result.outcome.profit)
            metrics.total_gas_cost += Decimal(result.outcome.gas_used)
