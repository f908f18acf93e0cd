"""
Tests for performance accounting.
"""

from decimal import Decimal

from app.automation.models import AutomationContext, Executed, Failed, ScenarioExecutionResult, Skipped
from app.automation.performance import PerformanceTracker

from factories import OWNER, FakeClock


def _result(outcome):
    return ScenarioExecutionResult("s", "S", 5, outcome)


def test_record_accumulates_decimal_totals():
    clock = FakeClock(100.0)
    tracker = PerformanceTracker(clock)
    context = AutomationContext(owner=OWNER, chain_id=1329)

    tracker.record(context, _result(Executed(profit=Decimal("0.1"), gas_used=Decimal("21000"))))
    tracker.record(context, _result(Executed(profit=Decimal("0.2"), gas_used=Decimal("21000"))))

    metrics = context.performance_metrics
    assert metrics.total_executions == 2
    assert metrics.successful_executions == 2
    assert metrics.success_rate == 1.0
    assert metrics.total_profit == Decimal("0.3")
    assert metrics.total_gas_cost == Decimal("42000")
    assert metrics.last_execution == 100.0


def test_failures_lower_success_rate_and_skips_do_not():
    tracker = PerformanceTracker(FakeClock())
    context = AutomationContext(owner=OWNER, chain_id=1329)

    tracker.record(context, _result(Skipped(reason="Position monitoring completed")))
    tracker.record(context, _result(Failed(error="boom")))
    tracker.record(context, _result(Failed(error="boom")))
    tracker.record(context, _result(Executed()))

    metrics = context.performance_metrics
    assert metrics.total_executions == 4
    assert metrics.successful_executions == 2
    assert metrics.success_rate == 0.5
    assert metrics.total_profit == 0
    assert metrics.to_dict()["total_profit"] == "0"


def test_skips_for_unavailable_data_are_not_successes():
    tracker = PerformanceTracker(FakeClock())
    context = AutomationContext(owner=OWNER, chain_id=1329)

    tracker.record(context, _result(Skipped(reason="Data fetch failed: timeout", data_unavailable=True)))
    tracker.record(context, _result(Executed()))

    metrics = context.performance_metrics
    assert metrics.total_executions == 2
    assert metrics.successful_executions == 1
    assert metrics.success_rate == 0.5
