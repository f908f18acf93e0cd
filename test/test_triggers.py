"""
Tests for trigger evaluation.
"""

from decimal import Decimal

import pytest

from app.automation.cycle_data import CycleData
from app.automation.exceptions import DataFetchError
from app.automation.models import (
    AutomationContext,
    AutomationScenario,
    AutomationTrigger,
    Comparison,
    PositionMonitoringParams,
    ScenarioType,
    TriggerType,
)
from app.automation.triggers import TriggerEvaluator, compare, profit_percent

from factories import OWNER, FakeMarketProvider, make_opportunity, sample_account


def _scenario(*triggers):
    return AutomationScenario(
        id="s",
        name="s",
        type=ScenarioType.POSITION_MONITORING,
        parameters=PositionMonitoringParams(),
        triggers=list(triggers),
    )


@pytest.fixture()
def evaluator(config, clock):
    return TriggerEvaluator(config.strategy, clock)


@pytest.fixture()
def market():
    return FakeMarketProvider(
        account=sample_account(),
        opportunities=[make_opportunity("USDC", "12")],
        prices={"SEI": Decimal("0.50")},
    )


def _check(evaluator, scenario, provider, executor):
    context = AutomationContext(owner=OWNER, chain_id=1329, scenarios=[scenario])
    cycle = CycleData(OWNER, provider, executor, timeout=5)
    return evaluator.check_scenario_triggers(scenario, context, cycle)


def test_empty_trigger_list_holds(evaluator, market, executor):
    assert _check(evaluator, _scenario(), market, executor)


def test_time_trigger_uses_condition_unit(evaluator, market, executor, clock):
    scenario = _scenario(AutomationTrigger(TriggerType.TIME_BASED, "every_hours", 1))

    scenario.state.last_execution = clock.now - 1800
    assert not _check(evaluator, scenario, market, executor)

    scenario.state.last_execution = clock.now - 7200
    assert _check(evaluator, scenario, market, executor)


def test_time_trigger_never_executed_holds(evaluator, market, executor):
    scenario = _scenario(AutomationTrigger(TriggerType.TIME_BASED, "every_days", 1))
    assert _check(evaluator, scenario, market, executor)


def test_health_factor_trigger(evaluator, market, executor):
    assert _check(
        evaluator,
        _scenario(AutomationTrigger(TriggerType.HEALTH_FACTOR, "below_threshold", 3.5, Comparison.LESS_THAN)),
        market,
        executor,
    )
    assert not _check(
        evaluator,
        _scenario(AutomationTrigger(TriggerType.HEALTH_FACTOR, "below_threshold", 1.5, Comparison.LESS_THAN)),
        market,
        executor,
    )


def test_apy_gap_trigger_compares_best_opportunity_to_net_apy(evaluator, market, executor):
    # net APY is 7.2 - 5 = 2.2, best opportunity 12
    assert _check(
        evaluator, _scenario(AutomationTrigger(TriggerType.APY_BASED, "better_apy_available", 9.7)), market, executor
    )
    assert not _check(
        evaluator, _scenario(AutomationTrigger(TriggerType.APY_BASED, "better_apy_available", 9.9)), market, executor
    )


def test_plain_apy_trigger_reads_net_apy(evaluator, market, executor):
    assert _check(
        evaluator,
        _scenario(AutomationTrigger(TriggerType.APY_BASED, "current_apy", 3, Comparison.LESS_THAN)),
        market,
        executor,
    )


def test_price_trigger(evaluator, market, executor):
    assert _check(evaluator, _scenario(AutomationTrigger(TriggerType.PRICE_BASED, "sei", 0.4)), market, executor)


def test_percentage_change_needs_a_baseline(evaluator, market, executor):
    scenario = _scenario(AutomationTrigger(TriggerType.PRICE_BASED, "SEI", 10, Comparison.PERCENTAGE_CHANGE))

    assert not _check(evaluator, scenario, market, executor)
    assert scenario.state.baselines[0] == 0.5

    market.prices["SEI"] = Decimal("0.52")
    assert not _check(evaluator, scenario, market, executor)

    market.prices["SEI"] = Decimal("0.60")
    assert _check(evaluator, scenario, market, executor)


def test_profit_and_loss_triggers(evaluator, market, executor):
    # (1000 - 100 - 800) / 800 = 12.5%
    assert _check(evaluator, _scenario(AutomationTrigger(TriggerType.PROFIT_THRESHOLD, "above", 10)), market, executor)
    assert not _check(evaluator, _scenario(AutomationTrigger(TriggerType.LOSS_THRESHOLD, "above", 5)), market, executor)


def test_triggers_are_a_conjunction_over_one_snapshot(evaluator, market, executor):
    scenario = _scenario(
        AutomationTrigger(TriggerType.APY_BASED, "better_apy_available", 2),
        AutomationTrigger(TriggerType.HEALTH_FACTOR, "below_threshold", 1.0, Comparison.LESS_THAN),
        AutomationTrigger(TriggerType.APY_BASED, "apy_gap", 1),
    )

    assert not _check(evaluator, scenario, market, executor)
    assert market.calls["account"] == 1
    assert market.calls["opportunities"] == 1


def test_fetch_failure_raises_data_fetch_error(evaluator, executor):
    provider = FakeMarketProvider(account=RuntimeError("provider down"))
    scenario = _scenario(AutomationTrigger(TriggerType.HEALTH_FACTOR, "below_threshold", 2, Comparison.LESS_THAN))

    with pytest.raises(DataFetchError):
        _check(evaluator, scenario, provider, executor)


def test_compare():
    assert compare(2.0, Comparison.EQUALS, 2.0)
    assert not compare(2.1, Comparison.EQUALS, 2.0)
    assert not compare(1.0, Comparison.PERCENTAGE_CHANGE, 5, baseline=None)
    assert compare(0.8, Comparison.PERCENTAGE_CHANGE, 10, baseline=1.0)


def test_profit_percent_without_deposits_is_zero():
    assert profit_percent(Decimal("100"), Decimal("0"), Decimal("0")) == 0
