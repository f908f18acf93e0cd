"""
Tests for the default scenario set.
"""

from decimal import Decimal

from app.automation.defaults import create_default_scenarios
from app.automation.models import (
    Comparison,
    RiskLevel,
    ScenarioType,
    StopLossParams,
    TriggerType,
)

from factories import FakeClock


def test_default_scenarios():
    scenarios = create_default_scenarios(clock=FakeClock(1.5))

    assert [(s.type, s.priority) for s in scenarios] == [
        (ScenarioType.YIELD_OPTIMIZATION, 7),
        (ScenarioType.PORTFOLIO_REBALANCING, 6),
        (ScenarioType.RISK_MANAGEMENT, 9),
        (ScenarioType.POSITION_MONITORING, 3),
        (ScenarioType.LIQUIDATION_PROTECTION, 10),
    ]
    assert scenarios[0].id == "yield_opt_1500"
    assert all(s.enabled for s in scenarios)
    assert len({s.id for s in scenarios}) == len(scenarios)

    protection = scenarios[4]
    assert protection.triggers[0].type == TriggerType.HEALTH_FACTOR
    assert protection.triggers[0].comparison == Comparison.LESS_THAN
    assert protection.triggers[0].value == 1.5


def test_preferences_override_defaults():
    scenarios = create_default_scenarios(
        {
            "risk_tolerance": "low",
            "monitoring_interval": 5,
            "enable_portfolio_rebalancing": False,
            "enable_stop_loss": True,
            "stop_loss_threshold": 12,
            "enable_profit_taking": True,
        }
    )
    by_type = {s.type: s for s in scenarios}

    assert len(scenarios) == 7
    assert by_type[ScenarioType.YIELD_OPTIMIZATION].parameters.risk_tolerance == RiskLevel.LOW
    assert not by_type[ScenarioType.PORTFOLIO_REBALANCING].enabled
    assert by_type[ScenarioType.POSITION_MONITORING].parameters.check_interval == 300
    assert by_type[ScenarioType.PROFIT_TAKING].priority == 5

    stop_loss = by_type[ScenarioType.STOP_LOSS]
    assert stop_loss.priority == 8
    assert isinstance(stop_loss.parameters, StopLossParams)
    assert stop_loss.parameters.stop_loss_threshold == Decimal("12")
    assert stop_loss.triggers[0].type == TriggerType.LOSS_THRESHOLD
