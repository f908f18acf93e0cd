"""
Tests for the notifications module.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from app.automation import notifications
from app.automation.models import ExecutionResult, Executed, Failed, RiskLevel, ScenarioExecutionResult
from app.automation.notifications import (
    post_cycle_executed_notification,
    post_emergency_stop_notification,
    post_error_notification,
    post_scenario_failure_notification,
)

from factories import OWNER


@pytest.fixture()
def apprise(monkeypatch):
    instance = MagicMock()
    instance.notify.return_value = True
    monkeypatch.setattr(notifications, "Apprise", MagicMock(return_value=instance))
    return instance


def test_post_error_notification(config, apprise):
    assert post_error_notification("Test error message", config)
    apprise.add.assert_called_once_with(config.NOTIFICATION_URL)
    assert "Test error message" in apprise.notify.call_args.kwargs["body"]


def test_post_cycle_executed_notification(config, apprise):
    result = ExecutionResult(
        skip=False,
        message="Executed 1 scenarios successfully",
        transactions=[{"to": "0x"}],
        expected_profit=Decimal("12.5"),
        risk_assessment=RiskLevel.LOW,
        scenario_results=[
            ScenarioExecutionResult("y", "Yield Optimization", 7, Executed(message="Rebalancing portfolio with 1 actions"))
        ],
    )

    assert post_cycle_executed_notification(OWNER, result, config)
    body = apprise.notify.call_args.kwargs["body"]
    assert OWNER in body
    assert "$12.50" in body
    assert "Yield Optimization (p7)" in body


def test_post_scenario_failure_notification(config, apprise):
    result = ScenarioExecutionResult("s", "Stop Loss", 8, Failed(error="Stop Loss failed: no route"))

    assert post_scenario_failure_notification(OWNER, result, config)
    assert apprise.notify.call_args.kwargs["title"] == "Automation Scenario Failed"


def test_post_emergency_stop_notification(config, apprise):
    assert post_emergency_stop_notification(None, True, config)
    assert "all owners" in apprise.notify.call_args.kwargs["body"]
    assert apprise.notify.call_args.kwargs["title"] == "Emergency Stop Engaged"


def test_notifications_disabled_without_url(config, apprise, monkeypatch):
    monkeypatch.setattr(config, "NOTIFICATION_URL", "")

    assert not post_error_notification("Test error message", config)
    apprise.notify.assert_not_called()
