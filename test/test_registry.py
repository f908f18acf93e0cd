"""
Tests for the scenario registry.
"""

import threading

import pytest

from app.automation.exceptions import ContextNotFoundError, ValidationError
from app.automation.models import AutomationScenario, GlobalConfig, PositionMonitoringParams, RiskLevel, ScenarioType
from app.automation.registry import ScenarioRegistry

from factories import OTHER_OWNER, OWNER


def _scenario(scenario_id, priority):
    return AutomationScenario(
        id=scenario_id,
        name=scenario_id,
        type=ScenarioType.POSITION_MONITORING,
        parameters=PositionMonitoringParams(),
        priority=priority,
    )


@pytest.fixture()
def registry():
    return ScenarioRegistry(default_chain_id=1329)


def test_register_sorts_and_defaults(registry):
    context = registry.register(OWNER, [_scenario("low", 3), _scenario("high", 9)])

    assert [s.id for s in context.scenarios] == ["high", "low"]
    assert context.chain_id == 1329
    assert context.global_config == GlobalConfig()
    assert context.performance_metrics.total_executions == 0
    assert registry.get(OWNER) is context


def test_register_overwrites_existing_context(registry):
    registry.register(OWNER, [_scenario("first", 3)])
    context = registry.register(OWNER, [_scenario("second", 4)], chain_id=1328)

    assert [s.id for s in registry.get(OWNER).scenarios] == ["second"]
    assert context.chain_id == 1328


def test_update_scenarios_keeps_priority_order(registry):
    registry.register(OWNER, [_scenario("a", 1)])
    context = registry.update_scenarios(OWNER, [_scenario("b", 2), _scenario("c", 8), _scenario("d", 5)])

    assert [s.priority for s in context.scenarios] == [8, 5, 2]


def test_update_missing_context_is_noop(registry):
    assert registry.update(OWNER, global_config=GlobalConfig(risk_tolerance=RiskLevel.HIGH)) is None
    assert registry.get(OWNER) is None


def test_update_rejects_unknown_fields(registry):
    registry.register(OWNER, [])
    with pytest.raises(ValidationError):
        registry.update(OWNER, owner=OTHER_OWNER)
    with pytest.raises(ValidationError):
        registry.update(OWNER, performance=None)
    assert registry.get(OWNER).owner == OWNER


def test_update_merges_global_config(registry):
    registry.register(OWNER, [_scenario("a", 1)])
    context = registry.update(OWNER, global_config=GlobalConfig(risk_tolerance=RiskLevel.HIGH))

    assert context.global_config.risk_tolerance == RiskLevel.HIGH
    assert [s.id for s in context.scenarios] == ["a"]


def test_add_scenario(registry):
    registry.register(OWNER, [_scenario("a", 4)])
    context = registry.add_scenario(OWNER, _scenario("b", 6))

    assert [s.id for s in context.scenarios] == ["b", "a"]

    with pytest.raises(ValidationError):
        registry.add_scenario(OWNER, _scenario("b", 1))

    with pytest.raises(ContextNotFoundError):
        registry.add_scenario(OTHER_OWNER, _scenario("c", 1))


def test_unregister(registry):
    registry.register(OWNER, [])

    assert registry.unregister(OWNER) is True
    assert registry.unregister(OWNER) is False
    assert registry.owners() == []


def test_concurrent_registration(registry):
    owners = [f"0x{i:040x}" for i in range(1, 21)]
    threads = [threading.Thread(target=registry.register, args=(owner, [_scenario(owner, 5)])) for owner in owners]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(registry.owners()) == sorted(owners)
