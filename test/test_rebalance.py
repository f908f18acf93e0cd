"""
Tests for rebalance decisions and action generation.
"""

from decimal import Decimal

import pytest

from app.automation.config_loader import RiskLimits
from app.automation.models import ActionType, RiskLevel
from app.automation.strategy.metrics import calculate_portfolio_metrics
from app.automation.strategy.rebalance import RebalanceGenerator, calculate_risk_adjusted_yield, expected_gain
from app.automation.strategy.risk import assess_risk

from factories import make_account, make_market, make_opportunity, make_position, sample_account


@pytest.fixture()
def generator(config):
    return RebalanceGenerator(config.strategy, config.risk_limits, config.assets)


def _analyse(account, config):
    metrics = calculate_portfolio_metrics(account, config.assets)
    return metrics, assess_risk(account, metrics, config.assets)


def test_expected_gain():
    assert expected_gain(Decimal("1000"), Decimal("5"), Decimal("12")) == Decimal("70")
    assert expected_gain(Decimal("0"), Decimal("5"), Decimal("12")) == 0


def test_should_rebalance_on_better_opportunity(generator, config):
    account = sample_account()
    metrics, risk = _analyse(account, config)

    assert generator.should_rebalance(account, metrics, risk, [make_opportunity("USDC", "12")])
    assert not generator.should_rebalance(account, metrics, risk, [make_opportunity("USDC", "4")])
    assert not generator.should_rebalance(account, metrics, risk, [])


def test_should_rebalance_below_target_apy(generator, config):
    account = sample_account()
    metrics, risk = _analyse(account, config)

    assert generator.should_rebalance(account, metrics, risk, [], target_apy=Decimal("10"))
    assert not generator.should_rebalance(account, metrics, risk, [], target_apy=Decimal("2.4"))


def test_should_rebalance_when_health_factor_low(generator, config):
    market = make_market("USDC", supply_apy="8", borrow_apy="5")
    account = make_account([make_position(market, supplied="1000", borrowed="900", health_factor="1.2")], health_factor="1.2")
    metrics, risk = _analyse(account, config)

    assert generator.should_rebalance(account, metrics, risk, [])


def test_optimal_withdraw_amount_bands(generator):
    market = make_market("USDC")

    assert generator.calculate_optimal_withdraw_amount(make_position(market, "600", "100", "3.2")) == Decimal("300")
    assert generator.calculate_optimal_withdraw_amount(make_position(market, "600", "100", "2.5")) == Decimal("150")
    assert generator.calculate_optimal_withdraw_amount(make_position(market, "600", "100", "2")) == 0
    assert generator.calculate_optimal_withdraw_amount(make_position(market, "600", "100", "1.4")) == 0
    assert generator.calculate_optimal_withdraw_amount(make_position(market, "600")) == Decimal("300")


def test_withdraw_never_breaks_min_health_factor(config):
    limits = RiskLimits(min_health_factor=Decimal("2.8"))
    generator = RebalanceGenerator(config.strategy, limits, config.assets)
    position = make_position(make_market("USDC"), "600", "100", "3.2")

    amount = generator.calculate_optimal_withdraw_amount(position)

    assert amount == Decimal("75")
    remaining = position.supplied_amount - amount
    assert position.health_factor * remaining / position.supplied_amount >= limits.min_health_factor


def test_rank_opportunities(generator):
    deep = make_opportunity("USDT", "10", RiskLevel.LOW, liquidity="2000000")
    medium = make_opportunity("USDC", "12", RiskLevel.MEDIUM)
    risky = make_opportunity("MEME", "40", RiskLevel.HIGH)

    assert calculate_risk_adjusted_yield(deep) == Decimal("11.0")
    assert generator.rank_opportunities([medium, risky, deep]) == [deep, medium]
    assert generator.rank_opportunities([medium, risky, deep], RiskLevel.HIGH)[0] is risky


def test_generate_actions_for_sample_portfolio(generator, config):
    account = sample_account()
    _, risk = _analyse(account, config)

    actions = generator.generate_rebalance_actions(account, [make_opportunity("USDC", "12")], risk)

    withdrawals = [a for a in actions if a.type == ActionType.WITHDRAW]
    deposits = [a for a in actions if a.type == ActionType.DEPOSIT]

    assert [(a.market.symbol, a.amount) for a in withdrawals] == [("USDC", Decimal("300")), ("SEI", Decimal("200"))]
    assert withdrawals[0].expected_gain == Decimal("12")
    assert withdrawals[0].risk_level == RiskLevel.LOW
    assert withdrawals[1].risk_level == RiskLevel.MEDIUM
    assert [a.amount for a in deposits] == [Decimal("10000")]
    assert all(a.type != ActionType.REPAY for a in actions)


def test_deposit_limits(generator, config):
    account = make_account([])
    _, risk = _analyse(account, config)
    opportunities = [
        make_opportunity("USDC", "12", liquidity="4000"),
        make_opportunity("USDT", "11", liquidity="1000"),
        make_opportunity("DAI", "10", liquidity="100000", max_deposit="700"),
    ]

    actions = generator.generate_rebalance_actions(account, opportunities, risk, max_position_size=Decimal("5000"))

    assert [(a.market.symbol, a.amount) for a in actions] == [("USDC", Decimal("200")), ("DAI", Decimal("700"))]

    opportunities[0].min_deposit = Decimal("500")
    actions = generator.generate_rebalance_actions(account, opportunities, risk, max_position_size=Decimal("5000"))
    assert [a.market.symbol for a in actions] == ["DAI"]


def test_high_risk_portfolio_repays_debt(generator, config):
    market = make_market("MEME", borrow_apy="10", utilization_rate="95")
    account = make_account([make_position(market, "1000", "800", "1.1")], health_factor="1.1")
    _, risk = _analyse(account, config)
    assert risk.overall_risk == RiskLevel.HIGH

    actions = generator.generate_rebalance_actions(account, [], risk)

    assert len(actions) == 1
    assert actions[0].type == ActionType.REPAY
    assert actions[0].amount == Decimal("240")
    assert actions[0].expected_gain == Decimal("24")


def test_repay_without_interest_saving_is_filtered(generator, config):
    market = make_market("MEME", borrow_apy="0", utilization_rate="95")
    account = make_account([make_position(market, "1000", "800", "1.1")], health_factor="1.1")
    _, risk = _analyse(account, config)
    assert risk.overall_risk == RiskLevel.HIGH

    assert generator.generate_rebalance_actions(account, [], risk) == []


def test_small_gains_are_filtered(generator, config):
    market = make_market("USDC", supply_apy="8")
    account = make_account([make_position(market, supplied="10")])
    _, risk = _analyse(account, config)

    actions = generator.generate_rebalance_actions(account, [make_opportunity("USDC", "12", liquidity="1000")], risk)

    assert actions == []
