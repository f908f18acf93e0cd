"""
Rebalance decision logic: whether to act, and which actions to propose.
"""

from decimal import ROUND_DOWN, Decimal
from typing import List, Optional

from app.automation.config_loader import AssetClasses, RiskLimits, StrategySettings
from app.automation.logging_config import setup_logger
from app.automation.models import ActionType, RiskLevel
from app.automation.snapshots import (
    PortfolioMetrics,
    Position,
    RebalanceAction,
    RiskMetrics,
    UserAccount,
    YieldOpportunity,
)

logger = setup_logger()

AMOUNT_PRECISION = Decimal("0.000001")

RISK_PENALTY = {RiskLevel.HIGH: Decimal("0.7"), RiskLevel.MEDIUM: Decimal("0.85"), RiskLevel.LOW: Decimal("1.0")}
DEEP_LIQUIDITY = Decimal("1000000")
LIQUIDITY_BONUS = Decimal("1.1")

MAX_DEPOSIT_OPPORTUNITIES = 3
MAX_LIQUIDITY_SHARE = Decimal("0.05")
MIN_DEPOSIT = Decimal("100")
REPAY_FRACTION = Decimal("0.3")
REPAY_HEALTH_FACTOR = Decimal("1.5")


def quantize_amount(amount: Decimal) -> Decimal:
    return amount.quantize(AMOUNT_PRECISION, rounding=ROUND_DOWN)


def expected_gain(amount: Decimal, from_apy: Decimal, to_apy: Decimal) -> Decimal:
    """Yearly gain of moving `amount` from one APY (in percent) to another."""
    return quantize_amount(Decimal(amount) * (Decimal(to_apy) - Decimal(from_apy)) / 100)


def calculate_risk_adjusted_yield(opportunity: YieldOpportunity) -> Decimal:
    bonus = LIQUIDITY_BONUS if opportunity.liquidity > DEEP_LIQUIDITY else Decimal("1")
    return opportunity.apy * RISK_PENALTY[opportunity.risk] * bonus


class RebalanceGenerator:
    """
    Decides whether a portfolio needs rebalancing and proposes actions.

    APY gaps and `min_yield_threshold` are both expressed in percentage
    points, `rebalance_threshold` is a percentage of the target APY.
    """

    def __init__(self, strategy: StrategySettings, risk_limits: RiskLimits, assets: AssetClasses):
        self.strategy = strategy
        self.risk_limits = risk_limits
        self.assets = assets

    def should_rebalance(
        self,
        account: UserAccount,
        metrics: PortfolioMetrics,
        risk: RiskMetrics,
        opportunities: List[YieldOpportunity],
        target_apy: Optional[Decimal] = None,
    ) -> bool:
        if account.health_factor < self.risk_limits.min_health_factor:
            logger.warning("RebalanceGenerator: Health factor too low for %s: %s", account.address, account.health_factor)
            return True

        if risk.overall_risk == RiskLevel.HIGH:
            logger.warning("RebalanceGenerator: Overall risk too high for %s, rebalancing needed", account.address)
            return True

        if target_apy is not None:
            threshold = target_apy * self.strategy.rebalance_threshold / 100
            if metrics.net_apy < target_apy - threshold:
                logger.info(
                    "RebalanceGenerator: Current APY %s%% below target %s%% for %s",
                    metrics.net_apy, target_apy, account.address,
                )
                return True

        if opportunities:
            best_apy = max(opportunity.apy for opportunity in opportunities)
            if best_apy - metrics.net_apy > self.strategy.min_yield_threshold:
                logger.info(
                    "RebalanceGenerator: Better opportunity found: %s%% vs current %s%%", best_apy, metrics.net_apy
                )
                return True

        return False

    def rank_opportunities(
        self, opportunities: List[YieldOpportunity], risk_tolerance: Optional[RiskLevel] = None
    ) -> List[YieldOpportunity]:
        tolerance = risk_tolerance or self.strategy.risk_tolerance
        eligible = [o for o in opportunities if o.risk != RiskLevel.HIGH or tolerance == RiskLevel.HIGH]
        return sorted(eligible, key=calculate_risk_adjusted_yield, reverse=True)

    def calculate_optimal_withdraw_amount(self, position: Position) -> Decimal:
        """
        Health-factor-aware share of a position to withdraw.

        50% above a health factor of 3, 25% above 2, nothing otherwise, and
        never more than keeps the estimated post-withdraw health factor at or
        above the configured minimum.
        """
        health_factor = position.health_factor
        min_health_factor = self.risk_limits.min_health_factor

        if health_factor < min_health_factor:
            return Decimal("0")

        if health_factor > 3:
            fraction = Decimal("0.5")
        elif health_factor > 2:
            fraction = Decimal("0.25")
        else:
            return Decimal("0")

        if health_factor.is_finite():
            # collateral scales with what remains supplied
            fraction = min(fraction, 1 - min_health_factor / health_factor)
            if fraction <= 0:
                return Decimal("0")

        return quantize_amount(position.supplied_amount * fraction)

    def generate_rebalance_actions(
        self,
        account: UserAccount,
        opportunities: List[YieldOpportunity],
        risk: RiskMetrics,
        risk_tolerance: Optional[RiskLevel] = None,
        max_position_size: Optional[Decimal] = None,
    ) -> List[RebalanceAction]:
        ranked = self.rank_opportunities(opportunities, risk_tolerance)
        actions: List[RebalanceAction] = []

        if ranked:
            actions.extend(self._withdraw_actions(account, ranked[0]))
            actions.extend(self._deposit_actions(ranked, max_position_size))

        if risk.overall_risk == RiskLevel.HIGH:
            actions.extend(self._repay_actions(account))

        return [action for action in actions if self._is_worthwhile(action)]

    def _withdraw_actions(self, account: UserAccount, best: YieldOpportunity) -> List[RebalanceAction]:
        actions = []
        for position in account.positions:
            if best.apy - position.market.supply_apy <= self.strategy.min_yield_threshold:
                continue

            amount = self.calculate_optimal_withdraw_amount(position)
            if amount <= 0:
                continue

            actions.append(
                RebalanceAction(
                    type=ActionType.WITHDRAW,
                    amount=amount,
                    market=position.market,
                    reason=f"Moving from {position.market.supply_apy}% APY to {best.apy}% on {best.market.symbol}",
                    expected_gain=expected_gain(amount, position.market.supply_apy, best.apy),
                    risk_level=RiskLevel.LOW if self.assets.is_stablecoin(position.symbol) else RiskLevel.MEDIUM,
                    from_token=position.market.underlying_asset or None,
                )
            )
        return actions

    def _deposit_actions(
        self, ranked: List[YieldOpportunity], max_position_size: Optional[Decimal]
    ) -> List[RebalanceAction]:
        actions = []
        remaining_capacity = max_position_size if max_position_size is not None else self.strategy.max_position_size

        for opportunity in ranked[:MAX_DEPOSIT_OPPORTUNITIES]:
            if remaining_capacity <= 0:
                break

            limits = [remaining_capacity, opportunity.liquidity * MAX_LIQUIDITY_SHARE]
            if opportunity.max_deposit is not None:
                limits.append(opportunity.max_deposit)
            amount = quantize_amount(min(limits))

            if amount <= MIN_DEPOSIT:
                continue
            if opportunity.min_deposit is not None and amount < opportunity.min_deposit:
                continue

            actions.append(
                RebalanceAction(
                    type=ActionType.DEPOSIT,
                    amount=amount,
                    market=opportunity.market,
                    reason=f"Depositing to {opportunity.apy}% APY opportunity on {opportunity.protocol}",
                    expected_gain=expected_gain(amount, Decimal("0"), opportunity.apy),
                    risk_level=opportunity.risk,
                    to_token=opportunity.market.underlying_asset or None,
                )
            )
            remaining_capacity -= amount
        return actions

    def _repay_actions(self, account: UserAccount) -> List[RebalanceAction]:
        actions = []
        for position in account.positions:
            if not position.has_debt or position.health_factor >= REPAY_HEALTH_FACTOR:
                continue

            amount = quantize_amount(position.borrowed_amount * REPAY_FRACTION)
            actions.append(
                RebalanceAction(
                    type=ActionType.REPAY,
                    amount=amount,
                    market=position.market,
                    reason="Reduce liquidation risk by repaying debt",
                    expected_gain=expected_gain(amount, Decimal("0"), position.market.borrow_apy),
                    risk_level=RiskLevel.LOW,
                    from_token=position.market.underlying_asset or None,
                )
            )
        return actions

    def _is_worthwhile(self, action: RebalanceAction) -> bool:
        return action.expected_gain > self.strategy.min_yield_threshold
