"""
Risk assessment built on top of the portfolio metrics.
"""

from decimal import Decimal
from typing import List

from app.automation.config_loader import AssetClasses
from app.automation.models import RiskLevel
from app.automation.snapshots import PortfolioMetrics, Position, RiskMetrics, UserAccount

LIQUIDATION_RISK_SCORES = {RiskLevel.LOW: 20.0, RiskLevel.MEDIUM: 50.0, RiskLevel.HIGH: 80.0}

STABLECOIN_VOLATILITY = 10.0
MAJOR_ASSET_VOLATILITY = 50.0
OTHER_ASSET_VOLATILITY = 80.0

REDUCE_LEVERAGE = "Reduce borrowing or add collateral to improve health factor"
DIVERSIFY = "Diversify holdings across multiple assets and protocols"
REDUCE_PROTOCOL_EXPOSURE = "Consider reducing exposure to high-risk protocols"
INCREASE_STABLE_ALLOCATION = "Increase allocation to stable assets during high volatility"


def classify_liquidation_risk(health_factor: Decimal) -> RiskLevel:
    if health_factor < Decimal("1.5"):
        return RiskLevel.HIGH
    if health_factor < 2:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify_overall_risk(score: float) -> RiskLevel:
    if score > 70:
        return RiskLevel.HIGH
    if score > 40:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def calculate_market_risk(positions: List[Position], assets: AssetClasses) -> float:
    """Average volatility class of the held assets."""
    if not positions:
        return 0.0

    def volatility(position: Position) -> float:
        if assets.is_stablecoin(position.symbol):
            return STABLECOIN_VOLATILITY
        if assets.is_major_asset(position.symbol):
            return MAJOR_ASSET_VOLATILITY
        return OTHER_ASSET_VOLATILITY

    return sum(volatility(p) for p in positions) / len(positions)


def overall_risk_score(
    liquidation_risk: RiskLevel, concentration_risk: float, protocol_risk: float, market_risk: float
) -> float:
    factors = [LIQUIDATION_RISK_SCORES[liquidation_risk], concentration_risk, protocol_risk, market_risk]
    return sum(factors) / len(factors)


def generate_risk_recommendations(
    liquidation_risk: RiskLevel, concentration_risk: float, protocol_risk: float, market_risk: float
) -> List[str]:
    recommendations = []
    if liquidation_risk == RiskLevel.HIGH:
        recommendations.append(REDUCE_LEVERAGE)
    if concentration_risk > 70:
        recommendations.append(DIVERSIFY)
    if protocol_risk > 60:
        recommendations.append(REDUCE_PROTOCOL_EXPOSURE)
    if market_risk > 70:
        recommendations.append(INCREASE_STABLE_ALLOCATION)
    return recommendations


def assess_risk(account: UserAccount, metrics: PortfolioMetrics, assets: AssetClasses) -> RiskMetrics:
    liquidation_risk = classify_liquidation_risk(account.health_factor)
    concentration_risk = 100.0 - metrics.diversification_score
    protocol_risk = metrics.risk_score
    market_risk = calculate_market_risk(account.positions, assets)

    overall = classify_overall_risk(
        overall_risk_score(liquidation_risk, concentration_risk, protocol_risk, market_risk)
    )

    return RiskMetrics(
        health_factor=account.health_factor,
        liquidation_risk=liquidation_risk,
        concentration_risk=concentration_risk,
        protocol_risk=protocol_risk,
        market_risk=market_risk,
        overall_risk=overall,
        recommendations=generate_risk_recommendations(liquidation_risk, concentration_risk, protocol_risk, market_risk),
    )
