"""
Portfolio metrics: net APY, diversification, risk and liquidity scores.
"""

from decimal import Decimal
from typing import List

from app.automation.config_loader import AssetClasses
from app.automation.snapshots import PortfolioMetrics, Position, UserAccount

ZERO = Decimal("0")
SINGLE_POSITION_DIVERSIFICATION = 20.0


def _clamp_score(score: float) -> float:
    return min(100.0, max(0.0, score))


def calculate_net_apy(positions: List[Position]) -> Decimal:
    """Supply-weighted supply APY minus borrow-weighted borrow APY."""
    total_supplied = sum((p.supplied_amount for p in positions), ZERO)
    total_borrowed = sum((p.borrowed_amount for p in positions), ZERO)
    weighted_supply = sum((p.supplied_amount * p.market.supply_apy for p in positions), ZERO)
    weighted_borrow = sum((p.borrowed_amount * p.market.borrow_apy for p in positions), ZERO)

    avg_supply_apy = weighted_supply / total_supplied if total_supplied else ZERO
    avg_borrow_apy = weighted_borrow / total_borrowed if total_borrowed else ZERO
    return avg_supply_apy - avg_borrow_apy


def calculate_diversification_score(positions: List[Position]) -> float:
    """100 * (1 - Herfindahl index) over supplied-amount weights."""
    if not positions:
        return 0.0
    if len(positions) == 1:
        return SINGLE_POSITION_DIVERSIFICATION

    total_value = sum((p.supplied_amount for p in positions), ZERO)
    if total_value <= 0:
        return 0.0

    herfindahl_index = sum(((p.supplied_amount / total_value) ** 2 for p in positions), ZERO)
    return _clamp_score(float((1 - herfindahl_index) * 100))


def position_risk_score(position: Position, assets: AssetClasses) -> float:
    utilization = position.market.utilization_rate
    health_factor = position.health_factor
    score = 0

    if utilization > 90:
        score += 40
    elif utilization > 80:
        score += 25
    elif utilization > 70:
        score += 10

    if health_factor < Decimal("1.2"):
        score += 40
    elif health_factor < Decimal("1.5"):
        score += 25
    elif health_factor < 2:
        score += 10

    if not assets.is_stablecoin(position.symbol):
        score += 20

    return float(min(100, score))


def calculate_risk_score(positions: List[Position], assets: AssetClasses) -> float:
    if not positions:
        return 0.0
    scores = [position_risk_score(p, assets) for p in positions]
    return _clamp_score(sum(scores) / len(scores))


def position_liquidity_score(position: Position) -> float:
    total_supply = position.market.total_supply
    if total_supply <= 0:
        return 100.0

    ratio = position.market.liquidity / total_supply
    if ratio >= Decimal("0.5"):
        return 100.0
    if ratio >= Decimal("0.3"):
        return 80.0
    if ratio >= Decimal("0.1"):
        return 60.0
    if ratio >= Decimal("0.05"):
        return 40.0
    return 20.0


def calculate_liquidity_score(positions: List[Position]) -> float:
    if not positions:
        return 100.0
    scores = [position_liquidity_score(p) for p in positions]
    return _clamp_score(sum(scores) / len(scores))


def calculate_portfolio_metrics(account: UserAccount, assets: AssetClasses) -> PortfolioMetrics:
    """Derive every portfolio metric from one account snapshot."""
    positions = account.positions
    return PortfolioMetrics(
        total_value_usd=account.total_supplied_usd - account.total_borrowed_usd,
        total_supplied_usd=account.total_supplied_usd,
        total_borrowed_usd=account.total_borrowed_usd,
        net_apy=calculate_net_apy(positions),
        health_factor=account.health_factor,
        diversification_score=calculate_diversification_score(positions),
        risk_score=calculate_risk_score(positions, assets),
        liquidity_score=calculate_liquidity_score(positions),
    )
