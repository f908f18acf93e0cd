"""
Builders for snapshot records and in-memory collaborators used across the tests.
"""

from decimal import Decimal
from typing import Dict, List, Optional

from app.automation.models import Advice, RiskLevel, StrategyRequest
from app.automation.providers.base import MarketProvider, StrategyAdvisor
from app.automation.snapshots import INFINITE_HEALTH_FACTOR, Market, Position, UserAccount, YieldOpportunity

OWNER = "0x" + "1" * 40
OTHER_OWNER = "0x" + "2" * 40

USDC_YTOKEN = "0x" + "a" * 40
SEI_YTOKEN = "0x" + "b" * 40
BEST_YTOKEN = "0x" + "c" * 40


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_market(
    symbol: str,
    supply_apy="0",
    borrow_apy="0",
    total_supply="1000000",
    liquidity="600000",
    utilization_rate="40",
    ytoken_address: str = "",
    underlying_asset: str = "",
    decimals: int = 18,
) -> Market:
    return Market(
        id=symbol.lower(),
        symbol=symbol,
        supply_apy=Decimal(supply_apy),
        borrow_apy=Decimal(borrow_apy),
        total_supply=Decimal(total_supply),
        liquidity=Decimal(liquidity),
        utilization_rate=Decimal(utilization_rate),
        ytoken_address=ytoken_address,
        underlying_asset=underlying_asset,
        decimals=decimals,
        name=symbol,
    )


def make_position(market: Market, supplied="0", borrowed="0", health_factor=None) -> Position:
    return Position(
        market=market,
        supplied_amount=Decimal(supplied),
        borrowed_amount=Decimal(borrowed),
        health_factor=Decimal(health_factor) if health_factor is not None else INFINITE_HEALTH_FACTOR,
    )


def make_account(
    positions: List[Position], health_factor=None, net_deposits="0", address: str = OWNER
) -> UserAccount:
    supplied = sum((p.supplied_amount for p in positions), Decimal("0"))
    borrowed = sum((p.borrowed_amount for p in positions), Decimal("0"))
    return UserAccount(
        address=address,
        positions=positions,
        health_factor=Decimal(health_factor) if health_factor is not None else INFINITE_HEALTH_FACTOR,
        total_supplied_usd=supplied,
        total_borrowed_usd=borrowed,
        net_deposits_usd=Decimal(net_deposits),
    )


def make_opportunity(
    symbol: str,
    apy,
    risk: RiskLevel = RiskLevel.LOW,
    liquidity="500000",
    protocol: str = "takara",
    ytoken_address: str = BEST_YTOKEN,
    min_deposit=None,
    max_deposit=None,
) -> YieldOpportunity:
    return YieldOpportunity(
        protocol=protocol,
        market=make_market(symbol, supply_apy=apy, ytoken_address=ytoken_address),
        apy=Decimal(apy),
        risk=risk,
        liquidity=Decimal(liquidity),
        tvl=Decimal(liquidity),
        min_deposit=Decimal(min_deposit) if min_deposit is not None else None,
        max_deposit=Decimal(max_deposit) if max_deposit is not None else None,
    )


def sample_account() -> UserAccount:
    """600 USDC at 8% with a little debt plus 400 SEI at 6% without debt."""
    usdc = make_market("USDC", supply_apy="8", borrow_apy="5", ytoken_address=USDC_YTOKEN, decimals=6)
    sei = make_market("SEI", supply_apy="6", ytoken_address=SEI_YTOKEN)
    return make_account(
        [
            make_position(usdc, supplied="600", borrowed="100", health_factor="3.2"),
            make_position(sei, supplied="400"),
        ],
        health_factor="3.2",
        net_deposits="800",
    )


class FakeMarketProvider(MarketProvider):
    """In-memory market data. Any value may be an exception instance to raise instead."""

    def __init__(self, account=None, opportunities=None, prices: Optional[Dict[str, Decimal]] = None):
        self.account = account if account is not None else make_account([])
        self.opportunities = opportunities if opportunities is not None else []
        self.prices = prices or {}
        self.calls: Dict[str, int] = {"account": 0, "opportunities": 0, "price": 0}

    def get_account(self, owner: str) -> UserAccount:
        self.calls["account"] += 1
        if isinstance(self.account, Exception):
            raise self.account
        return self.account

    def get_yield_opportunities(self, min_liquidity: Decimal, risk_tolerance: RiskLevel) -> List[YieldOpportunity]:
        self.calls["opportunities"] += 1
        if isinstance(self.opportunities, Exception):
            raise self.opportunities
        return self.opportunities

    def get_asset_price(self, symbol: str) -> Decimal:
        self.calls["price"] += 1
        price = self.prices[symbol]
        if isinstance(price, Exception):
            raise price
        return price


class FakeAdvisor(StrategyAdvisor):
    def __init__(self, advice: Optional[Advice] = None):
        self.advice = advice or Advice(success=True)
        self.requests: List[StrategyRequest] = []

    def run(self, request: StrategyRequest) -> Advice:
        self.requests.append(request)
        if isinstance(self.advice, Exception):
            raise self.advice
        return self.advice
