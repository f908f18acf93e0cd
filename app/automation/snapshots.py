"""
Account and market snapshot records supplied by the market provider, plus the
derived metrics computed from them each cycle.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .models import ActionType, RiskLevel, to_decimal

INFINITE_HEALTH_FACTOR = Decimal("Infinity")


def _health_factor(value: Any) -> Decimal:
    if value is None or value == "" or str(value).lower() in ("inf", "infinity"):
        return INFINITE_HEALTH_FACTOR
    return to_decimal(value)


@dataclass
class Market:
    """A lending market as reported by the market provider."""

    id: str
    symbol: str
    supply_apy: Decimal = Decimal("0")
    borrow_apy: Decimal = Decimal("0")
    total_supply: Decimal = Decimal("0")
    liquidity: Decimal = Decimal("0")
    utilization_rate: Decimal = Decimal("0")
    underlying_asset: str = ""
    ytoken_address: str = ""
    decimals: int = 18
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "name": self.name,
            "supply_apy": str(self.supply_apy),
            "borrow_apy": str(self.borrow_apy),
            "total_supply": str(self.total_supply),
            "liquidity": str(self.liquidity),
            "utilization_rate": str(self.utilization_rate),
            "underlying_asset": self.underlying_asset,
            "ytoken_address": self.ytoken_address,
            "decimals": self.decimals,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Market":
        return cls(
            id=str(data["id"]),
            symbol=data["symbol"],
            name=data.get("name", ""),
            supply_apy=to_decimal(data.get("supply_apy", 0)),
            borrow_apy=to_decimal(data.get("borrow_apy", 0)),
            total_supply=to_decimal(data.get("total_supply", 0)),
            liquidity=to_decimal(data.get("liquidity", 0)),
            utilization_rate=to_decimal(data.get("utilization_rate", 0)),
            underlying_asset=data.get("underlying_asset", ""),
            ytoken_address=data.get("ytoken_address", ""),
            decimals=int(data.get("decimals", 18)),
        )


@dataclass
class Position:
    """A single supplied/borrowed position of an account in one market."""

    market: Market
    supplied_amount: Decimal = Decimal("0")
    borrowed_amount: Decimal = Decimal("0")
    health_factor: Decimal = INFINITE_HEALTH_FACTOR

    @property
    def symbol(self) -> str:
        return self.market.symbol

    @property
    def has_debt(self) -> bool:
        return self.borrowed_amount > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "market": self.market.to_dict(),
            "supplied_amount": str(self.supplied_amount),
            "borrowed_amount": str(self.borrowed_amount),
            "health_factor": str(self.health_factor),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        borrowed = to_decimal(data.get("borrowed_amount", 0))
        health_factor = _health_factor(data.get("health_factor"))
        if borrowed == 0:
            health_factor = INFINITE_HEALTH_FACTOR
        return cls(
            market=Market.from_dict(data["market"]),
            supplied_amount=to_decimal(data.get("supplied_amount", 0)),
            borrowed_amount=borrowed,
            health_factor=health_factor,
        )


@dataclass
class UserAccount:
    """Point-in-time snapshot of an owner's positions."""

    address: str
    positions: List[Position] = field(default_factory=list)
    health_factor: Decimal = INFINITE_HEALTH_FACTOR
    total_supplied_usd: Decimal = Decimal("0")
    total_borrowed_usd: Decimal = Decimal("0")
    net_deposits_usd: Decimal = Decimal("0")
    balances: Dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "positions": [position.to_dict() for position in self.positions],
            "health_factor": str(self.health_factor),
            "total_supplied_usd": str(self.total_supplied_usd),
            "total_borrowed_usd": str(self.total_borrowed_usd),
            "net_deposits_usd": str(self.net_deposits_usd),
            "balances": {symbol: str(amount) for symbol, amount in self.balances.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserAccount":
        positions = [Position.from_dict(p) for p in data.get("positions", [])]
        total_supplied = data.get("total_supplied_usd")
        total_borrowed = data.get("total_borrowed_usd")
        borrowed_usd = (
            to_decimal(total_borrowed) if total_borrowed is not None else sum((p.borrowed_amount for p in positions), Decimal("0"))
        )
        health_factor = _health_factor(data.get("health_factor"))
        if borrowed_usd == 0:
            health_factor = INFINITE_HEALTH_FACTOR
        return cls(
            address=data["address"],
            positions=positions,
            health_factor=health_factor,
            total_supplied_usd=(
                to_decimal(total_supplied) if total_supplied is not None else sum((p.supplied_amount for p in positions), Decimal("0"))
            ),
            total_borrowed_usd=borrowed_usd,
            net_deposits_usd=to_decimal(data.get("net_deposits_usd", 0)),
            balances={symbol: to_decimal(amount) for symbol, amount in data.get("balances", {}).items()},
        )


@dataclass
class YieldOpportunity:
    """A market the owner could deposit into, as ranked by the provider."""

    protocol: str
    market: Market
    apy: Decimal
    risk: RiskLevel = RiskLevel.MEDIUM
    liquidity: Decimal = Decimal("0")
    tvl: Decimal = Decimal("0")
    min_deposit: Optional[Decimal] = None
    max_deposit: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol": self.protocol,
            "market": self.market.to_dict(),
            "apy": str(self.apy),
            "risk": self.risk.value,
            "liquidity": str(self.liquidity),
            "tvl": str(self.tvl),
            "min_deposit": str(self.min_deposit) if self.min_deposit is not None else None,
            "max_deposit": str(self.max_deposit) if self.max_deposit is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "YieldOpportunity":
        return cls(
            protocol=data.get("protocol", ""),
            market=Market.from_dict(data["market"]),
            apy=to_decimal(data["apy"]),
            risk=RiskLevel(data.get("risk", "medium")),
            liquidity=to_decimal(data.get("liquidity", 0)),
            tvl=to_decimal(data.get("tvl", 0)),
            min_deposit=to_decimal(data["min_deposit"]) if data.get("min_deposit") is not None else None,
            max_deposit=to_decimal(data["max_deposit"]) if data.get("max_deposit") is not None else None,
        )


@dataclass
class PortfolioMetrics:
    """Portfolio-level figures derived from an account snapshot."""

    total_value_usd: Decimal
    total_supplied_usd: Decimal
    total_borrowed_usd: Decimal
    net_apy: Decimal
    health_factor: Decimal
    diversification_score: float
    risk_score: float
    liquidity_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_value_usd": str(self.total_value_usd),
            "total_supplied_usd": str(self.total_supplied_usd),
            "total_borrowed_usd": str(self.total_borrowed_usd),
            "net_apy": str(self.net_apy),
            "health_factor": str(self.health_factor),
            "diversification_score": self.diversification_score,
            "risk_score": self.risk_score,
            "liquidity_score": self.liquidity_score,
        }


@dataclass
class RiskMetrics:
    """Qualitative and numeric risk verdict for a portfolio."""

    health_factor: Decimal
    liquidation_risk: RiskLevel
    concentration_risk: float
    protocol_risk: float
    market_risk: float
    overall_risk: RiskLevel
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "health_factor": str(self.health_factor),
            "liquidation_risk": self.liquidation_risk.value,
            "concentration_risk": self.concentration_risk,
            "protocol_risk": self.protocol_risk,
            "market_risk": self.market_risk,
            "overall_risk": self.overall_risk.value,
            "recommendations": list(self.recommendations),
        }


@dataclass
class RebalanceAction:
    """A proposed portfolio move. Executed by the external submitter, never here."""

    type: ActionType
    amount: Decimal
    reason: str
    risk_level: RiskLevel
    market: Optional[Market] = None
    expected_gain: Decimal = Decimal("0")
    from_token: Optional[str] = None
    to_token: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "amount": str(self.amount),
            "reason": self.reason,
            "risk_level": self.risk_level.value,
            "market": self.market.to_dict() if self.market else None,
            "expected_gain": str(self.expected_gain),
            "from_token": self.from_token,
            "to_token": self.to_token,
        }
