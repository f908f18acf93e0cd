"""
Interfaces of the engine's external collaborators.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List

from app.automation.models import Advice, RiskLevel, StrategyRequest
from app.automation.snapshots import UserAccount, YieldOpportunity


class MarketProvider(ABC):
    """Live account and market data."""

    @abstractmethod
    def get_account(self, owner: str) -> UserAccount:
        """Snapshot of the owner's positions and health factor."""

    @abstractmethod
    def get_yield_opportunities(self, min_liquidity: Decimal, risk_tolerance: RiskLevel) -> List[YieldOpportunity]:
        """Opportunities with at least `min_liquidity`, filtered by risk tolerance."""

    @abstractmethod
    def get_asset_price(self, symbol: str) -> Decimal:
        """Current USD price of an asset."""


class StrategyAdvisor(ABC):
    """Handles scenario types whose logic is delegated outside the engine."""

    @abstractmethod
    def run(self, request: StrategyRequest) -> Advice:
        """Evaluate a strategy request and report the outcome."""


class ExecutionSubmitter(ABC):
    """Signs and submits transaction descriptors produced by a cycle."""

    @abstractmethod
    def submit(self, owner: str, transactions: List[Dict[str, Any]]) -> List[str]:
        """Submit transactions and return their hashes."""
