"""
Per-cycle cache of external market data.

Every scenario of one cycle sees the same account snapshot and opportunity
list. Each value is fetched at most once per cycle, failures included.
"""

from concurrent.futures import Executor
from decimal import Decimal
from typing import Any, Callable, Dict, List, Tuple

from .decorators import call_with_timeout
from .exceptions import DataFetchError
from .logging_config import setup_logger
from .models import RiskLevel
from .providers.base import MarketProvider
from .snapshots import UserAccount, YieldOpportunity

logger = setup_logger()


class CycleData:
    def __init__(self, owner: str, provider: MarketProvider, executor: Executor, timeout: float):
        self.owner = owner
        self.provider = provider
        self.executor = executor
        self.timeout = timeout
        self._cache: Dict[Tuple[Any, ...], Any] = {}

    def _fetch(self, key: Tuple[Any, ...], description: str, func: Callable, *args: Any) -> Any:
        if key in self._cache:
            cached = self._cache[key]
            if isinstance(cached, DataFetchError):
                raise cached
            return cached

        try:
            value = call_with_timeout(self.executor, self.timeout, description, func, *args)
        except DataFetchError as ex:
            logger.warning("CycleData: %s", ex)
            self._cache[key] = ex
            raise

        self._cache[key] = value
        return value

    def account(self) -> UserAccount:
        return self._fetch(("account",), f"Account fetch for {self.owner}", self.provider.get_account, self.owner)

    def opportunities(self, min_liquidity: Decimal, risk_tolerance: RiskLevel) -> List[YieldOpportunity]:
        return self._fetch(
            ("opportunities", min_liquidity, risk_tolerance),
            "Yield opportunity fetch",
            self.provider.get_yield_opportunities,
            min_liquidity,
            risk_tolerance,
        )

    def asset_price(self, symbol: str) -> Decimal:
        symbol = symbol.upper()
        return self._fetch(("price", symbol), f"Price fetch for {symbol}", self.provider.get_asset_price, symbol)
