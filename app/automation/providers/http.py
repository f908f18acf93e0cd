"""
REST implementations of the market provider and strategy advisor.
"""

from decimal import Decimal
from typing import Any, Dict, List

from app.automation.config_loader import EngineConfig
from app.automation.decorators import make_api_request
from app.automation.exceptions import DataFetchError, ValidationError
from app.automation.logging_config import setup_logger
from app.automation.models import Advice, RiskLevel, StrategyRequest, to_decimal
from app.automation.providers.base import MarketProvider, StrategyAdvisor
from app.automation.snapshots import UserAccount, YieldOpportunity

logger = setup_logger()


class HttpMarketProvider(MarketProvider):
    """
    Market data served by a JSON API.

    Endpoints, relative to MARKET_API_URL:
        GET /accounts/<owner>
        GET /opportunities?min_liquidity=..&risk_tolerance=..
        GET /prices/<symbol>
    """

    def __init__(self, config: EngineConfig) -> None:
        self.config = config
        self.api_base_url = config.MARKET_API_URL.rstrip("/")
        self.headers = {"Accept": "application/json"}
        self.timeout = config.EXTERNAL_CALL_TIMEOUT
        self.max_retries = config.HTTP_MAX_RETRIES

        if not self.api_base_url:
            logger.warning("HttpMarketProvider: MARKET_API_URL not set, every request will fail.")

    def _get(self, path: str, params: Dict[str, Any] = None) -> Any:
        url = f"{self.api_base_url}/{self.config.CHAIN_ID}{path}"
        return make_api_request(
            "GET", url, headers=self.headers, params=params, timeout=self.timeout, max_retries=self.max_retries
        )

    def get_account(self, owner: str) -> UserAccount:
        data = self._get(f"/accounts/{owner}")
        try:
            return UserAccount.from_dict(data)
        except (KeyError, TypeError, ValueError, ValidationError) as ex:
            raise DataFetchError(f"Malformed account payload for {owner}: {ex}") from ex

    def get_yield_opportunities(self, min_liquidity: Decimal, risk_tolerance: RiskLevel) -> List[YieldOpportunity]:
        data = self._get(
            "/opportunities", params={"min_liquidity": str(min_liquidity), "risk_tolerance": risk_tolerance.value}
        )
        try:
            return [YieldOpportunity.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError, ValidationError) as ex:
            raise DataFetchError(f"Malformed opportunities payload: {ex}") from ex

    def get_asset_price(self, symbol: str) -> Decimal:
        data = self._get(f"/prices/{symbol}")
        try:
            return to_decimal(data["price"])
        except (KeyError, TypeError, ValueError, ValidationError) as ex:
            raise DataFetchError(f"Malformed price payload for {symbol}: {ex}") from ex


class HttpStrategyAdvisor(StrategyAdvisor):
    """Strategy advisor reachable over HTTP at ADVISOR_API_URL."""

    def __init__(self, config: EngineConfig) -> None:
        self.url = f"{config.ADVISOR_API_URL.rstrip('/')}/strategies/run"
        self.timeout = config.EXTERNAL_CALL_TIMEOUT
        self.max_retries = config.HTTP_MAX_RETRIES
        self.headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if config.ADVISOR_API_KEY:
            self.headers["Authorization"] = f"Bearer {config.ADVISOR_API_KEY}"

    def run(self, request: StrategyRequest) -> Advice:
        logger.info("HttpStrategyAdvisor: Running %s for %s", request.scenario_type.value, request.owner)
        data = make_api_request(
            "POST",
            self.url,
            headers=self.headers,
            json_body=request.to_dict(),
            timeout=self.timeout,
            max_retries=self.max_retries,
        )
        return Advice.from_dict(data)
