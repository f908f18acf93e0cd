"""
Config Loader module - engine, strategy and risk settings per chain
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, FrozenSet

import yaml

from .exceptions import ConfigError
from .models import RiskLevel


@dataclass(frozen=True)
class StrategySettings:
    """Thresholds used by the rebalance action generator."""

    min_yield_threshold: Decimal = Decimal("2")
    rebalance_threshold: Decimal = Decimal("10")
    max_position_size: Decimal = Decimal("10000")
    risk_tolerance: RiskLevel = RiskLevel.MEDIUM
    min_liquidity: Decimal = Decimal("1000")
    max_slippage: Decimal = Decimal("0.5")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StrategySettings":
        return cls(
            min_yield_threshold=Decimal(str(data.get("min_yield_threshold", "2"))),
            rebalance_threshold=Decimal(str(data.get("rebalance_threshold", "10"))),
            max_position_size=Decimal(str(data.get("max_position_size", "10000"))),
            risk_tolerance=RiskLevel(data.get("risk_tolerance", "medium")),
            min_liquidity=Decimal(str(data.get("min_liquidity", "1000"))),
            max_slippage=Decimal(str(data.get("max_slippage", "0.5"))),
        )


@dataclass(frozen=True)
class RiskLimits:
    """Hard limits the engine must respect when proposing actions."""

    min_health_factor: Decimal = Decimal("1.5")
    max_protocol_exposure: Decimal = Decimal("30")
    emergency_stop_loss: Decimal = Decimal("10")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskLimits":
        return cls(
            min_health_factor=Decimal(str(data.get("min_health_factor", "1.5"))),
            max_protocol_exposure=Decimal(str(data.get("max_protocol_exposure", "30"))),
            emergency_stop_loss=Decimal(str(data.get("emergency_stop_loss", "10"))),
        )


@dataclass(frozen=True)
class AssetClasses:
    """Symbol sets used to classify volatility and stablecoin exposure."""

    stablecoins: FrozenSet[str] = field(default_factory=lambda: frozenset({"USDC", "USDT"}))
    major_assets: FrozenSet[str] = field(default_factory=lambda: frozenset({"SEI", "WETH"}))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetClasses":
        return cls(
            stablecoins=frozenset(s.upper() for s in data.get("stablecoins", ["USDC", "USDT"])),
            major_assets=frozenset(s.upper() for s in data.get("major_assets", ["SEI", "WETH"])),
        )

    def is_stablecoin(self, symbol: str) -> bool:
        return symbol.upper() in self.stablecoins

    def is_major_asset(self, symbol: str) -> bool:
        return symbol.upper() in self.major_assets


class EngineConfig:
    """
    Engine Config object to access config variables
    """

    required_env_vars = [
        "MARKET_API_URL",
        "ADVISOR_API_URL",
        # "ADVISOR_API_KEY",  # Optional
        # "NOTIFICATION_URL",  # Optional
    ]

    def __init__(self, chain_id: int, config: Dict[str, Any]):
        if chain_id not in config.get("chains", {}):
            raise ConfigError(f"No configuration found for chain ID {chain_id}")

        self.CHAIN_ID = chain_id
        self._global = config.get("global", {})
        self._chain = config["chains"][chain_id]
        self.CHAIN_NAME = self._chain["name"]

        self.strategy = StrategySettings.from_dict(config.get("strategy", {}))
        self.risk_limits = RiskLimits.from_dict(config.get("risk_limits", {}))
        self.assets = AssetClasses.from_dict(config.get("assets", {}))

        self.MARKET_API_URL = os.environ.get("MARKET_API_URL", "")
        self.ADVISOR_API_URL = os.environ.get("ADVISOR_API_URL", "")
        self.ADVISOR_API_KEY = os.environ.get("ADVISOR_API_KEY", "")
        self.NOTIFICATION_URL = os.environ.get("NOTIFICATION_URL", "")

        self.LOGS_PATH = f"{self._global.get('LOGS_PATH', 'logs')}/{self.CHAIN_NAME}_automation.log"

    def __getattr__(self, name: str) -> Any:
        """Look up config values in chain-specific, then global config."""
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._chain:
            return self._chain[name]
        if name in self._global:
            return self._global[name]
        raise AttributeError(f"Config has no attribute '{name}'")

    def validate(self) -> None:
        """
        Validates that all required environment variables are set.
        Raises an error if any are missing.
        """
        missing_keys = [key for key in self.required_env_vars if not os.getenv(key)]
        if missing_keys:
            raise EnvironmentError(f"Missing required environment variables: {', '.join(missing_keys)}")


def load_config_file(config_path: str = None) -> Dict[str, Any]:
    if config_path is None:
        current_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(os.path.dirname(current_dir), "config.yaml")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"Config file not found at {config_path}") from exc
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file: {e}") from e


def load_engine_config(chain_id: int, config_path: str = None) -> EngineConfig:
    config = load_config_file(config_path)
    return EngineConfig(chain_id=chain_id, config=config)
