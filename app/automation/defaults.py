"""
Default scenario set built from an owner's registration preferences.
"""

import time
from decimal import Decimal
from typing import Any, Callable, Dict, List

from .models import (
    AutomationScenario,
    AutomationTrigger,
    Comparison,
    LiquidationProtectionParams,
    PortfolioRebalancingParams,
    PositionMonitoringParams,
    ProfitTakingParams,
    RiskLevel,
    RiskManagementParams,
    ScenarioType,
    StopLossParams,
    TriggerType,
    YieldOptimizationParams,
    to_decimal,
)

DEFAULT_TARGET_ALLOCATION = {"silo_staking": 40.0, "takara_lending": 35.0, "symphony_lp": 25.0}
DEFAULT_PROTOCOLS = ["symphony", "takara", "silo"]
DEFAULT_TARGET_ASSETS = ["SEI", "USDC"]


def _decimal(preferences: Dict[str, Any], key: str, default: str) -> Decimal:
    return to_decimal(preferences.get(key, default))


def create_default_scenarios(
    preferences: Dict[str, Any] = None, clock: Callable[[], float] = time.time
) -> List[AutomationScenario]:
    """
    Build the standard scenario set for a newly registered owner.

    Args:
        preferences: Optional overrides (intervals, thresholds, enable flags).
        clock: Source of the timestamp used in scenario ids.

    Returns:
        Scenarios in creation order. The context sorts them by priority.
    """
    preferences = preferences or {}
    stamp = int(clock() * 1000)
    risk_tolerance = RiskLevel(preferences.get("risk_tolerance", RiskLevel.MEDIUM.value))
    min_health_factor = _decimal(preferences, "min_health_factor", "2.0")
    liquidation_threshold = _decimal(preferences, "liquidation_threshold", "1.5")

    scenarios = [
        AutomationScenario(
            id=f"yield_opt_{stamp}",
            name="Yield Optimization",
            description="Automatically optimize yield across protocols",
            type=ScenarioType.YIELD_OPTIMIZATION,
            enabled=preferences.get("enable_yield_optimization", True),
            triggers=[
                AutomationTrigger(
                    TriggerType.TIME_BASED, "every_hours", float(preferences.get("yield_optimization_interval", 24))
                ),
                AutomationTrigger(
                    TriggerType.APY_BASED, "better_apy_available", float(preferences.get("apy_threshold", 2.0))
                ),
            ],
            parameters=YieldOptimizationParams(
                target_apy=_decimal(preferences, "target_apy", "10.0"),
                max_slippage=_decimal(preferences, "max_slippage", "0.5"),
                risk_tolerance=risk_tolerance,
                preferred_protocols=list(preferences.get("preferred_protocols", DEFAULT_PROTOCOLS)),
                max_position_size=_decimal(preferences, "max_position_size", "10000"),
            ),
            risk_level=risk_tolerance,
            priority=7,
        ),
        AutomationScenario(
            id=f"portfolio_rebalance_{stamp}",
            name="Portfolio Rebalancing",
            description="Maintain target portfolio allocation",
            type=ScenarioType.PORTFOLIO_REBALANCING,
            enabled=preferences.get("enable_portfolio_rebalancing", True),
            triggers=[
                AutomationTrigger(
                    TriggerType.TIME_BASED, "every_hours", float(preferences.get("rebalancing_interval", 12))
                ),
            ],
            parameters=PortfolioRebalancingParams(
                target_allocation=dict(preferences.get("target_allocation", DEFAULT_TARGET_ALLOCATION)),
                rebalance_threshold=_decimal(preferences, "rebalance_threshold", "5.0"),
                max_slippage=_decimal(preferences, "max_slippage", "0.5"),
            ),
            risk_level=risk_tolerance,
            priority=6,
        ),
        AutomationScenario(
            id=f"risk_mgmt_{stamp}",
            name="Risk Management",
            description="Monitor and manage portfolio risk",
            type=ScenarioType.RISK_MANAGEMENT,
            enabled=preferences.get("enable_risk_management", True),
            triggers=[
                AutomationTrigger(TriggerType.TIME_BASED, "every_hours", float(preferences.get("risk_check_interval", 6))),
                AutomationTrigger(
                    TriggerType.HEALTH_FACTOR, "below_threshold", float(min_health_factor), Comparison.LESS_THAN
                ),
            ],
            parameters=RiskManagementParams(
                max_protocol_exposure=_decimal(preferences, "max_protocol_exposure", "30"),
                min_health_factor=min_health_factor,
                emergency_stop_loss=_decimal(preferences, "emergency_stop_loss", "10.0"),
            ),
            risk_level=RiskLevel.HIGH,
            priority=9,
        ),
        AutomationScenario(
            id=f"position_monitor_{stamp}",
            name="Position Monitoring",
            description="Monitor all positions and provide alerts",
            type=ScenarioType.POSITION_MONITORING,
            enabled=preferences.get("enable_position_monitoring", True),
            triggers=[
                AutomationTrigger(
                    TriggerType.TIME_BASED, "every_minutes", float(preferences.get("monitoring_interval", 15))
                ),
            ],
            parameters=PositionMonitoringParams(
                check_interval=int(preferences.get("monitoring_interval", 15)) * 60,
                thresholds={
                    "health_factor": float(min_health_factor),
                    "apy_change": float(preferences.get("apy_change_threshold", 1.0)),
                    "profit_loss": float(preferences.get("profit_loss_threshold", 5.0)),
                },
            ),
            risk_level=RiskLevel.LOW,
            priority=3,
        ),
        AutomationScenario(
            id=f"liquidation_protection_{stamp}",
            name="Liquidation Protection",
            description="Protect against liquidation risks",
            type=ScenarioType.LIQUIDATION_PROTECTION,
            enabled=preferences.get("enable_liquidation_protection", True),
            triggers=[
                AutomationTrigger(
                    TriggerType.HEALTH_FACTOR, "below_threshold", float(liquidation_threshold), Comparison.LESS_THAN
                ),
            ],
            parameters=LiquidationProtectionParams(
                min_health_factor=liquidation_threshold,
                emergency_threshold=_decimal(preferences, "emergency_threshold", "1.2"),
            ),
            risk_level=RiskLevel.HIGH,
            priority=10,
        ),
    ]

    if preferences.get("enable_profit_taking"):
        threshold = _decimal(preferences, "profit_taking_threshold", "20.0")
        scenarios.append(
            AutomationScenario(
                id=f"profit_taking_{stamp}",
                name="Profit Taking",
                description="Automatically take profits when targets are reached",
                type=ScenarioType.PROFIT_TAKING,
                triggers=[AutomationTrigger(TriggerType.PROFIT_THRESHOLD, "above_threshold", float(threshold))],
                parameters=ProfitTakingParams(
                    profit_threshold=threshold,
                    take_profit_percentage=_decimal(preferences, "take_profit_percentage", "50.0"),
                    target_assets=list(preferences.get("profit_taking_assets", DEFAULT_TARGET_ASSETS)),
                ),
                risk_level=RiskLevel.MEDIUM,
                priority=5,
            )
        )

    if preferences.get("enable_stop_loss"):
        threshold = _decimal(preferences, "stop_loss_threshold", "15.0")
        scenarios.append(
            AutomationScenario(
                id=f"stop_loss_{stamp}",
                name="Stop Loss",
                description="Automatically cut losses when thresholds are reached",
                type=ScenarioType.STOP_LOSS,
                triggers=[AutomationTrigger(TriggerType.LOSS_THRESHOLD, "above_threshold", float(threshold))],
                parameters=StopLossParams(
                    stop_loss_threshold=threshold,
                    stop_loss_percentage=_decimal(preferences, "stop_loss_percentage", "100.0"),
                    target_assets=list(preferences.get("stop_loss_assets", DEFAULT_TARGET_ASSETS)),
                ),
                risk_level=RiskLevel.HIGH,
                priority=8,
            )
        )

    return scenarios
