"""
Data classes for scenarios, triggers, automation contexts and cycle results.
"""

from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .exceptions import ValidationError

MAX_PRIORITY = 10


def to_decimal(value: Any) -> Decimal:
    """Convert a number or numeric string to Decimal without float drift."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as ex:
        raise ValidationError(f"Not a decimal value: {value!r}") from ex


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TriggerType(str, Enum):
    TIME_BASED = "time_based"
    PRICE_BASED = "price_based"
    APY_BASED = "apy_based"
    HEALTH_FACTOR = "health_factor"
    PROFIT_THRESHOLD = "profit_threshold"
    LOSS_THRESHOLD = "loss_threshold"


class Comparison(str, Enum):
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EQUALS = "equals"
    PERCENTAGE_CHANGE = "percentage_change"


class ScenarioType(str, Enum):
    YIELD_OPTIMIZATION = "yield_optimization"
    PORTFOLIO_REBALANCING = "portfolio_rebalancing"
    RISK_MANAGEMENT = "risk_management"
    POSITION_MONITORING = "position_monitoring"
    LIQUIDATION_PROTECTION = "liquidation_protection"
    PROFIT_TAKING = "profit_taking"
    STOP_LOSS = "stop_loss"


class ActionType(str, Enum):
    WITHDRAW = "withdraw"
    DEPOSIT = "deposit"
    BORROW = "borrow"
    REPAY = "repay"
    SWAP = "swap"


@dataclass(frozen=True)
class AutomationTrigger:
    """A single condition that must hold for a scenario to fire."""

    type: TriggerType
    condition: str
    value: float
    comparison: Comparison = Comparison.GREATER_THAN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "condition": self.condition,
            "value": self.value,
            "comparison": self.comparison.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutomationTrigger":
        try:
            return cls(
                type=TriggerType(data["type"]),
                condition=data.get("condition", ""),
                value=float(data["value"]),
                comparison=Comparison(data.get("comparison", Comparison.GREATER_THAN.value)),
            )
        except (KeyError, ValueError, TypeError) as ex:
            raise ValidationError(f"Malformed trigger {data!r}: {ex}") from ex


class _ParamsMixin:
    """to_dict/from_dict for the flat parameter records."""

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, dict):
                value = {k: str(v) if isinstance(v, Decimal) else v for k, v in value.items()}
            elif isinstance(value, list):
                value = list(value)
            result[f.name] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        known = {f.name: f for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            try:
                kwargs[key] = _coerce_field(known[key].type, value)
            except (TypeError, ValueError, InvalidOperation) as ex:
                raise ValidationError(f"Invalid {cls.__name__}.{key}: {value!r}") from ex
        return cls(**kwargs)


def _coerce_field(field_type: Any, value: Any) -> Any:
    if field_type in (Decimal, Optional[Decimal]):
        return to_decimal(value)
    if field_type in (RiskLevel, Optional[RiskLevel]):
        return RiskLevel(value)
    if field_type is int:
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise TypeError("expected an integer")
        return int(value)
    if field_type is str:
        if not isinstance(value, str):
            raise TypeError("expected a string")
        return value
    if field_type == List[str]:
        if not isinstance(value, list):
            raise TypeError("expected a list")
        return [str(item) for item in value]
    if field_type == Dict[str, float]:
        if not isinstance(value, dict):
            raise TypeError("expected a mapping")
        return {str(k): float(v) for k, v in value.items()}
    return value


@dataclass
class YieldOptimizationParams(_ParamsMixin):
    base_token: str = ""
    target_apy: Optional[Decimal] = None
    max_slippage: Optional[Decimal] = None
    risk_tolerance: Optional[RiskLevel] = None
    preferred_protocols: List[str] = field(default_factory=list)
    max_position_size: Optional[Decimal] = None


@dataclass
class PortfolioRebalancingParams(_ParamsMixin):
    target_allocation: Dict[str, float] = field(default_factory=dict)
    rebalance_threshold: Decimal = Decimal("5")
    max_slippage: Optional[Decimal] = None
    target_apy: Optional[Decimal] = None
    max_position_size: Optional[Decimal] = None


@dataclass
class RiskManagementParams(_ParamsMixin):
    max_protocol_exposure: Decimal = Decimal("30")
    min_health_factor: Decimal = Decimal("2")
    emergency_stop_loss: Decimal = Decimal("10")


@dataclass
class PositionMonitoringParams(_ParamsMixin):
    check_interval: int = 900
    thresholds: Dict[str, float] = field(default_factory=dict)
    alert_levels: List[str] = field(default_factory=lambda: ["warning", "critical"])


@dataclass
class LiquidationProtectionParams(_ParamsMixin):
    min_health_factor: Decimal = Decimal("1.5")
    emergency_threshold: Decimal = Decimal("1.2")
    protection_actions: List[str] = field(default_factory=lambda: ["add_collateral", "repay_debt", "close_position"])


@dataclass
class ProfitTakingParams(_ParamsMixin):
    profit_threshold: Decimal = Decimal("20")
    take_profit_percentage: Decimal = Decimal("50")
    target_assets: List[str] = field(default_factory=list)


@dataclass
class StopLossParams(_ParamsMixin):
    stop_loss_threshold: Decimal = Decimal("15")
    stop_loss_percentage: Decimal = Decimal("100")
    target_assets: List[str] = field(default_factory=list)


ScenarioParameters = Union[
    YieldOptimizationParams,
    PortfolioRebalancingParams,
    RiskManagementParams,
    PositionMonitoringParams,
    LiquidationProtectionParams,
    ProfitTakingParams,
    StopLossParams,
]

PARAMETER_TYPES = {
    ScenarioType.YIELD_OPTIMIZATION: YieldOptimizationParams,
    ScenarioType.PORTFOLIO_REBALANCING: PortfolioRebalancingParams,
    ScenarioType.RISK_MANAGEMENT: RiskManagementParams,
    ScenarioType.POSITION_MONITORING: PositionMonitoringParams,
    ScenarioType.LIQUIDATION_PROTECTION: LiquidationProtectionParams,
    ScenarioType.PROFIT_TAKING: ProfitTakingParams,
    ScenarioType.STOP_LOSS: StopLossParams,
}


@dataclass
class ScenarioState:
    """Runtime bookkeeping the engine keeps per scenario between cycles."""

    last_execution: float = 0.0
    # trigger index -> signal observed at the previous evaluation
    baselines: Dict[int, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"last_execution": self.last_execution, "baselines": dict(self.baselines)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScenarioState":
        return cls(
            last_execution=float(data.get("last_execution", 0.0)),
            baselines={int(k): float(v) for k, v in data.get("baselines", {}).items()},
        )


@dataclass
class AutomationScenario:
    """A named, prioritized, enable-able automation policy."""

    id: str
    name: str
    type: ScenarioType
    parameters: ScenarioParameters
    triggers: List[AutomationTrigger] = field(default_factory=list)
    description: str = ""
    enabled: bool = True
    risk_level: RiskLevel = RiskLevel.MEDIUM
    priority: int = 5
    state: ScenarioState = field(default_factory=ScenarioState)

    def __post_init__(self):
        expected = PARAMETER_TYPES[self.type]
        if not isinstance(self.parameters, expected):
            raise ValidationError(
                f"Scenario {self.id} of type {self.type.value} needs {expected.__name__}, "
                f"got {type(self.parameters).__name__}"
            )
        if not 0 <= self.priority <= MAX_PRIORITY:
            raise ValidationError(f"Scenario {self.id} priority {self.priority} outside 0-{MAX_PRIORITY}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "enabled": self.enabled,
            "triggers": [trigger.to_dict() for trigger in self.triggers],
            "parameters": self.parameters.to_dict(),
            "risk_level": self.risk_level.value,
            "priority": self.priority,
            "state": self.state.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutomationScenario":
        try:
            scenario_type = ScenarioType(data["type"])
            params_cls = PARAMETER_TYPES[scenario_type]
            return cls(
                id=str(data["id"]),
                name=data["name"],
                description=data.get("description", ""),
                type=scenario_type,
                enabled=bool(data.get("enabled", True)),
                triggers=[AutomationTrigger.from_dict(t) for t in data.get("triggers", [])],
                parameters=params_cls.from_dict(data.get("parameters", {})),
                risk_level=RiskLevel(data.get("risk_level", "medium")),
                priority=int(data.get("priority", 5)),
                state=ScenarioState.from_dict(data.get("state", {})),
            )
        except (KeyError, ValueError, TypeError) as ex:
            raise ValidationError(f"Malformed scenario {data.get('id', '?')}: {ex}") from ex


@dataclass
class GlobalConfig:
    """Owner-wide settings applied to every scenario of a context."""

    max_slippage: Decimal = Decimal("0.5")
    risk_tolerance: RiskLevel = RiskLevel.MEDIUM
    emergency_stop_loss: Decimal = Decimal("10")
    max_gas_price: int = 1_000_000_000
    preferred_protocols: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_slippage": str(self.max_slippage),
            "risk_tolerance": self.risk_tolerance.value,
            "emergency_stop_loss": str(self.emergency_stop_loss),
            "max_gas_price": self.max_gas_price,
            "preferred_protocols": list(self.preferred_protocols),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GlobalConfig":
        try:
            return cls(
                max_slippage=to_decimal(data.get("max_slippage", "0.5")),
                risk_tolerance=RiskLevel(data.get("risk_tolerance", "medium")),
                emergency_stop_loss=to_decimal(data.get("emergency_stop_loss", "10")),
                max_gas_price=int(data.get("max_gas_price", 1_000_000_000)),
                preferred_protocols=list(data.get("preferred_protocols", [])),
            )
        except (ValueError, TypeError) as ex:
            raise ValidationError(f"Malformed global config: {ex}") from ex


@dataclass
class PerformanceMetrics:
    """Running totals over every dispatched scenario of a context."""

    total_executions: int = 0
    successful_executions: int = 0
    success_rate: float = 0.0
    total_profit: Decimal = Decimal("0")
    total_gas_cost: Decimal = Decimal("0")
    last_execution: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_executions": self.total_executions,
            "successful_executions": self.successful_executions,
            "success_rate": self.success_rate,
            "total_profit": str(self.total_profit),
            "total_gas_cost": str(self.total_gas_cost),
            "last_execution": self.last_execution,
        }


@dataclass
class AutomationContext:
    """Per-owner scenarios, global settings and running performance metrics."""

    owner: str
    chain_id: int
    scenarios: List[AutomationScenario] = field(default_factory=list)
    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    performance_metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)

    def __post_init__(self):
        self.sort_scenarios()

    def sort_scenarios(self) -> None:
        self.scenarios.sort(key=lambda scenario: scenario.priority, reverse=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "chain_id": self.chain_id,
            "scenarios": [scenario.to_dict() for scenario in self.scenarios],
            "global_config": self.global_config.to_dict(),
            "performance_metrics": self.performance_metrics.to_dict(),
        }


# Scenario outcomes


@dataclass
class Executed:
    """The scenario ran and produced (possibly zero) transactions."""

    transactions: List[Dict[str, Any]] = field(default_factory=list)
    profit: Decimal = Decimal("0")
    gas_used: Decimal = Decimal("0")
    recommendations: List[str] = field(default_factory=list)
    message: str = ""
    risk_assessment: Optional[RiskLevel] = None


@dataclass
class Skipped:
    """
    The scenario did not act. Not an error.

    data_unavailable marks skips caused by a failed fetch; those are retried
    next cycle and do not count as successful executions.
    """

    reason: str
    recommendations: List[str] = field(default_factory=list)
    data_unavailable: bool = False


@dataclass
class Failed:
    """The scenario raised. Reported, never propagated."""

    error: str


ScenarioOutcome = Union[Executed, Skipped, Failed]


def is_completed(outcome: "ScenarioOutcome") -> bool:
    """False for failures and for skips caused by unavailable data."""
    if isinstance(outcome, Failed):
        return False
    return not (isinstance(outcome, Skipped) and outcome.data_unavailable)


@dataclass
class ScenarioExecutionResult:
    scenario_id: str
    scenario_name: str
    priority: int
    outcome: ScenarioOutcome
    next_check: Optional[float] = None

    @property
    def executed(self) -> bool:
        return isinstance(self.outcome, Executed)

    @property
    def success(self) -> bool:
        return not isinstance(self.outcome, Failed)

    @property
    def message(self) -> str:
        if isinstance(self.outcome, Executed):
            return self.outcome.message
        if isinstance(self.outcome, Skipped):
            return self.outcome.reason
        return self.outcome.error

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "scenario_id": self.scenario_id,
            "scenario_name": self.scenario_name,
            "priority": self.priority,
            "success": self.success,
            "executed": self.executed,
            "message": self.message,
            "next_check": self.next_check,
        }
        if isinstance(self.outcome, Executed):
            result.update(
                {
                    "transactions": self.outcome.transactions,
                    "profit": str(self.outcome.profit),
                    "gas_used": str(self.outcome.gas_used),
                    "recommendations": self.outcome.recommendations,
                }
            )
        elif isinstance(self.outcome, Skipped):
            result["recommendations"] = self.outcome.recommendations
        return result


@dataclass
class ExecutionResult:
    """Aggregate of one scheduler cycle over all scenarios of an owner."""

    skip: bool
    message: str
    transactions: List[Dict[str, Any]] = field(default_factory=list)
    gas_estimate: Decimal = Decimal("0")
    expected_profit: Decimal = Decimal("0")
    risk_assessment: Optional[RiskLevel] = None
    scenario_results: List[ScenarioExecutionResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "skip": self.skip,
            "message": self.message,
            "transactions": self.transactions,
            "gas_estimate": str(self.gas_estimate),
            "expected_profit": str(self.expected_profit),
            "risk_assessment": self.risk_assessment.value if self.risk_assessment else None,
            "metadata": {
                "total_scenarios": len(self.scenario_results),
                "executed_scenarios": sum(1 for r in self.scenario_results if r.executed),
                "successful_scenarios": sum(1 for r in self.scenario_results if r.executed and r.success),
                "scenarios": [r.to_dict() for r in self.scenario_results],
            },
        }


@dataclass
class StrategyRequest:
    """What the engine hands to the external strategy advisor."""

    owner: str
    chain_id: int
    scenario_type: ScenarioType
    instructions: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "chain_id": self.chain_id,
            "scenario_type": self.scenario_type.value,
            "instructions": self.instructions,
            "parameters": self.parameters,
        }


@dataclass
class Advice:
    """What the external strategy advisor hands back."""

    success: bool
    profit: Decimal = Decimal("0")
    gas_used: Decimal = Decimal("0")
    recommendations: List[str] = field(default_factory=list)
    transactions: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Advice":
        return cls(
            success=bool(data.get("success", False)),
            profit=to_decimal(data.get("profit") or 0),
            gas_used=to_decimal(data.get("gas_used") or 0),
            recommendations=list(data.get("recommendations", [])),
            transactions=list(data.get("transactions", [])),
            error=data.get("error"),
        )
