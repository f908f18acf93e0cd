"""
AutomationEngine - public face of the scenario automation engine.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional

from .config_loader import EngineConfig
from .defaults import create_default_scenarios
from .emergency import EmergencyStop
from .exceptions import ValidationError
from .handlers import AdvisorScenarioHandler, RebalanceScenarioHandler, ScenarioDispatcher
from .logging_config import setup_logger
from .models import AutomationContext, AutomationScenario, ExecutionResult, GlobalConfig
from .notifications import (
    post_cycle_executed_notification,
    post_emergency_stop_notification,
    post_scenario_failure_notification,
)
from .performance import PerformanceTracker
from .providers.base import MarketProvider, StrategyAdvisor
from .providers.http import HttpMarketProvider, HttpStrategyAdvisor
from .registry import ScenarioRegistry
from .scheduler import PriorityScheduler
from .strategy.rebalance import RebalanceGenerator
from .transactions import TransactionBuilder
from .triggers import TriggerEvaluator
from .validation import validate_owner

logger = setup_logger()


class AutomationEngine:
    """
    Registers owners' scenarios and runs their automation cycles.

    Owner addresses are normalized to their checksummed form before they
    reach the registry, so any casing of the same address maps to one context.
    """

    def __init__(
        self,
        config: EngineConfig,
        registry: ScenarioRegistry,
        scheduler: PriorityScheduler,
        emergency_stop: EmergencyStop,
        notify: bool = False,
    ):
        self.config = config
        self.registry = registry
        self.scheduler = scheduler
        self.emergency_stop = emergency_stop
        self.notify = notify

    def register(
        self,
        owner: str,
        scenarios: Optional[Iterable[AutomationScenario]] = None,
        global_config: Optional[GlobalConfig] = None,
        chain_id: Optional[int] = None,
        preferences: Optional[Dict[str, Any]] = None,
    ) -> AutomationContext:
        """
        Register (or re-register) an owner.

        Without explicit scenarios the default scenario set is built from
        the preferences.
        """
        owner = validate_owner(owner)
        if scenarios is None:
            scenarios = create_default_scenarios(preferences)
        return self.registry.register(owner, scenarios, global_config, chain_id)

    def get_context(self, owner: str) -> Optional[AutomationContext]:
        return self.registry.get(validate_owner(owner))

    def update_scenarios(self, owner: str, scenarios: Iterable[AutomationScenario]) -> Optional[AutomationContext]:
        return self.registry.update_scenarios(validate_owner(owner), scenarios)

    def update_context(self, owner: str, /, **fields) -> Optional[AutomationContext]:
        return self.registry.update(validate_owner(owner), **fields)

    def add_scenario(self, owner: str, scenario: AutomationScenario) -> AutomationContext:
        return self.registry.add_scenario(validate_owner(owner), scenario)

    def unregister(self, owner: str) -> bool:
        return self.registry.unregister(validate_owner(owner))

    def owners(self) -> List[str]:
        return self.registry.owners()

    def execute_automation_tasks(self, owner: str) -> ExecutionResult:
        """Run one automation cycle for an owner. Never raises for scenario-level problems."""
        try:
            owner = validate_owner(owner)
        except ValidationError as ex:
            logger.warning("AutomationEngine: %s", ex)
            return ExecutionResult(skip=True, message=str(ex))

        context = self.registry.get(owner)
        if context is None:
            logger.info("AutomationEngine: No automation context found for %s", owner)
            return ExecutionResult(skip=True, message="No automation context found for user")

        result = self.scheduler.execute_automation_tasks(context)

        if self.notify:
            self._notify_cycle(owner, result)

        return result

    def engage_emergency_stop(self, owner: Optional[str] = None) -> None:
        owner = validate_owner(owner) if owner is not None else None
        self.emergency_stop.engage(owner)
        if self.notify:
            self._safe_notify(post_emergency_stop_notification, owner, True, self.config)

    def release_emergency_stop(self, owner: Optional[str] = None) -> None:
        owner = validate_owner(owner) if owner is not None else None
        self.emergency_stop.release(owner)
        if self.notify:
            self._safe_notify(post_emergency_stop_notification, owner, False, self.config)

    def is_emergency_stopped(self, owner: str) -> bool:
        return self.emergency_stop.is_engaged(validate_owner(owner))

    def _notify_cycle(self, owner: str, result: ExecutionResult) -> None:
        for scenario_result in result.scenario_results:
            if not scenario_result.success:
                self._safe_notify(post_scenario_failure_notification, owner, scenario_result, self.config)

        if not result.skip:
            self._safe_notify(post_cycle_executed_notification, owner, result, self.config)

    @staticmethod
    def _safe_notify(func: Callable[..., bool], *args: Any) -> None:
        try:
            if not func(*args):
                logger.debug("AutomationEngine: %s did not deliver", func.__name__)
        except Exception as ex:
            logger.error("AutomationEngine: Failed to send notification via %s: %s", func.__name__, ex, exc_info=True)


def build_engine(
    config: EngineConfig,
    provider: Optional[MarketProvider] = None,
    advisor: Optional[StrategyAdvisor] = None,
    notify: Optional[bool] = None,
    clock: Callable[[], float] = time.time,
) -> AutomationEngine:
    """
    Wire an AutomationEngine from config.

    Args:
        config: Engine configuration for one chain.
        provider: Market data source, HttpMarketProvider when omitted.
        advisor: Strategy advisor, HttpStrategyAdvisor when omitted.
        notify: Send Apprise notifications, defaults to NOTIFY_ON_EXECUTION.
        clock: Time source shared by triggers, scheduler and tracker.

    Returns:
        A ready AutomationEngine with an empty registry.
    """
    provider = provider or HttpMarketProvider(config)
    advisor = advisor or HttpStrategyAdvisor(config)
    if notify is None:
        notify = bool(config.NOTIFY_ON_EXECUTION)

    executor = ThreadPoolExecutor(max_workers=config.MAX_WORKERS)
    timeout = config.EXTERNAL_CALL_TIMEOUT

    generator = RebalanceGenerator(config.strategy, config.risk_limits, config.assets)
    handlers = {
        "rebalance": RebalanceScenarioHandler(config, generator, TransactionBuilder(config)),
        "advisor": AdvisorScenarioHandler(advisor, executor, timeout),
    }

    registry = ScenarioRegistry(default_chain_id=config.CHAIN_ID)
    emergency_stop = EmergencyStop()
    scheduler = PriorityScheduler(
        registry=registry,
        evaluator=TriggerEvaluator(config.strategy, clock),
        dispatcher=ScenarioDispatcher(handlers, clock),
        tracker=PerformanceTracker(clock),
        emergency_stop=emergency_stop,
        provider=provider,
        executor=executor,
        call_timeout=timeout,
        high_priority_threshold=config.HIGH_PRIORITY_THRESHOLD,
        clock=clock,
    )

    logger.info("AutomationEngine: Built for chain %s (%s)", config.CHAIN_ID, config.CHAIN_NAME)
    return AutomationEngine(config, registry, scheduler, emergency_stop, notify=notify)
