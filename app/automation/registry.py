"""
Scenario registry - owns the per-owner automation contexts.
"""

import threading
from typing import Dict, Iterable, List, Optional

from .exceptions import ContextNotFoundError, ValidationError
from .logging_config import setup_logger
from .models import AutomationContext, AutomationScenario, GlobalConfig, PerformanceMetrics

logger = setup_logger()

UPDATABLE_FIELDS = ("scenarios", "global_config", "chain_id", "performance_metrics")


class ScenarioRegistry:
    """
    Thread-safe owner -> AutomationContext map.

    The map itself is guarded by one lock. Each owner additionally has a
    re-entrant lock that registration, updates and a running scheduler cycle
    for that owner all hold, so a cycle never sees a half-applied update.
    """

    def __init__(self, default_chain_id: int):
        self.default_chain_id = default_chain_id
        self._contexts: Dict[str, AutomationContext] = {}
        self._owner_locks: Dict[str, threading.RLock] = {}
        self._lock = threading.Lock()

    def owner_lock(self, owner: str) -> threading.RLock:
        with self._lock:
            lock = self._owner_locks.get(owner)
            if lock is None:
                lock = threading.RLock()
                self._owner_locks[owner] = lock
            return lock

    def register(
        self,
        owner: str,
        scenarios: Iterable[AutomationScenario],
        global_config: Optional[GlobalConfig] = None,
        chain_id: Optional[int] = None,
    ) -> AutomationContext:
        """Create or overwrite the context for an owner."""
        context = AutomationContext(
            owner=owner,
            chain_id=chain_id if chain_id is not None else self.default_chain_id,
            scenarios=list(scenarios),
            global_config=global_config or GlobalConfig(),
            performance_metrics=PerformanceMetrics(),
        )
        with self.owner_lock(owner):
            with self._lock:
                self._contexts[owner] = context

        logger.info("ScenarioRegistry: Registered %s scenarios for %s.", len(context.scenarios), owner)
        return context

    def get(self, owner: str) -> Optional[AutomationContext]:
        with self._lock:
            return self._contexts.get(owner)

    def update(self, owner: str, /, **fields) -> Optional[AutomationContext]:
        """
        Merge fields into an existing context.

        A missing context is a silent no-op and returns None.
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update context fields: {', '.join(sorted(unknown))}")

        with self.owner_lock(owner):
            context = self.get(owner)
            if context is None:
                logger.info("ScenarioRegistry: No context for %s, update ignored.", owner)
                return None

            for name, value in fields.items():
                if name == "scenarios":
                    value = list(value)
                setattr(context, name, value)
            context.sort_scenarios()

        logger.info("ScenarioRegistry: Updated %s for %s.", ", ".join(sorted(fields)), owner)
        return context

    def update_scenarios(self, owner: str, scenarios: Iterable[AutomationScenario]) -> Optional[AutomationContext]:
        return self.update(owner, scenarios=scenarios)

    def add_scenario(self, owner: str, scenario: AutomationScenario) -> AutomationContext:
        with self.owner_lock(owner):
            context = self.get(owner)
            if context is None:
                raise ContextNotFoundError(f"No automation context registered for {owner}")
            if any(existing.id == scenario.id for existing in context.scenarios):
                raise ValidationError(f"Scenario {scenario.id} already registered for {owner}")
            context.scenarios.append(scenario)
            context.sort_scenarios()

        logger.info("ScenarioRegistry: Added scenario %s (%s) for %s.", scenario.id, scenario.type.value, owner)
        return context

    def unregister(self, owner: str) -> bool:
        with self.owner_lock(owner):
            with self._lock:
                removed = self._contexts.pop(owner, None)

        if removed is not None:
            logger.info("ScenarioRegistry: Unregistered %s.", owner)
        return removed is not None

    def owners(self) -> List[str]:
        with self._lock:
            return list(self._contexts)
