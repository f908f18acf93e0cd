"""
AutomationManager - runs automation cycles for every registered owner on a schedule.
"""

import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Set

from .config_loader import EngineConfig
from .engine import AutomationEngine
from .logging_config import setup_logger
from .notifications import post_error_notification

logger = setup_logger()


class AutomationManager:
    """
    Schedules one cycle per owner per CYCLE_INTERVAL.

    Owners wait in a priority queue keyed by their next run time. Due owners
    are handed to a worker pool; an owner whose cycle is still running is
    never submitted twice.
    """

    def __init__(
        self,
        engine: AutomationEngine,
        config: EngineConfig,
        notify: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.engine = engine
        self.config = config
        self.notify = notify
        self.clock = clock
        self.cycle_interval = config.CYCLE_INTERVAL
        self.retry_delay = config.RETRY_DELAY
        self.update_queue = queue.PriorityQueue()
        self.condition = threading.Condition()
        self.executor = ThreadPoolExecutor(max_workers=config.MAX_WORKERS)
        self.running = True
        self.queued_owners: Set[str] = set()
        self.processing_owners: Set[str] = set()

    def schedule(self, owner: str, run_at: Optional[float] = None) -> bool:
        """Queue an owner's next cycle. Returns False when one is already queued."""
        run_at = self.clock() if run_at is None else run_at
        with self.condition:
            if owner in self.queued_owners:
                return False
            self.queued_owners.add(owner)
            self.update_queue.put((run_at, owner))
            self.condition.notify()

        logger.debug(
            "AutomationManager: %s scheduled for %s", owner, time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(run_at))
        )
        return True

    def schedule_registered_owners(self) -> None:
        for owner in self.engine.owners():
            self.schedule(owner)

    def start(self) -> None:
        """Dispatch loop. Blocks until stop() is called."""
        self.schedule_registered_owners()
        logger.info("AutomationManager: Started with cycle interval %ss.", self.cycle_interval)

        while self.running:
            with self.condition:
                while self.running and self.update_queue.empty():
                    logger.info("AutomationManager: Waiting for queue to be non-empty.")
                    self.condition.wait()

                if not self.running:
                    break

                run_at, owner = self.update_queue.get()
                current_time = self.clock()
                if run_at > current_time:
                    self.update_queue.put((run_at, owner))
                    self.condition.wait(run_at - current_time)
                    continue

                self.queued_owners.discard(owner)
                if owner in self.processing_owners:
                    continue

                self.processing_owners.add(owner)

            try:
                self.executor.submit(self._process_owner, owner)
            except RuntimeError:
                # executor already shut down by stop()
                with self.condition:
                    self.processing_owners.discard(owner)
                break

        logger.info("AutomationManager: Dispatch loop stopped.")

    def _process_owner(self, owner: str) -> None:
        try:
            self.run_cycle(owner)
        finally:
            with self.condition:
                self.processing_owners.discard(owner)

    def run_cycle(self, owner: str) -> None:
        """Run one cycle for an owner and schedule the next one."""
        try:
            result = self.engine.execute_automation_tasks(owner)
            logger.info("AutomationManager: Cycle for %s finished: %s", owner, result.message)

            if self.engine.get_context(owner) is None:
                logger.info("AutomationManager: %s no longer registered, not rescheduling.", owner)
                return

            self.schedule(owner, self.clock() + self.cycle_interval)

        except Exception as ex:
            logger.error("AutomationManager: Exception running cycle for %s: %s", owner, ex, exc_info=True)
            if self.notify:
                try:
                    post_error_notification(f"Automation cycle for `{owner}` failed: {ex}", self.config)
                except Exception as notify_ex:
                    logger.error("AutomationManager: Failed to send error notification: %s", notify_ex)

            logger.info("AutomationManager: Scheduling retry for %s in %s seconds", owner, self.retry_delay)
            self.schedule(owner, self.clock() + self.retry_delay)

    def stop(self) -> None:
        self.running = False
        with self.condition:
            self.condition.notify_all()
        self.executor.shutdown(wait=True)
