"""
Emergency stop switch, global or per owner.
"""

import threading
from typing import Optional, Set

from .logging_config import setup_logger

logger = setup_logger()


class EmergencyStop:
    """While engaged for an owner (or globally) every scenario of that owner is skipped."""

    def __init__(self):
        self._global = False
        self._owners: Set[str] = set()
        self._lock = threading.Lock()

    def engage(self, owner: Optional[str] = None) -> None:
        with self._lock:
            if owner is None:
                self._global = True
            else:
                self._owners.add(owner)
        logger.warning("EmergencyStop: Engaged for %s.", owner or "all owners")

    def release(self, owner: Optional[str] = None) -> None:
        with self._lock:
            if owner is None:
                self._global = False
                self._owners.clear()
            else:
                self._owners.discard(owner)
        logger.warning("EmergencyStop: Released for %s.", owner or "all owners")

    def is_engaged(self, owner: str) -> bool:
        with self._lock:
            return self._global or owner in self._owners
