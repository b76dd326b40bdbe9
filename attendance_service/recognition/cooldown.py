"""
Cooldown module.

Per-identity rate limiting of attendance events. A name is accepted at
most once per cooldown window.
"""

import math
import threading
from typing import Dict, Optional

from ..logging_config import get_logger
from ..models import UNKNOWN_LABEL

logger = get_logger(__name__)


class CooldownGate:
    """
    Atomic check-and-update of the last accepted time per name.
    
    Each name has its own lock, so decisions for different names never
    wait on each other.
    """
    
    def __init__(self, cooldown_seconds: float):
        """
        Initialize gate.
        
        Args:
            cooldown_seconds: Minimum time between two accepts of one name
        """
        self.cooldown_seconds = cooldown_seconds
        self._last_accepted: Dict[str, float] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_lock = threading.Lock()
    
    def _lock_for(self, name: str) -> threading.Lock:
        lock = self._locks.get(name)
        if lock is None:
            with self._locks_lock:
                lock = self._locks.get(name)
                if lock is None:
                    lock = threading.Lock()
                    self._locks[name] = lock
        return lock
    
    def try_accept(self, name: str, now: float) -> bool:
        """
        Accept `name` at time `now` if its cooldown has elapsed.
        
        A name never seen before is always accepted. "Unknown" is never
        accepted and never recorded.
        
        Args:
            name: Resolved identity name
            now: POSIX timestamp in seconds
        
        Returns:
            True if accepted (state updated), False if suppressed
        """
        if name == UNKNOWN_LABEL:
            return False
        
        with self._lock_for(name):
            last = self._last_accepted.get(name, -math.inf)
            elapsed = now - last
            
            if elapsed < self.cooldown_seconds:
                logger.debug(
                    f'Suppressed {name} (last accepted {elapsed:.1f}s ago, '
                    f'cooldown {self.cooldown_seconds:.0f}s)'
                )
                return False
            
            self._last_accepted[name] = now
        
        logger.debug(f'Cooldown passed for {name}')
        return True
    
    def last_accepted(self, name: str) -> Optional[float]:
        """Last accepted timestamp for name, or None."""
        with self._lock_for(name):
            return self._last_accepted.get(name)
