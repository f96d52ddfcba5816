"""Rate limiting for manual refresh requests."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import MANUAL_REFRESH_INTERVAL

logger = logging.getLogger(__name__)


@dataclass
class RefreshState:
    """Time of the last accepted refresh (Unix seconds), held in memory only."""
    last_refresh: Optional[float] = None


class RefreshGuard:
    """Allows at most one refresh per ``min_interval`` seconds."""

    def __init__(
        self,
        min_interval: float = MANUAL_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.time,
        state: Optional[RefreshState] = None,
    ):
        self.min_interval = min_interval
        self.clock = clock
        self.state = state if state is not None else RefreshState()

    def seconds_until_allowed(self) -> float:
        """Seconds left before the next refresh is accepted (0 if allowed now)."""
        last = self.state.last_refresh
        if last is None:
            return 0.0
        return max(0.0, self.min_interval - (self.clock() - last))

    def try_acquire(self) -> bool:
        """Record a refresh and return True, or return False if it is too soon."""
        now = self.clock()
        last = self.state.last_refresh
        if last is not None and now - last < self.min_interval:
            logger.info(f"Refresh requested too soon ({int(now - last)}s), ignoring")
            return False

        self.state.last_refresh = now
        return True


def request_refresh(guard: RefreshGuard, action: Callable[[], None]) -> bool:
    """
    Run ``action`` if the guard allows a refresh.

    Returns:
        True if the action ran.
    """
    if not guard.try_acquire():
        return False
    action()
    return True
