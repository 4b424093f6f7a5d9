import logging
import time
from typing import Callable, Dict, Tuple

logger = logging.getLogger(__name__)


class CooldownTracker:
    """
    Per-command, per-user cooldowns.

    Each (command, user) pair holds a single expiry timestamp. Expired entries
    are pruned lazily once the map grows past ``prune_threshold``, so memory is
    bounded by the number of pairs that are still cooling down.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, prune_threshold: int = 1024):
        self._clock = clock
        self._prune_threshold = prune_threshold
        self._expiries: Dict[Tuple[str, str], float] = {}

    def check_and_record(self, command_name: str, user_id: str, cooldown_seconds: float) -> bool:
        """
        Returns True and starts a new cooldown if the user may run the command now.
        Returns False, leaving the pending expiry untouched, while still cooling down.
        """
        now = self._clock()
        key = (command_name, user_id)
        expires_at = self._expiries.get(key)
        if expires_at is not None and now < expires_at:
            return False

        self._expiries[key] = now + cooldown_seconds
        if len(self._expiries) > self._prune_threshold:
            self._prune(now)
        return True

    def remaining(self, command_name: str, user_id: str) -> float:
        """Seconds left before the user may run the command again (0 if ready)."""
        expires_at = self._expiries.get((command_name, user_id))
        if expires_at is None:
            return 0.0
        return max(0.0, expires_at - self._clock())

    def clear(self) -> None:
        self._expiries.clear()

    def __len__(self) -> int:
        return len(self._expiries)

    def _prune(self, now: float) -> None:
        expired = [key for key, expires_at in self._expiries.items() if expires_at <= now]
        for key in expired:
            del self._expiries[key]
        if expired:
            logger.debug(f"Pruned {len(expired)} expired cooldown entries.")
