"""
Per-source pacing and quota cooldown.

Timing policy is kept out of the adapters so it can be tuned per source and
replaced in tests. Each run assumes exclusive use of its quota: there is no
quota shared across runs.
"""
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class RatePolicy:
    unit_delay_seconds: float = 0.0      # Between categories/pages
    item_delay_seconds: float = 0.0      # Between items within a unit
    cooldown_seconds: float = 60.0       # After a 429
    max_rate_limit_hits: int = 2         # Abandon the source after this many 429s

    @classmethod
    def from_config(cls, config: Dict[str, Any], defaults: "RatePolicy") -> "RatePolicy":
        return cls(
            unit_delay_seconds=float(config.get("unit_delay_seconds", defaults.unit_delay_seconds)),
            item_delay_seconds=float(config.get("item_delay_seconds", defaults.item_delay_seconds)),
            cooldown_seconds=float(config.get("cooldown_seconds", defaults.cooldown_seconds)),
            max_rate_limit_hits=int(config.get("max_rate_limit_hits", defaults.max_rate_limit_hits)),
        )


DEFAULT_POLICIES: Dict[str, RatePolicy] = {
    "newsapi": RatePolicy(unit_delay_seconds=1.1),
    "gnews": RatePolicy(unit_delay_seconds=1.1),
    "cisa_kev": RatePolicy(),
    "nvd": RatePolicy(item_delay_seconds=0.15),
}


class RateLimiter:
    """Fixed-delay pacing with a cooldown on quota exhaustion."""

    def __init__(
        self,
        policies: Optional[Dict[str, RatePolicy]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.policies = dict(DEFAULT_POLICIES)
        if policies:
            self.policies.update(policies)
        self._sleep = sleep
        self._rate_limit_hits: Dict[str, int] = defaultdict(int)

    def policy_for(self, source_id: str) -> RatePolicy:
        return self.policies.get(source_id) or RatePolicy()

    def start_run(self, source_id: str) -> None:
        """Reset per-run counters for a source."""
        self._rate_limit_hits[source_id] = 0

    def wait_before_next(self, source_id: str) -> None:
        """Sleep the fixed delay that separates two units of work."""
        delay = self.policy_for(source_id).unit_delay_seconds
        if delay > 0:
            self._sleep(delay)

    def pause_between_items(self, source_id: str) -> None:
        delay = self.policy_for(source_id).item_delay_seconds
        if delay > 0:
            self._sleep(delay)

    def cooldown(self, source_id: str, retry_after: Optional[float] = None) -> bool:
        """
        Apply the quota cooldown after a 429.

        The failed unit is not retried; the caller moves on to the next one.

        Args:
            source_id: Source that was rate limited
            retry_after: Upstream Retry-After hint, logged only

        Returns:
            True if the source has exhausted its rate-limit allowance for
            this run and should be abandoned (no cooldown is slept then)
        """
        policy = self.policy_for(source_id)
        self._rate_limit_hits[source_id] += 1
        hits = self._rate_limit_hits[source_id]

        if hits >= policy.max_rate_limit_hits:
            logger.warning("%s rate limited %d times, abandoning source for this run", source_id, hits)
            return True

        if retry_after is not None:
            logger.warning(
                "%s rate limited (Retry-After %.0fs), cooling down %.0fs",
                source_id, retry_after, policy.cooldown_seconds
            )
        else:
            logger.warning("%s rate limited, cooling down %.0fs", source_id, policy.cooldown_seconds)
        self._sleep(policy.cooldown_seconds)
        return False

    def rate_limit_hits(self, source_id: str) -> int:
        return self._rate_limit_hits[source_id]
