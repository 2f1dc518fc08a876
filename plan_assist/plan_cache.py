"""In-memory plan cache keyed by intent and environment fingerprint.

Entries live for the process lifetime only. Lookups can fall back to a
fuzzy match on the time-of-day bucket or a proven success rate, stale entries
expire lazily on read, and capacity pressure evicts the single entry with the
lowest usage x success / staleness score.
"""

from __future__ import annotations

import enum
import hashlib
import json
import logging
import threading
import time
from collections import Counter
from typing import Any, Callable, Dict, List, Optional

from .const import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL,
    FAILURE_PENALTY,
    FUZZY_SUCCESS_RATE,
    MIN_SUCCESS_RATE,
    SUCCESS_REWARD,
)
from .models import (
    CacheEntry,
    CacheQueryResult,
    EnvironmentSnapshot,
    Intent,
    IntentLabel,
    Plan,
)

_LOGGER = logging.getLogger(__name__)


class CacheStrategy(str, enum.Enum):
    DISABLED = "disabled"
    SIMPLE = "simple"
    CONTEXT_AWARE = "context-aware"


def _round(value: Optional[float]) -> float:
    return round(float(value or 0), 1)


def compute_fingerprint(snapshot: EnvironmentSnapshot) -> str:
    """Digest of the reduced snapshot.

    Devices are reduced to (entity_id, state) and sorted, sensors rounded to
    one decimal, so ordering and sensor noise do not change the result.
    """
    reduced = {
        "time_of_day": snapshot.time_of_day.value,
        "presence": snapshot.presence,
        "temperature": _round(snapshot.temperature),
        "humidity": _round(snapshot.humidity),
        "devices": sorted(
            [d.entity_id, d.state] for d in snapshot.devices
        ),
    }
    canonical = json.dumps(reduced, sort_keys=True, separators=(",", ":"))
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


class PlanCache:
    """Thread-safe plan cache shared by all in-flight requests."""

    def __init__(
        self,
        strategy: CacheStrategy | str = CacheStrategy.CONTEXT_AWARE,
        ttl: float = DEFAULT_CACHE_TTL,
        max_size: int = DEFAULT_CACHE_MAX_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.strategy = CacheStrategy(strategy)
        self.ttl = float(ttl)
        self.max_size = int(max_size)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    # --- key derivation ---

    def cache_key(self, intent: Intent, snapshot: Optional[EnvironmentSnapshot] = None) -> str:
        label = intent.label.value
        if snapshot is None or self.strategy != CacheStrategy.CONTEXT_AWARE:
            return f"simple:{label}"
        return f"context:{label}:{compute_fingerprint(snapshot)}"

    # --- read path ---

    def query(
        self, intent: Intent, snapshot: Optional[EnvironmentSnapshot] = None
    ) -> CacheQueryResult:
        if self.strategy == CacheStrategy.DISABLED:
            return CacheQueryResult(hit=False, reason="caching disabled")

        key = self.cache_key(intent, snapshot)
        with self._lock:
            entry = self._entries.get(key)
            if (
                entry is None
                and self.strategy == CacheStrategy.CONTEXT_AWARE
                and snapshot is not None
            ):
                entry = self._find_fuzzy_match(intent, snapshot)
                if entry is not None:
                    _LOGGER.debug(
                        "[PlanCache] Fuzzy match for %s -> %s", key, entry.cache_key
                    )

            if entry is None:
                return CacheQueryResult(hit=False, reason="no matching entry")

            now = self._clock()
            if self._is_expired(entry, now):
                del self._entries[entry.cache_key]
                _LOGGER.debug("[PlanCache] Expired: %s", entry.cache_key)
                return CacheQueryResult(hit=False, reason="expired")

            entry.usage_count += 1
            entry.last_used = now
            return CacheQueryResult(hit=True, entry=entry)

    def _find_fuzzy_match(
        self, intent: Intent, snapshot: EnvironmentSnapshot
    ) -> Optional[CacheEntry]:
        # Caller holds the lock.
        candidates = [
            entry
            for entry in self._entries.values()
            if entry.intent == intent.label
            and (
                entry.time_of_day == snapshot.time_of_day
                or entry.success_rate > FUZZY_SUCCESS_RATE
            )
        ]
        if not candidates:
            return None
        # Most reliable first, then most recently and most often used.
        candidates.sort(
            key=lambda e: (-e.success_rate, -e.last_used, -e.usage_count, e.cache_key)
        )
        return candidates[0]

    def find_candidates(self, intent_label: IntentLabel) -> List[CacheEntry]:
        """Non-expired entries for an intent, without touching usage stats."""
        now = self._clock()
        with self._lock:
            return [
                entry
                for entry in self._entries.values()
                if entry.intent == intent_label and not self._is_expired(entry, now)
            ]

    def get(self, key: str) -> Optional[CacheEntry]:
        """Entry at key without touching usage stats; expired entries are dropped."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                return None
            return entry

    # --- write path ---

    def store(
        self,
        intent: Intent,
        plan: Plan,
        snapshot: Optional[EnvironmentSnapshot] = None,
    ) -> Optional[str]:
        """Insert a plan; returns the cache key or None if nothing was stored."""
        if self.strategy == CacheStrategy.DISABLED or not plan.cacheable:
            return None

        key = self.cache_key(intent, snapshot)
        fingerprint = compute_fingerprint(snapshot) if snapshot is not None else "simple"
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_least_useful()
            self._entries[key] = CacheEntry(
                cache_key=key,
                intent=intent.label,
                plan=plan.copy(),
                fingerprint=fingerprint,
                time_of_day=snapshot.time_of_day if snapshot is not None else None,
                last_used=self._clock(),
                usage_count=1,
                success_rate=1.0,
            )
        _LOGGER.debug("[PlanCache] Stored %s (plan=%s)", key, plan.plan_id)
        return key

    def _evict_least_useful(self) -> None:
        # Caller holds the lock.
        if not self._entries:
            return
        now = self._clock()

        def score(entry: CacheEntry) -> float:
            idle_ms = max(0.0, (now - entry.last_used) * 1000)
            return (entry.usage_count * entry.success_rate) / (1 + idle_ms)

        victim = min(self._entries.values(), key=lambda e: (score(e), e.last_used))
        del self._entries[victim.cache_key]
        _LOGGER.debug(
            "[PlanCache] Evicted %s (score=%.6f)", victim.cache_key, score(victim)
        )

    def update_success_rate(self, cache_key: str, success: bool) -> Optional[float]:
        """Feed an execution outcome back; collapsed entries are dropped."""
        with self._lock:
            entry = self._entries.get(cache_key)
            if entry is None:
                return None
            if success:
                entry.success_rate = min(1.0, entry.success_rate + SUCCESS_REWARD)
            else:
                entry.success_rate = max(0.0, entry.success_rate - FAILURE_PENALTY)
            # Keep repeated +0.1/-0.2 steps on the decimal grid for the 0.3 cutoff.
            entry.success_rate = round(entry.success_rate, 6)
            if entry.success_rate < MIN_SUCCESS_RATE:
                del self._entries[cache_key]
                _LOGGER.info(
                    "[PlanCache] Dropped %s after success rate fell to %.2f",
                    cache_key,
                    entry.success_rate,
                )
            return entry.success_rate

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # --- introspection ---

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.last_used > self.ttl

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            entries = list(self._entries.values())
        by_intent = Counter(entry.intent.value for entry in entries)
        return {
            "total": len(entries),
            "max_size": self.max_size,
            "strategy": self.strategy.value,
            "average_success_rate": (
                sum(e.success_rate for e in entries) / len(entries) if entries else 0
            ),
            "top_intent": by_intent.most_common(1)[0][0] if by_intent else None,
            "by_intent": dict(by_intent),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
