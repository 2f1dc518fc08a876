"""Request orchestration: intent -> snapshot -> plan -> execution."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from .capabilities.environment import context_summary
from .const import FALLBACK_INTENT_CONFIDENCE
from .models import (
    DeviceRecord,
    EnvironmentSnapshot,
    ExecutionStatus,
    Intent,
    IntentLabel,
    Plan,
    TimeOfDay,
    utc_now_iso,
)
from .plan_cache import PlanCache
from .stage_result import PipelineResult
from .utils.plan_refinement import plan_summary, refine_plan, validate_plan

_LOGGER = logging.getLogger(__name__)


class PipelineStage(str, enum.Enum):
    START = "start"
    INTENT_RESOLVED = "intent_resolved"
    SNAPSHOT_TAKEN = "snapshot_taken"
    PLAN_RESOLVED = "plan_resolved"
    EXECUTED = "executed"
    DONE = "done"


@dataclass
class PipelineStats:
    total_requests: int = 0
    success_count: int = 0
    error_count: int = 0
    cache_hits: int = 0

    @property
    def success_rate(self) -> float:
        """Successful requests as a percentage, two decimals."""
        if not self.total_requests:
            return 0.0
        return round(self.success_count / self.total_requests * 100, 2)


class PlanPipeline:
    """Runs one command through the four stages and feeds the outcome back to the cache."""

    def __init__(
        self,
        cache: PlanCache,
        intent_resolver,
        snapshot_provider,
        resolver,
        executor,
        hub=None,
        llm_client=None,
    ):
        self.cache = cache
        self.intent_resolver = intent_resolver
        self.snapshot_provider = snapshot_provider
        self.resolver = resolver
        self.executor = executor
        self.hub = hub
        self.llm_client = llm_client
        self._stats = PipelineStats()

    @property
    def stats(self) -> PipelineStats:
        return replace(self._stats)

    def reset_stats(self) -> None:
        self._stats = PipelineStats()

    async def process(self, text: str) -> PipelineResult:
        _LOGGER.info("[Pipeline] Received command: %s", text)
        self._stats.total_requests += 1
        stage = PipelineStage.START
        try:
            intent = await self._resolve_intent(text)
            stage = PipelineStage.INTENT_RESOLVED

            snapshot = await self.snapshot_provider.take_snapshot()
            stage = PipelineStage.SNAPSHOT_TAKEN
            _LOGGER.debug("[Pipeline] Snapshot: %s", context_summary(snapshot))

            plan, cache_key, cache_hit = await self._resolve_plan(intent, snapshot)
            stage = PipelineStage.PLAN_RESOLVED

            execution = await self.executor.execute(plan)
            stage = PipelineStage.EXECUTED
        except Exception:
            self._stats.error_count += 1
            _LOGGER.exception("[Pipeline] Request failed after stage %s", stage.value)
            raise

        succeeded = execution.status == ExecutionStatus.SUCCESS
        if succeeded:
            self._stats.success_count += 1
        else:
            self._stats.error_count += 1

        if cache_hit and cache_key:
            self.cache.update_success_rate(cache_key, succeeded)

        _LOGGER.info(
            "[Pipeline] Done: intent=%s plan=%s status=%s cache_hit=%s",
            intent.label.value,
            plan.plan_id,
            execution.status.value,
            cache_hit,
        )
        return PipelineResult(
            intent=intent,
            snapshot=snapshot,
            plan=plan,
            execution=execution,
            cache_hit=cache_hit,
            cache_key=cache_key,
            stage=PipelineStage.DONE,
        )

    async def _resolve_intent(self, text: str) -> Intent:
        try:
            intent = await self.intent_resolver.resolve(text)
        except Exception as err:
            _LOGGER.warning("[Pipeline] Intent resolution failed (%s), assuming get-status", err)
            return Intent(
                label=IntentLabel.GET_STATUS,
                confidence=FALLBACK_INTENT_CONFIDENCE,
                raw_input=text,
            )
        _LOGGER.info(
            "[Pipeline] Intent: %s (confidence: %.2f)", intent.label.value, intent.confidence
        )
        return intent

    async def _resolve_plan(
        self, intent: Intent, snapshot: EnvironmentSnapshot
    ) -> Tuple[Plan, Optional[str], bool]:
        """Returns (refined plan, cache key, cache hit)."""
        query = self.cache.query(intent, snapshot)
        if query.hit and query.entry is not None:
            entry = query.entry
            if validate_plan(entry.plan, snapshot):
                self._stats.cache_hits += 1
                _LOGGER.info("[Pipeline] Cache hit: %s", entry.cache_key)
                return refine_plan(entry.plan, snapshot), entry.cache_key, True
            _LOGGER.info(
                "[Pipeline] Cached plan %s is stale, regenerating", entry.plan.plan_id
            )
        else:
            _LOGGER.debug("[Pipeline] Cache miss: %s", query.reason)

        plan = await self.resolver.generate_plan(intent, snapshot)
        refined = refine_plan(plan, snapshot)
        cache_key = self.cache.store(intent, refined, snapshot) if refined.cacheable else None
        _LOGGER.info("[Pipeline] Generated %s", plan_summary(refined))
        return refined, cache_key, False

    # --- supplementary operations ---

    async def _llm_reachable(self) -> bool:
        if self.llm_client is None:
            return False
        try:
            return bool(await self.llm_client.test_connection())
        except Exception as err:
            _LOGGER.warning("[Pipeline] LLM health check failed: %s", err)
            return False

    async def _hub_reachable(self) -> bool:
        if self.hub is None:
            return False
        try:
            return bool(await self.hub.health_check())
        except Exception as err:
            _LOGGER.warning("[Pipeline] Hub health check failed: %s", err)
            return False

    async def get_system_status(self) -> Dict[str, Any]:
        stats = self.stats
        return {
            "components": {
                "llm": await self._llm_reachable(),
                "hub": await self._hub_reachable(),
                "cache": self.cache is not None,
            },
            "stats": {
                "total_requests": stats.total_requests,
                "success_rate": stats.success_rate,
                "cache_hits": stats.cache_hits,
            },
            "timestamp": utc_now_iso(),
        }

    async def health_check(self) -> bool:
        """False if any configured component is unhealthy."""
        if self.llm_client is not None and not await self._llm_reachable():
            return False
        if self.hub is not None and not await self._hub_reachable():
            return False
        return self.cache is not None

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        self.cache.clear()
        _LOGGER.info("[Pipeline] Cache cleared")

    async def list_devices(self) -> List[DeviceRecord]:
        if self.hub is None:
            _LOGGER.info("[Pipeline] No device hub configured")
            return []
        return await self.hub.list_device_states()

    async def generate_suggestions(self) -> List[str]:
        snapshot = await self.snapshot_provider.take_snapshot()
        return suggestions_for(snapshot)


def suggestions_for(snapshot: EnvironmentSnapshot) -> List[str]:
    """Proactive hints derived from the time of day and home state."""
    suggestions: List[str] = []

    if snapshot.time_of_day == TimeOfDay.MORNING and not snapshot.presence:
        suggestions.append("Nobody seems to be up yet. Should I prepare the morning routine?")
    if snapshot.time_of_day == TimeOfDay.NIGHT and snapshot.presence:
        suggestions.append("It is getting late. Should I get the house ready for sleep?")

    if snapshot.temperature is not None:
        if snapshot.temperature < 20:
            suggestions.append("It is cold inside. Should I turn on the heating?")
        elif snapshot.temperature > 26:
            suggestions.append("It is warm inside. Should I turn on the air conditioning?")

    active = sum(1 for d in snapshot.devices if d.state == "on")
    if active > 5 and not snapshot.presence:
        suggestions.append(
            "Nobody is home but several devices are still on. Switch to away mode?"
        )

    return suggestions or ["Everything looks fine. What can I do for you?"]
