"""Plan Assist: cached, context-aware action planning for Home Assistant."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .capabilities.environment import EnvironmentSnapshotCapability
from .capabilities.intent_resolution import IntentResolutionCapability
from .capabilities.plan_executor import PlanExecutorCapability
from .capabilities.plan_generation import PlanGenerationCapability
from .capabilities.plan_resolver import PlanResolverCapability
from .config import config_from_env, validate_config
from .const import (
    CONF_CACHE_MAX_SIZE,
    CONF_CACHE_STRATEGY,
    CONF_CACHE_TTL,
    CONF_HA_TIMEOUT,
    CONF_HA_TOKEN,
    CONF_HA_URL,
    DOMAIN,
)
from .demo import DemoHub, RuleIntentResolver, demo_clock
from .errors import ConfigError
from .ha_client import HomeAssistantClient
from .pipeline import PlanPipeline
from .plan_cache import PlanCache
from .prompt_executor import PromptExecutor

_LOGGER = logging.getLogger(__name__)

__all__ = ["DOMAIN", "PlanPipeline", "config_from_env", "create_pipeline"]


def create_pipeline(
    config: Optional[Mapping[str, Any]] = None,
    *,
    hub=None,
    simulate: bool = False,
    demo: bool = False,
) -> PlanPipeline:
    """Wire a pipeline from a config mapping.

    The hub defaults to a HomeAssistantClient built from ha_url/ha_token.
    With simulate=True the hub is still read for snapshots but plans are
    not dispatched. demo=True runs against an in-memory bathroom with
    keyword intents and fallback plans only.
    """
    effective_config = validate_config(config)

    if demo:
        return _create_demo_pipeline(effective_config, hub or DemoHub(), simulate)

    if hub is None:
        if not (effective_config.get(CONF_HA_URL) and effective_config.get(CONF_HA_TOKEN)):
            raise ConfigError("ha_url and ha_token are required when no hub is given")
        hub = HomeAssistantClient(
            effective_config[CONF_HA_URL],
            effective_config[CONF_HA_TOKEN],
            timeout=effective_config[CONF_HA_TIMEOUT],
        )

    cache = PlanCache(
        strategy=effective_config[CONF_CACHE_STRATEGY],
        ttl=effective_config[CONF_CACHE_TTL],
        max_size=effective_config[CONF_CACHE_MAX_SIZE],
    )

    # One executor (and Ollama client) shared by both LLM-backed capabilities
    executor = PromptExecutor(effective_config)
    generator = PlanGenerationCapability(hub, effective_config, executor)

    pipeline = PlanPipeline(
        cache=cache,
        intent_resolver=IntentResolutionCapability(hub, effective_config, executor),
        snapshot_provider=EnvironmentSnapshotCapability(hub, effective_config),
        resolver=PlanResolverCapability(cache, generator, effective_config),
        executor=PlanExecutorCapability(None if simulate else hub, effective_config),
        hub=hub,
        llm_client=executor.client,
    )
    _LOGGER.info(
        "[PlanAssist] Pipeline ready (cache=%s, simulate=%s)", cache.strategy.value, simulate
    )
    return pipeline


def _create_demo_pipeline(effective_config, hub, simulate: bool) -> PlanPipeline:
    cache = PlanCache(
        strategy=effective_config[CONF_CACHE_STRATEGY],
        ttl=effective_config[CONF_CACHE_TTL],
        max_size=effective_config[CONF_CACHE_MAX_SIZE],
    )
    pipeline = PlanPipeline(
        cache=cache,
        intent_resolver=RuleIntentResolver(hub, effective_config),
        snapshot_provider=EnvironmentSnapshotCapability(hub, effective_config, clock=demo_clock),
        resolver=PlanResolverCapability(cache, None, effective_config),
        executor=PlanExecutorCapability(None if simulate else hub, effective_config),
        hub=hub,
    )
    _LOGGER.info("[PlanAssist] Demo pipeline ready (cache=%s)", cache.strategy.value)
    return pipeline
