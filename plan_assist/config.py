"""Configuration schema and environment loader."""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping, Optional

import voluptuous as vol

from .const import (
    CONF_CACHE_MAX_SIZE,
    CONF_CACHE_STRATEGY,
    CONF_CACHE_TTL,
    CONF_HA_TIMEOUT,
    CONF_HA_TOKEN,
    CONF_HA_URL,
    CONF_LLM_TEMPERATURE,
    CONF_OLLAMA_IP,
    CONF_OLLAMA_MODEL,
    CONF_OLLAMA_PORT,
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_STRATEGY,
    DEFAULT_CACHE_TTL,
    DEFAULT_HA_TIMEOUT,
    DEFAULT_LLM_TEMPERATURE,
    DEFAULT_OLLAMA_IP,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_PORT,
)
from .errors import ConfigError

_LOGGER = logging.getLogger(__name__)

# Legacy spellings accepted for the cache strategy
STRATEGY_ALIASES = {
    "none": "disabled",
    "off": "disabled",
    "context_aware": "context-aware",
    "context": "context-aware",
}


def _strategy(value: Any) -> str:
    text = str(value).strip().lower()
    text = STRATEGY_ALIASES.get(text, text)
    if text not in ("disabled", "simple", "context-aware"):
        raise vol.Invalid(f"unknown cache strategy: {value}")
    return text


CONFIG_SCHEMA = vol.Schema(
    {
        # Inference (Ollama)
        vol.Optional(CONF_OLLAMA_IP, default=DEFAULT_OLLAMA_IP): str,
        vol.Optional(CONF_OLLAMA_PORT, default=DEFAULT_OLLAMA_PORT): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=65535)
        ),
        vol.Optional(CONF_OLLAMA_MODEL, default=DEFAULT_OLLAMA_MODEL): str,
        vol.Optional(CONF_LLM_TEMPERATURE, default=DEFAULT_LLM_TEMPERATURE): vol.All(
            vol.Coerce(float), vol.Range(min=0.0, max=2.0)
        ),
        # Home Assistant (optional: without it the pipeline runs in simulate mode)
        vol.Optional(CONF_HA_URL): vol.Any(None, str),
        vol.Optional(CONF_HA_TOKEN): vol.Any(None, str),
        vol.Optional(CONF_HA_TIMEOUT, default=DEFAULT_HA_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=1)
        ),
        # Plan cache
        vol.Optional(CONF_CACHE_STRATEGY, default=DEFAULT_CACHE_STRATEGY): _strategy,
        vol.Optional(CONF_CACHE_TTL, default=DEFAULT_CACHE_TTL): vol.All(
            vol.Coerce(int), vol.Range(min=1)
        ),
        vol.Optional(CONF_CACHE_MAX_SIZE, default=DEFAULT_CACHE_MAX_SIZE): vol.All(
            vol.Coerce(int), vol.Range(min=1)
        ),
    },
    extra=vol.REMOVE_EXTRA,
)


def validate_config(raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Apply defaults and validate a configuration mapping."""
    try:
        return CONFIG_SCHEMA(dict(raw or {}))
    except vol.Invalid as err:
        raise ConfigError(str(err)) from err


# Environment variable -> config key
ENV_KEYS = {
    "PLAN_ASSIST_OLLAMA_IP": CONF_OLLAMA_IP,
    "PLAN_ASSIST_OLLAMA_PORT": CONF_OLLAMA_PORT,
    "PLAN_ASSIST_OLLAMA_MODEL": CONF_OLLAMA_MODEL,
    "PLAN_ASSIST_LLM_TEMPERATURE": CONF_LLM_TEMPERATURE,
    "HOME_ASSISTANT_URL": CONF_HA_URL,
    "HOME_ASSISTANT_TOKEN": CONF_HA_TOKEN,
    "PLAN_ASSIST_HA_TIMEOUT": CONF_HA_TIMEOUT,
    "CACHE_STRATEGY": CONF_CACHE_STRATEGY,
    "CACHE_TTL": CONF_CACHE_TTL,
    "CACHE_MAX_SIZE": CONF_CACHE_MAX_SIZE,
}


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Build a validated config from environment variables."""
    env = os.environ if environ is None else environ
    raw = {key: env[name] for name, key in ENV_KEYS.items() if env.get(name)}
    _LOGGER.debug("[Config] Loaded keys from environment: %s", sorted(raw))
    return validate_config(raw)
