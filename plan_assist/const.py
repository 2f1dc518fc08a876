"""Constants for the Plan Assist pipeline."""

DOMAIN = "plan_assist"

# Inference: local Ollama/LLM for intent detection and planning
CONF_OLLAMA_IP = "ollama_ip"
CONF_OLLAMA_PORT = "ollama_port"
CONF_OLLAMA_MODEL = "ollama_model"
CONF_LLM_TEMPERATURE = "llm_temperature"

# Device controller: Home Assistant REST API
CONF_HA_URL = "ha_url"
CONF_HA_TOKEN = "ha_token"
CONF_HA_TIMEOUT = "ha_timeout"

# Plan cache
CONF_CACHE_STRATEGY = "cache_strategy"
CONF_CACHE_TTL = "cache_ttl"
CONF_CACHE_MAX_SIZE = "cache_max_size"

DEFAULT_OLLAMA_IP = "127.0.0.1"
DEFAULT_OLLAMA_PORT = 11434
DEFAULT_OLLAMA_MODEL = "qwen3:4b-instruct"
DEFAULT_LLM_TEMPERATURE = 0.3
DEFAULT_HA_TIMEOUT = 10
DEFAULT_CACHE_STRATEGY = "context-aware"
DEFAULT_CACHE_TTL = 3600  # seconds
DEFAULT_CACHE_MAX_SIZE = 50

# Domains kept in an environment snapshot (actuators plus sensors)
RELEVANT_DOMAINS = ("switch", "light", "climate", "fan", "cover", "lock", "sensor")

# Success-rate feedback
SUCCESS_REWARD = 0.1
FAILURE_PENALTY = 0.2
MIN_SUCCESS_RATE = 0.3
FUZZY_SUCCESS_RATE = 0.8

# Similar-plan scoring
SIMILAR_TIME_WEIGHT = 0.3
SIMILAR_SUCCESS_WEIGHT = 0.4
SIMILAR_CONFIDENCE_WEIGHT = 0.3
SIMILAR_MIN_SCORE = 0.5
SIMILAR_TOP_K = 3

# Plans below this confidence are reported as infeasible
MIN_PLAN_CONFIDENCE = 0.6

# Confidence assigned when intent resolution fails outright
FALLBACK_INTENT_CONFIDENCE = 0.5
