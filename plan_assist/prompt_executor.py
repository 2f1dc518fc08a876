import json
import logging
from typing import Any, Optional

import aiohttp

from .const import (
    CONF_LLM_TEMPERATURE,
    CONF_OLLAMA_IP,
    CONF_OLLAMA_MODEL,
    CONF_OLLAMA_PORT,
    DEFAULT_LLM_TEMPERATURE,
)
from .errors import UpstreamUnavailable
from .ollama_client import OllamaClient

_LOGGER = logging.getLogger(__name__)


def extract_json(text: str) -> Any:
    """Parse the first JSON object or array embedded in an LLM reply."""
    cleaned = text.replace("```json", "").replace("```", "").strip()
    if "{" in cleaned and "}" in cleaned:
        cleaned = cleaned[cleaned.find("{") : cleaned.rfind("}") + 1]
    elif "[" in cleaned and "]" in cleaned:
        cleaned = cleaned[cleaned.find("[") : cleaned.rfind("]") + 1]
    return json.loads(cleaned)


class PromptExecutor:
    """Runs JSON-returning prompts against the configured Ollama model."""

    def __init__(self, config: dict, client: Optional[OllamaClient] = None):
        self.config = config
        self.model = config[CONF_OLLAMA_MODEL]
        self.client = client or OllamaClient(
            config[CONF_OLLAMA_IP], config[CONF_OLLAMA_PORT]
        )

    async def run(
        self,
        prompt: dict[str, Any],
        context: dict[str, Any],
        *,
        temperature: Optional[float] = None,
    ) -> dict[str, Any] | list:
        """
        Run a prompt and return the decoded JSON reply.
        The `prompt` must have key "system" and may carry a "schema".
        Returns {} or [] if the reply is not JSON or misses the schema;
        raises UpstreamUnavailable if the model cannot be reached.
        """
        system_prompt = prompt["system"]
        schema = prompt.get("schema")
        if schema:
            system_prompt = system_prompt.strip() + self._schema_to_prompt(schema)
        if temperature is None:
            temperature = self.config.get(CONF_LLM_TEMPERATURE, DEFAULT_LLM_TEMPERATURE)

        empty: dict | list = [] if (schema and schema.get("type") == "array") else {}

        try:
            resp_text = await self.client.chat(
                self.model,
                system_prompt,
                json.dumps(context, ensure_ascii=False),
                temperature=temperature,
            )
        except (aiohttp.ClientError, TimeoutError, ValueError) as err:
            _LOGGER.warning("[PromptExecutor] Model call failed: %s", err)
            raise UpstreamUnavailable("ollama", str(err)) from err

        try:
            result = extract_json(resp_text)
        except ValueError:
            _LOGGER.info("[PromptExecutor] Reply is not JSON: %.200s", resp_text)
            return empty

        if self._validate_schema(result, schema):
            return result

        _LOGGER.info("[PromptExecutor] Reply did not satisfy schema. Got=%s", result)
        return empty

    @staticmethod
    def _schema_to_prompt(schema: dict) -> str:
        """Append a strict output-format block so small models return bare JSON."""
        props = schema.get("properties") or {}
        if not props:
            return (
                "\n\n## Output format (STRICT)\n"
                "Return ONLY a minified JSON object.\n"
                "- No text, no markdown, no backticks."
            )

        example_pairs = []
        for key, spec in props.items():
            kind = spec.get("type", "string")
            if isinstance(kind, list):
                kind = "|".join(kind)
            example_pairs.append(f'"{key}":<{kind}>')

        return "\n".join(
            [
                "\n\n## Output format (STRICT)",
                "Return ONLY a minified JSON object with exactly these keys:",
                ", ".join(f'"{k}"' for k in props),
                "",
                "- No text, no explanations, no markdown, no backticks.",
                "- Example shape: {" + ",".join(example_pairs) + "}",
            ]
        )

    @staticmethod
    def _validate_schema(result: Any, schema: dict | None) -> bool:
        if not schema:
            return bool(result)

        def _is_type(val, t) -> bool:
            if t == "string":
                return isinstance(val, str)
            if t == "number":
                return isinstance(val, (int, float)) and not isinstance(val, bool)
            if t == "boolean":
                return isinstance(val, bool)
            if t == "object":
                return isinstance(val, dict)
            if t == "array":
                return isinstance(val, list)
            if t == "null":
                return val is None
            return True

        if schema.get("type") == "array":
            if not isinstance(result, list):
                return False
            item_type = schema.get("items", {}).get("type")
            return not item_type or all(_is_type(x, item_type) for x in result)

        if not isinstance(result, dict):
            return False

        for key, spec in (schema.get("properties") or {}).items():
            if key not in result:
                return False
            expected = spec.get("type", "string")
            # Union types like ["string", "null"]
            options = expected if isinstance(expected, list) else [expected]
            if not any(_is_type(result[key], t) for t in options):
                return False
        return True
