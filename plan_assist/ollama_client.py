from __future__ import annotations

import logging
from typing import Any, Dict

import aiohttp

_LOGGER = logging.getLogger(__name__)


class OllamaClient:
    """Chat transport for a local Ollama server; always asks for JSON output."""

    def __init__(self, ip: str, port: int, timeout: float = 60):
        self.base_url = f"http://{ip}:{port}"
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def _call(self, method: str, path: str, payload: Dict[str, Any] | None = None) -> Any:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.request(method, f"{self.base_url}{path}", json=payload) as resp:
                resp.raise_for_status()
                return await resp.json()

    async def test_connection(self) -> bool:
        data = await self._call("GET", "/api/version")
        _LOGGER.debug("[OllamaClient] Server version: %s", data.get("version"))
        return True

    async def chat(
        self,
        model: str,
        system_prompt: str,
        prompt: str,
        temperature: float = 0.3,
        num_ctx: int = 4096,
    ) -> str:
        """One non-streaming chat turn; returns the assistant message text."""
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "format": "json",
            "options": {"num_ctx": num_ctx, "temperature": temperature},
        }
        _LOGGER.debug("[OllamaClient] chat model=%s prompt=%.200s", model, prompt)
        data = await self._call("POST", "/api/chat", payload)

        if not isinstance(data, dict):
            _LOGGER.warning("[OllamaClient] Unexpected response: %s", data)
            return ""

        message = data.get("message") or {}
        if "content" in message:
            return message["content"]
        if "response" in data:
            return data["response"]

        _LOGGER.warning("[OllamaClient] Unexpected response: %s", data)
        return ""
