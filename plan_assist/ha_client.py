"""Home Assistant REST client used as the device controller."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .errors import UpstreamUnavailable
from .models import DeviceCommand, DeviceRecord, DispatchReport

_LOGGER = logging.getLogger(__name__)


def _to_record(entity: Dict[str, Any]) -> DeviceRecord:
    attributes = entity.get("attributes") or {}
    entity_id = entity.get("entity_id", "")
    return DeviceRecord(
        entity_id=entity_id,
        name=attributes.get("friendly_name") or entity_id,
        state=str(entity.get("state", "")),
        attributes=attributes,
        last_changed=entity.get("last_changed"),
    )


class HomeAssistantClient:
    """Reads entity states and calls services over the HA REST API."""

    def __init__(self, base_url: str, token: str, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(
                headers=self._headers, timeout=self.timeout
            ) as session:
                async with session.request(method, url, json=payload) as resp:
                    resp.raise_for_status()
                    return await resp.json()
        except (aiohttp.ClientError, TimeoutError) as err:
            raise UpstreamUnavailable("home_assistant", f"{method} {path}: {err}") from err

    async def list_device_states(self) -> List[DeviceRecord]:
        data = await self._request("GET", "/api/states")
        if not isinstance(data, list):
            raise UpstreamUnavailable("home_assistant", "unexpected /api/states payload")
        return [_to_record(entity) for entity in data if isinstance(entity, dict)]

    async def get_entity_state(self, entity_id: str) -> Optional[DeviceRecord]:
        try:
            data = await self._request("GET", f"/api/states/{entity_id}")
        except UpstreamUnavailable as err:
            cause = err.__cause__
            if isinstance(cause, aiohttp.ClientResponseError) and cause.status == 404:
                return None
            raise
        return _to_record(data) if isinstance(data, dict) else None

    async def call_service(
        self, service: str, entity_id: str, data: Optional[Dict[str, Any]] = None
    ) -> Any:
        domain, _, action = service.partition(".")
        payload = {"entity_id": entity_id, **(data or {})}
        _LOGGER.debug("[HAClient] Calling %s for %s", service, entity_id)
        return await self._request("POST", f"/api/services/{domain}/{action}", payload)

    async def execute(self, commands: List[DeviceCommand]) -> DispatchReport:
        """Run commands one by one; a failing command does not stop the rest."""
        report = DispatchReport()
        for cmd in commands:
            try:
                result = await self.call_service(cmd.service, cmd.entity_id, dict(cmd.data))
                report.results.append(
                    {"entity": cmd.entity_id, "service": cmd.service, "result": result}
                )
            except UpstreamUnavailable as err:
                _LOGGER.warning("[HAClient] %s on %s failed: %s", cmd.service, cmd.entity_id, err)
                report.errors.append(
                    {"entity": cmd.entity_id, "service": cmd.service, "error": str(err)}
                )
        return report

    async def health_check(self) -> bool:
        try:
            await self._request("GET", "/api/")
            return True
        except UpstreamUnavailable:
            return False
