import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence

from ..const import RELEVANT_DOMAINS
from ..models import DeviceRecord, EnvironmentSnapshot, TimeOfDay, utc_now_iso
from .base import Capability

_LOGGER = logging.getLogger(__name__)

PRESENCE_MARKERS = ("person.", "binary_sensor.motion", "device_tracker")
PRESENT_STATES = ("on", "home")
ACTIVE_STATES = ("on", "playing", "active")
TEMPERATURE_MARKERS = ("temperature", "weather", "climate")
HUMIDITY_MARKERS = ("humidity",)


def detect_presence(devices: Sequence[DeviceRecord]) -> bool:
    """Presence from person/motion/tracker entities, else from device activity."""
    trackers = [
        d for d in devices if any(marker in d.entity_id for marker in PRESENCE_MARKERS)
    ]
    if trackers:
        return any(d.state in PRESENT_STATES for d in trackers)

    # No presence sensors: assume someone is home if several things are running.
    active = [d for d in devices if d.state in ACTIVE_STATES]
    return len(active) > 3


def _average_numeric(devices: Iterable[DeviceRecord], markers: Sequence[str]) -> Optional[float]:
    values: List[float] = []
    for device in devices:
        if not any(marker in device.entity_id for marker in markers):
            continue
        try:
            values.append(float(device.state))
        except (TypeError, ValueError):
            continue
    if not values:
        return None
    return round(sum(values) / len(values), 1)


def extract_temperature(devices: Sequence[DeviceRecord]) -> Optional[float]:
    return _average_numeric(devices, TEMPERATURE_MARKERS)


def extract_humidity(devices: Sequence[DeviceRecord]) -> Optional[float]:
    return _average_numeric(devices, HUMIDITY_MARKERS)


def filter_relevant(devices: Iterable[DeviceRecord]) -> List[DeviceRecord]:
    return [d for d in devices if d.domain in RELEVANT_DOMAINS]


def context_summary(snapshot: EnvironmentSnapshot) -> str:
    """Short human-readable line used in logs."""
    parts = [
        f"time: {snapshot.time_of_day.value}",
        f"presence: {'home' if snapshot.presence else 'away'}",
    ]
    if snapshot.temperature is not None:
        parts.append(f"temperature: {snapshot.temperature:g}°C")
    if snapshot.humidity is not None:
        parts.append(f"humidity: {snapshot.humidity:g}%")
    if snapshot.devices:
        on_count = sum(1 for d in snapshot.devices if d.state == "on")
        parts.append(f"active devices: {on_count}/{len(snapshot.devices)}")
    return " | ".join(parts)


class EnvironmentSnapshotCapability(Capability):
    """
    Builds an EnvironmentSnapshot from the hub's device states.

    Presence and sensor readings are derived from the full device list; only
    the stored device tuple is narrowed to the relevant domains.
    """

    name = "environment"
    description = "Reads the current home state into a snapshot."

    def __init__(self, hub, config=None, clock: Callable[[], datetime] = datetime.now):
        super().__init__(hub, config or {})
        self._clock = clock

    async def take_snapshot(self) -> EnvironmentSnapshot:
        devices = await self.hub.list_device_states()
        now = self._clock()
        snapshot = EnvironmentSnapshot(
            timestamp=utc_now_iso(),
            devices=tuple(filter_relevant(devices)),
            time_of_day=TimeOfDay.from_hour(now.hour),
            presence=detect_presence(devices),
            temperature=extract_temperature(devices),
            humidity=extract_humidity(devices),
        )
        _LOGGER.info("[Environment] %s", context_summary(snapshot))
        return snapshot

    async def devices_in_domain(self, domain: str) -> List[DeviceRecord]:
        devices = await self.hub.list_device_states()
        return [d for d in devices if d.domain == domain]

    async def is_active(self, entity_id: str) -> bool:
        """True if the entity is currently on, playing or open."""
        for device in await self.hub.list_device_states():
            if device.entity_id == entity_id:
                return device.state in ("on", "playing", "open")
        return False
