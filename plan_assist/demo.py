"""In-memory bathroom home for trying the pipeline without a hub or model."""
import dataclasses
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from .capabilities.intent_resolution import IntentResolutionCapability
from .models import DeviceCommand, DeviceRecord, DispatchReport, Intent, IntentLabel

_LOGGER = logging.getLogger(__name__)

DEMO_HOUR = 19
STATE_FOR_ACTION = {"turn_on": "on", "turn_off": "off"}


def demo_devices() -> List[DeviceRecord]:
    return [
        DeviceRecord("switch.water_heater", "Water heater", "off"),
        DeviceRecord("switch.bathroom_heater", "Bathroom heater", "off"),
        DeviceRecord("light.bathroom", "Bathroom light", "off"),
        DeviceRecord("light.living_room", "Living room light", "off"),
        DeviceRecord("person.resident", "Resident", "home"),
        DeviceRecord("sensor.bathroom_temperature", "Bathroom temperature", "22"),
        DeviceRecord("sensor.bathroom_humidity", "Bathroom humidity", "60"),
    ]


def demo_clock() -> datetime:
    """Evening, so the bath scenario reads the same at any hour."""
    return datetime.now().replace(hour=DEMO_HOUR, minute=0, second=0, microsecond=0)


class DemoHub:
    """Device controller backed by a dict; turn_on/turn_off change state."""

    def __init__(self, devices: Optional[Sequence[DeviceRecord]] = None):
        source = demo_devices() if devices is None else devices
        self.devices = {d.entity_id: d for d in source}

    async def list_device_states(self) -> List[DeviceRecord]:
        return list(self.devices.values())

    async def get_entity_state(self, entity_id: str) -> Optional[DeviceRecord]:
        return self.devices.get(entity_id)

    async def execute(self, commands: List[DeviceCommand]) -> DispatchReport:
        report = DispatchReport()
        for cmd in commands:
            record = self.devices.get(cmd.entity_id)
            if record is None:
                _LOGGER.warning("[DemoHub] Unknown entity %s", cmd.entity_id)
                report.errors.append(
                    {"entity": cmd.entity_id, "service": cmd.service, "error": "unknown entity"}
                )
                continue
            new_state = STATE_FOR_ACTION.get(cmd.service.partition(".")[2], record.state)
            self.devices[cmd.entity_id] = dataclasses.replace(record, state=new_state)
            report.results.append(
                {"entity": cmd.entity_id, "service": cmd.service, "result": new_state}
            )
        return report

    async def health_check(self) -> bool:
        return True


class RuleIntentResolver(IntentResolutionCapability):
    """Keyword rules only; anything unmatched is a status request."""

    name = "rule_intent_resolution"

    async def resolve(self, text: str) -> Intent:
        intent = self.rule_match(text)
        if intent is None:
            _LOGGER.debug("[RuleIntent] No rule for '%s'", text)
            return Intent(label=IntentLabel.GET_STATUS, confidence=0.5, raw_input=text)
        return intent
