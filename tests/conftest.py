import logging
from typing import List, Optional
from unittest.mock import AsyncMock

import pytest

from plan_assist.config import validate_config
from plan_assist.models import (
    DeviceRecord,
    DispatchReport,
    EnvironmentSnapshot,
    Intent,
    IntentLabel,
    TimeOfDay,
)

_LOGGER = logging.getLogger(__name__)


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHub:
    """In-memory device controller that records dispatched commands."""

    def __init__(self, devices: Optional[List[DeviceRecord]] = None, failing=()):
        self.devices = list(devices or [])
        self.failing = set(failing)
        self.dispatched = []
        self.list_device_states = AsyncMock(side_effect=self._list)
        self.execute = AsyncMock(side_effect=self._execute)
        self.health_check = AsyncMock(return_value=True)

    async def _list(self):
        return list(self.devices)

    async def _execute(self, commands):
        report = DispatchReport()
        for cmd in commands:
            self.dispatched.append((cmd.service, cmd.entity_id))
            if cmd.entity_id in self.failing:
                report.errors.append(
                    {"entity": cmd.entity_id, "service": cmd.service, "error": "boom"}
                )
            else:
                report.results.append({"entity": cmd.entity_id, "service": cmd.service})
        return report


def device(entity_id: str, state: str = "off", **attributes) -> DeviceRecord:
    return DeviceRecord(
        entity_id=entity_id,
        name=attributes.pop("friendly_name", entity_id),
        state=state,
        attributes=attributes,
    )


def make_snapshot(
    devices=None,
    time_of_day: TimeOfDay = TimeOfDay.EVENING,
    presence: Optional[bool] = True,
    temperature: Optional[float] = 22.0,
    humidity: Optional[float] = 60.0,
) -> EnvironmentSnapshot:
    return EnvironmentSnapshot(
        timestamp="2026-01-01T19:00:00+00:00",
        devices=tuple(devices if devices is not None else bath_devices()),
        time_of_day=time_of_day,
        presence=presence,
        temperature=temperature,
        humidity=humidity,
    )


def bath_devices(water_heater: str = "off") -> List[DeviceRecord]:
    return [
        device("switch.water_heater", water_heater),
        device("switch.bathroom_heater"),
        device("light.bathroom"),
    ]


def make_intent(label: IntentLabel = IntentLabel.PREPARE_BATH, confidence: float = 0.9) -> Intent:
    return Intent(label=label, confidence=confidence, raw_input="test command")


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def config():
    return validate_config({"ha_url": "http://ha.local:8123", "ha_token": "token"})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def snapshot():
    return make_snapshot()


@pytest.fixture
def bath_intent():
    return make_intent()


@pytest.fixture
def hub():
    return FakeHub(bath_devices())
