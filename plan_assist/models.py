"""Data model shared by the cache, the resolver and the pipeline."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple


class IntentLabel(str, enum.Enum):
    """Closed set of intents the planner knows how to serve."""

    PREPARE_BATH = "prepare-bath"
    SLEEP = "sleep"
    LEAVE_HOME = "leave-home"
    ARRIVE_HOME = "arrive-home"
    ADJUST_TEMPERATURE = "adjust-temperature"
    GET_STATUS = "get-status"

    @classmethod
    def parse(cls, value: Any) -> "IntentLabel":
        """Coerce an LLM label (also accepts snake_case) to a known intent."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower().replace("_", "-")
        for label in cls:
            if label.value == text:
                return label
        return cls.GET_STATUS


class TimeOfDay(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"

    @classmethod
    def from_hour(cls, hour: int) -> "TimeOfDay":
        if 5 <= hour < 12:
            return cls.MORNING
        if 12 <= hour < 18:
            return cls.AFTERNOON
        if 18 <= hour < 22:
            return cls.EVENING
        return cls.NIGHT


class StepStatus(str, enum.Enum):
    """Refinement outcome for a single action step."""

    NORMAL = "normal"
    SKIPPED_ALREADY_SATISFIED = "skipped_already_satisfied"
    TARGET_MISSING = "target_missing"


class ExecutionStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True)
class Intent:
    label: IntentLabel
    confidence: float
    raw_input: str
    time_hint: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "label", IntentLabel.parse(self.label))
        object.__setattr__(self, "confidence", _clamp(self.confidence))


@dataclass(frozen=True)
class DeviceRecord:
    """One entity as reported by the hub."""

    entity_id: str
    name: str
    state: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    last_changed: Optional[str] = None

    @property
    def domain(self) -> str:
        return self.entity_id.split(".", 1)[0]


@dataclass(frozen=True)
class EnvironmentSnapshot:
    timestamp: str
    devices: Tuple[DeviceRecord, ...]
    time_of_day: TimeOfDay
    presence: Optional[bool] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None

    def device(self, entity_id: str) -> Optional[DeviceRecord]:
        for record in self.devices:
            if record.entity_id == entity_id:
                return record
        return None

    def has_device(self, entity_id: str) -> bool:
        return self.device(entity_id) is not None


@dataclass
class ActionStep:
    service: str  # "domain.action", e.g. "switch.turn_on"
    entity_id: str
    target_name: str = ""
    description: str = ""
    status: StepStatus = StepStatus.NORMAL

    @property
    def action(self) -> str:
        return self.service.split(".", 1)[-1]

    @property
    def is_turn_on(self) -> bool:
        return self.action == "turn_on"

    @property
    def is_turn_off(self) -> bool:
        return self.action == "turn_off"

    @property
    def is_dispatchable(self) -> bool:
        return self.status == StepStatus.NORMAL

    def as_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "entity_id": self.entity_id,
            "target_name": self.target_name,
            "description": self.description,
            "status": self.status.value,
        }


@dataclass
class Plan:
    plan_id: str
    intent: IntentLabel
    steps: List[ActionStep] = field(default_factory=list)
    estimated_time: float = 0
    confidence: float = 0.8
    cacheable: bool = True

    def copy(self) -> "Plan":
        return replace(self, steps=[replace(step) for step in self.steps])

    def as_dict(self) -> Dict[str, Any]:
        return {
            "plan_id": self.plan_id,
            "intent": self.intent.value,
            "steps": [step.as_dict() for step in self.steps],
            "estimated_time": self.estimated_time,
            "confidence": self.confidence,
            "cacheable": self.cacheable,
        }


@dataclass
class CacheEntry:
    """A stored plan plus its reuse statistics."""

    cache_key: str
    intent: IntentLabel
    plan: Plan
    fingerprint: str
    time_of_day: Optional[TimeOfDay]  # bucket the fingerprint was taken in
    last_used: float = field(default_factory=time.time)
    usage_count: int = 1
    success_rate: float = 1.0


@dataclass
class CacheQueryResult:
    hit: bool
    entry: Optional[CacheEntry] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class DeviceCommand:
    service: str
    entity_id: str
    data: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class DispatchReport:
    """Per-command outcome returned by the device controller."""

    results: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class StepResult:
    step_index: int
    entity_id: str
    service: str
    success: bool
    error: Optional[str] = None
    note: Optional[str] = None
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class ExecutionResult:
    plan_id: str
    status: ExecutionStatus
    steps: List[StepResult] = field(default_factory=list)
    total_time: float = 0  # milliseconds
    timestamp: str = field(default_factory=utc_now_iso)
    simulated: bool = False
