import logging
import time
from typing import Any, Dict, List, Optional

from ..errors import InvalidPlanShape
from ..models import ActionStep, EnvironmentSnapshot, Intent, IntentLabel, Plan
from .base import Capability

_LOGGER = logging.getLogger(__name__)

DEFAULT_ESTIMATED_TIME = 5
DEFAULT_CONFIDENCE = 0.8
CONTEXTUAL_CONFIDENCE = 0.85


def make_plan_id(prefix: str, intent: IntentLabel) -> str:
    return f"{prefix}_{intent.value}_{int(time.time() * 1000)}"


def reduce_snapshot(snapshot: EnvironmentSnapshot) -> Dict[str, Any]:
    return {
        "time_of_day": snapshot.time_of_day.value,
        "presence": snapshot.presence,
        "temperature": snapshot.temperature,
        "humidity": snapshot.humidity,
        "devices": [
            {"id": d.entity_id, "name": d.name, "state": d.state}
            for d in snapshot.devices
        ],
    }


def parse_plan(payload: Any, intent: Intent, similar: bool = False) -> Plan:
    """Turn a decoded LLM reply into a Plan.

    Raises InvalidPlanShape when the payload has no usable step list.
    """
    if not isinstance(payload, dict):
        raise InvalidPlanShape(f"expected an object, got {type(payload).__name__}")
    raw_steps = payload.get("steps")
    if not isinstance(raw_steps, list):
        raise InvalidPlanShape("plan has no 'steps' list")

    steps: List[ActionStep] = []
    for index, raw in enumerate(raw_steps):
        if not isinstance(raw, dict) or not raw.get("service") or not raw.get("entity_id"):
            raise InvalidPlanShape(f"step {index} is missing 'service' or 'entity_id'")
        steps.append(
            ActionStep(
                service=str(raw["service"]),
                entity_id=str(raw["entity_id"]),
                target_name=str(raw.get("target_name") or raw["entity_id"]),
                description=str(raw.get("description") or ""),
            )
        )

    try:
        estimated_time = float(payload.get("estimated_time", DEFAULT_ESTIMATED_TIME))
    except (TypeError, ValueError):
        estimated_time = DEFAULT_ESTIMATED_TIME
    try:
        confidence = float(
            payload.get("confidence", CONTEXTUAL_CONFIDENCE if similar else DEFAULT_CONFIDENCE)
        )
    except (TypeError, ValueError):
        confidence = CONTEXTUAL_CONFIDENCE if similar else DEFAULT_CONFIDENCE

    return Plan(
        plan_id=make_plan_id("llm", intent.label),
        intent=intent.label,
        steps=steps,
        estimated_time=estimated_time,
        confidence=max(0.0, min(1.0, confidence)),
        cacheable=(
            intent.label != IntentLabel.GET_STATUS
            and payload.get("cacheable", True) is not False
        ),
    )


class PlanGenerationCapability(Capability):
    """Asks the LLM for an action plan given an intent and the home state."""

    name = "plan_generation"
    description = "Generates device action plans with the LLM."

    PLAN_PROMPT = {
        "system": """
You are a smart home planner for Home Assistant.
Given the user's request, its intent and the current environment, produce the
device actions that fulfil the request.

## Input
- user_input: what the user said
- intent: the classified intent
- environment: time_of_day, presence, temperature, humidity and devices (id, name, state)
- similar_plans: plans that worked before in similar situations (may be empty)

## Rules
1. Only use entity ids that appear in environment.devices.
2. service is "<domain>.<action>", e.g. "light.turn_on" or "switch.turn_off".
3. Skip devices that are already in the requested state.
4. estimated_time is in minutes; confidence is between 0 and 1.
5. Use similar_plans as examples, adapted to the current environment.

## Step shape
{"service": "...", "entity_id": "...", "target_name": "...", "description": "..."}
""",
        "schema": {
            "properties": {
                "steps": {"type": "array"},
            }
        },
    }

    async def generate(
        self,
        intent: Intent,
        snapshot: EnvironmentSnapshot,
        similar_plans: Optional[List[Plan]] = None,
    ) -> Plan:
        similar = bool(similar_plans)
        variables = {
            "user_input": intent.raw_input,
            "intent": intent.label.value,
            "environment": reduce_snapshot(snapshot),
            "similar_plans": [
                {"steps": [s.as_dict() for s in p.steps], "estimated_time": p.estimated_time}
                for p in similar_plans or []
            ],
        }
        # UpstreamUnavailable propagates to the resolver.
        data = await self.executor.run(self.PLAN_PROMPT, variables)
        plan = parse_plan(data, intent, similar=similar)
        _LOGGER.info(
            "[PlanGeneration] Generated %s with %d step(s)%s",
            plan.plan_id,
            len(plan.steps),
            " (with similar plans)" if similar else "",
        )
        return plan
