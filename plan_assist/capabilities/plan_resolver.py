import logging
from typing import Dict, List, Optional, Tuple

from ..const import (
    SIMILAR_CONFIDENCE_WEIGHT,
    SIMILAR_MIN_SCORE,
    SIMILAR_SUCCESS_WEIGHT,
    SIMILAR_TIME_WEIGHT,
    SIMILAR_TOP_K,
)
from ..errors import InvalidPlanShape
from ..models import ActionStep, EnvironmentSnapshot, Intent, IntentLabel, Plan
from ..plan_cache import PlanCache
from .base import Capability
from .plan_generation import make_plan_id

_LOGGER = logging.getLogger(__name__)


# intent -> (steps, estimated minutes)
FALLBACK_PLANS: Dict[IntentLabel, Tuple[List[Tuple[str, str, str, str]], float]] = {
    IntentLabel.PREPARE_BATH: (
        [
            ("switch.turn_on", "switch.water_heater", "Water heater", "Preheat the water heater"),
            ("switch.turn_on", "switch.bathroom_heater", "Bathroom heater", "Turn on the bathroom heater"),
            ("light.turn_on", "light.bathroom", "Bathroom light", "Turn on the bathroom light"),
        ],
        5,
    ),
    IntentLabel.SLEEP: (
        [("light.turn_off", "light.living_room", "Living room light", "Turn off the living room light")],
        1,
    ),
    IntentLabel.LEAVE_HOME: (
        [("switch.turn_off", "switch.all_lights", "All lights", "Turn off all lights")],
        2,
    ),
}
FALLBACK_CONFIDENCE = 0.8
STATUS_CONFIDENCE = 0.5


def fallback_plan(intent: Intent) -> Plan:
    """Rule-based plan used when no generator is reachable."""
    template = FALLBACK_PLANS.get(intent.label)
    if template is None:
        return Plan(
            plan_id=make_plan_id("fallback", IntentLabel.GET_STATUS),
            intent=IntentLabel.GET_STATUS,
            steps=[],
            estimated_time=0,
            confidence=STATUS_CONFIDENCE,
            cacheable=False,
        )

    steps, minutes = template
    return Plan(
        plan_id=make_plan_id("fallback", intent.label),
        intent=intent.label,
        steps=[
            ActionStep(service=service, entity_id=entity_id, target_name=name, description=text)
            for service, entity_id, name, text in steps
        ],
        estimated_time=minutes,
        confidence=FALLBACK_CONFIDENCE,
        cacheable=True,
    )


class PlanResolverCapability(Capability):
    """
    Produces a plan for an intent when the cache has none.

    Plans that worked before are offered to the generator as examples; if the
    generator cannot be reached, a fixed rule-based plan is used instead.
    Malformed generator output is not masked and raises InvalidPlanShape.
    """

    name = "plan_resolver"
    description = "Generates plans, using similar cached plans and fallbacks."

    def __init__(self, cache: PlanCache, generator=None, config=None):
        super().__init__(None, config or {})
        self.cache = cache
        self.generator = generator

    def find_similar_plans(self, intent: Intent, snapshot: EnvironmentSnapshot) -> List[Plan]:
        scored = []
        for entry in self.cache.find_candidates(intent.label):
            score = 0.0
            if entry.time_of_day == snapshot.time_of_day:
                score += SIMILAR_TIME_WEIGHT
            score += entry.success_rate * SIMILAR_SUCCESS_WEIGHT
            score += intent.confidence * SIMILAR_CONFIDENCE_WEIGHT
            if score > SIMILAR_MIN_SCORE:
                scored.append((score, entry.plan))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [plan.copy() for _, plan in scored[:SIMILAR_TOP_K]]

    async def generate_plan(self, intent: Intent, snapshot: EnvironmentSnapshot) -> Plan:
        if self.generator is None:
            _LOGGER.info("[PlanResolver] No generator configured, using fallback plan")
            return fallback_plan(intent)

        similar: Optional[List[Plan]] = self.find_similar_plans(intent, snapshot) or None
        if similar:
            _LOGGER.debug("[PlanResolver] %d similar plan(s) for %s", len(similar), intent.label.value)

        try:
            return await self.generator.generate(intent, snapshot, similar)
        except InvalidPlanShape:
            raise
        except Exception as err:
            _LOGGER.warning("[PlanResolver] Plan generation failed (%s), using fallback plan", err)
            return fallback_plan(intent)
