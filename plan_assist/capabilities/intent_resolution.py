import logging
from typing import List, Optional

from ..errors import UpstreamUnavailable
from ..models import Intent, IntentLabel
from ..utils.fuzzy_utils import best_keyword_match, matching_keys
from .base import Capability

_LOGGER = logging.getLogger(__name__)

RULE_CONFIDENCE = 0.9


class IntentResolutionCapability(Capability):
    """
    Resolves a command string into an Intent.
    Keyword rules answer first; the LLM is only asked when no rule is
    confident enough.
    """

    name = "intent_resolution"
    description = "Classifies a command into one of the known intents."

    INTENT_KEYWORDS = {
        IntentLabel.PREPARE_BATH.value: [
            "bath", "bathe", "shower", "take a bath", "run a bath",
        ],
        IntentLabel.SLEEP.value: [
            "sleep", "good night", "goodnight", "bedtime", "going to bed",
        ],
        IntentLabel.LEAVE_HOME.value: [
            "leaving", "heading out", "going out", "off to work", "leave home",
        ],
        IntentLabel.ARRIVE_HOME.value: [
            "home now", "i'm home", "im home", "back home", "arrived", "just got back",
        ],
        IntentLabel.ADJUST_TEMPERATURE.value: [
            "cold", "warm", "hot", "chilly", "freezing", "temperature", "thermostat",
            "heating", "air conditioning",
        ],
        IntentLabel.GET_STATUS.value: [
            "status", "what's on", "how is", "overview", "check the house",
        ],
    }

    INTENT_PROMPT = {
        "system": """
You are a smart home intent classifier.
Map the user's request to exactly one intent.

## Intents
- prepare-bath: getting a bath or shower ready (water heater, bathroom heater, light)
- sleep: going to bed (lights off, quiet climate)
- leave-home: leaving the house (devices off, locks)
- arrive-home: coming home (lights, climate on)
- adjust-temperature: the room is too cold or too warm
- get-status: questions about device state, or anything else

## Rules
1. confidence is a number between 0 and 1.
2. time_hint is a short phrase if the user mentions a time ("in 10 minutes"), otherwise null.
3. Unknown requests use get-status.
""",
        "schema": {
            "properties": {
                "intent": {"type": "string"},
                "confidence": {"type": "number"},
                "time_hint": {"type": ["string", "null"]},
            }
        },
    }

    def rule_match(self, text: str) -> Optional[Intent]:
        match = best_keyword_match(text, self.INTENT_KEYWORDS)
        if not match:
            return None
        return Intent(label=IntentLabel(match[0]), confidence=RULE_CONFIDENCE, raw_input=text)

    async def resolve(self, text: str) -> Intent:
        """Rule match first, then the LLM.

        Raises UpstreamUnavailable only if the LLM is down and no rule matched.
        """
        rule_based = self.rule_match(text)
        if rule_based:
            _LOGGER.debug("[IntentResolution] Rule hit: %s", rule_based.label.value)
            return rule_based

        data = await self._safe_prompt(self.INTENT_PROMPT, {"user_input": text})
        if data is None:
            raise UpstreamUnavailable("ollama", "intent classification failed")

        if not data:
            _LOGGER.info("[IntentResolution] Unusable LLM reply for '%s'", text)
            return Intent(label=IntentLabel.GET_STATUS, confidence=0.5, raw_input=text)

        return Intent(
            label=IntentLabel.parse(data.get("intent")),
            confidence=data.get("confidence", 0.5),
            raw_input=text,
            time_hint=data.get("time_hint") or None,
        )

    async def candidates(self, text: str, top_k: int = 3) -> List[Intent]:
        """Primary intent plus any other intents whose keywords appear in the text."""
        primary = await self.resolve(text)
        result = [primary]
        for key in matching_keys(text, self.INTENT_KEYWORDS):
            if key != primary.label.value:
                result.append(
                    Intent(label=IntentLabel(key), confidence=0.6, raw_input=text)
                )
        return result[:top_k]

    @staticmethod
    def explain_confidence(intent: Intent) -> str:
        if intent.confidence > 0.9:
            return "high: explicit command"
        if intent.confidence > 0.7:
            return "medium: inferred from wording or context"
        return "low: needs confirmation"
