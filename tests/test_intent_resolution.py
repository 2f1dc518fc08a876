"""Tests for IntentResolutionCapability (keyword rules + LLM)."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from plan_assist.capabilities.intent_resolution import IntentResolutionCapability
from plan_assist.errors import UpstreamUnavailable
from plan_assist.models import Intent, IntentLabel


@pytest.fixture
def prompt_executor():
    executor = MagicMock()
    executor.run = AsyncMock(return_value={})
    return executor


@pytest.fixture
def resolver(config, prompt_executor):
    return IntentResolutionCapability(None, config, prompt_executor)


# ============================================================================
# KEYWORD RULES
# ============================================================================


@pytest.mark.parametrize(
    "text,label",
    [
        ("I want to take a bath.", IntentLabel.PREPARE_BATH),
        ("Good night!", IntentLabel.SLEEP),
        ("I'm leaving for work", IntentLabel.LEAVE_HOME),
        ("Just got back", IntentLabel.ARRIVE_HOME),
        ("It's freezing in here", IntentLabel.ADJUST_TEMPERATURE),
        ("Give me a status report", IntentLabel.GET_STATUS),
    ],
)
async def test_rule_match_skips_llm(resolver, prompt_executor, text, label):
    intent = await resolver.resolve(text)

    assert intent.label == label
    assert intent.confidence == 0.9
    assert intent.raw_input == text
    prompt_executor.run.assert_not_awaited()


def test_short_keywords_do_not_match_inside_words(resolver):
    assert resolver.rule_match("show me the photo album") is None


# ============================================================================
# LLM PATH
# ============================================================================


async def test_llm_classifies_unknown_wording(resolver, prompt_executor):
    prompt_executor.run.return_value = {
        "intent": "sleep",
        "confidence": 0.7,
        "time_hint": "in 10 minutes",
    }

    intent = await resolver.resolve("play some jazz")

    assert intent.label == IntentLabel.SLEEP
    assert intent.confidence == 0.7
    assert intent.time_hint == "in 10 minutes"
    prompt_executor.run.assert_awaited_once()
    _, variables = prompt_executor.run.await_args.args
    assert variables == {"user_input": "play some jazz"}


async def test_llm_snake_case_label(resolver, prompt_executor):
    prompt_executor.run.return_value = {"intent": "leave_home", "confidence": 0.8, "time_hint": None}
    intent = await resolver.resolve("play some jazz")
    assert intent.label == IntentLabel.LEAVE_HOME
    assert intent.time_hint is None


async def test_llm_unknown_label_becomes_status(resolver, prompt_executor):
    prompt_executor.run.return_value = {"intent": "dance", "confidence": 2.0, "time_hint": None}
    intent = await resolver.resolve("play some jazz")
    assert intent.label == IntentLabel.GET_STATUS
    assert intent.confidence == 1.0


async def test_llm_unusable_reply_defaults_to_status(resolver, prompt_executor):
    prompt_executor.run.return_value = {}
    intent = await resolver.resolve("play some jazz")
    assert intent.label == IntentLabel.GET_STATUS
    assert intent.confidence == 0.5


async def test_llm_down_raises(resolver, prompt_executor):
    prompt_executor.run.side_effect = UpstreamUnavailable("ollama", "connection refused")
    with pytest.raises(UpstreamUnavailable):
        await resolver.resolve("play some jazz")


async def test_llm_down_with_rule_match_still_resolves(resolver, prompt_executor):
    prompt_executor.run.side_effect = UpstreamUnavailable("ollama")
    intent = await resolver.resolve("time for a shower")
    assert intent.label == IntentLabel.PREPARE_BATH


# ============================================================================
# HELPERS
# ============================================================================


async def test_candidates_include_secondary_intents(resolver):
    result = await resolver.candidates("It's cold, I want a bath")
    assert [i.label for i in result] == [
        IntentLabel.PREPARE_BATH,
        IntentLabel.ADJUST_TEMPERATURE,
    ]
    assert result[1].confidence == 0.6


def test_explain_confidence():
    explain = IntentResolutionCapability.explain_confidence
    assert explain(Intent(IntentLabel.SLEEP, 0.95, "x")).startswith("high")
    assert explain(Intent(IntentLabel.SLEEP, 0.8, "x")).startswith("medium")
    assert explain(Intent(IntentLabel.SLEEP, 0.5, "x")).startswith("low")
