"""Tests for PlanExecutorCapability status classification."""

from unittest.mock import AsyncMock, MagicMock

from plan_assist.capabilities.plan_executor import PlanExecutorCapability
from plan_assist.errors import UpstreamUnavailable
from plan_assist.models import (
    ActionStep,
    DispatchReport,
    ExecutionStatus,
    IntentLabel,
    Plan,
    StepStatus,
)

from conftest import FakeHub, bath_devices


def bath_plan(*statuses):
    entities = ["switch.water_heater", "switch.bathroom_heater", "light.bathroom"]
    statuses = statuses or (StepStatus.NORMAL,) * 3
    return Plan(
        plan_id="p1",
        intent=IntentLabel.PREPARE_BATH,
        steps=[
            ActionStep(
                service=f"{entity.split('.')[0]}.turn_on", entity_id=entity, status=status
            )
            for entity, status in zip(entities, statuses)
        ],
    )


async def test_all_steps_succeed(hub):
    result = await PlanExecutorCapability(hub).execute(bath_plan())

    assert result.status == ExecutionStatus.SUCCESS
    assert [s.success for s in result.steps] == [True, True, True]
    assert hub.dispatched == [
        ("switch.turn_on", "switch.water_heater"),
        ("switch.turn_on", "switch.bathroom_heater"),
        ("light.turn_on", "light.bathroom"),
    ]
    assert not result.simulated


async def test_skipped_and_missing_steps_not_dispatched(hub):
    plan = bath_plan(
        StepStatus.SKIPPED_ALREADY_SATISFIED, StepStatus.NORMAL, StepStatus.TARGET_MISSING
    )
    result = await PlanExecutorCapability(hub).execute(plan)

    assert hub.dispatched == [("switch.turn_on", "switch.bathroom_heater")]
    assert len(result.steps) == 1
    assert result.steps[0].step_index == 1
    assert result.status == ExecutionStatus.SUCCESS


async def test_partial_when_some_commands_fail():
    hub = FakeHub(bath_devices(), failing={"light.bathroom"})
    result = await PlanExecutorCapability(hub).execute(bath_plan())

    assert result.status == ExecutionStatus.PARTIAL
    failed = [s for s in result.steps if not s.success]
    assert [s.entity_id for s in failed] == ["light.bathroom"]
    assert failed[0].error == "boom"


async def test_failure_marks_only_the_matching_command():
    plan = Plan(
        plan_id="heat",
        intent=IntentLabel.PREPARE_BATH,
        steps=[
            ActionStep("climate.turn_on", "climate.bathroom"),
            ActionStep("climate.set_temperature", "climate.bathroom"),
        ],
    )
    hub = MagicMock()
    hub.execute = AsyncMock(
        return_value=DispatchReport(
            results=[{"entity": "climate.bathroom", "service": "climate.set_temperature"}],
            errors=[{"entity": "climate.bathroom", "service": "climate.turn_on", "error": "boom"}],
        )
    )

    result = await PlanExecutorCapability(hub).execute(plan)

    assert result.status == ExecutionStatus.PARTIAL
    assert [(s.service, s.success) for s in result.steps] == [
        ("climate.turn_on", False),
        ("climate.set_temperature", True),
    ]
    assert result.steps[0].error == "boom"
    assert result.steps[1].error is None


async def test_step_index_follows_plan_position(hub):
    plan = Plan(
        plan_id="lights",
        intent=IntentLabel.SLEEP,
        steps=[
            ActionStep("light.turn_off", "light.a", status=StepStatus.SKIPPED_ALREADY_SATISFIED),
            ActionStep("light.turn_off", "light.b"),
        ],
    )
    result = await PlanExecutorCapability(hub).execute(plan)

    assert [(s.step_index, s.entity_id) for s in result.steps] == [(1, "light.b")]


async def test_dispatch_failure_keeps_plan_indexes(hub):
    hub.execute.side_effect = UpstreamUnavailable("home_assistant")
    plan = bath_plan(StepStatus.TARGET_MISSING, StepStatus.NORMAL, StepStatus.NORMAL)
    result = await PlanExecutorCapability(hub).execute(plan)

    assert [s.step_index for s in result.steps] == [1, 2]


async def test_failed_when_dispatch_raises(hub):
    hub.execute.side_effect = UpstreamUnavailable("home_assistant", "connection reset")
    result = await PlanExecutorCapability(hub).execute(bath_plan())

    assert result.status == ExecutionStatus.FAILED
    assert len(result.steps) == 3
    assert all(not s.success and "connection reset" in s.error for s in result.steps)


async def test_nothing_to_dispatch_is_success(hub):
    plan = bath_plan(*(StepStatus.SKIPPED_ALREADY_SATISFIED,) * 3)
    result = await PlanExecutorCapability(hub).execute(plan)

    assert result.status == ExecutionStatus.SUCCESS
    assert result.steps == []
    hub.execute.assert_not_awaited()


async def test_empty_plan_is_success(hub):
    plan = Plan(plan_id="status", intent=IntentLabel.GET_STATUS)
    result = await PlanExecutorCapability(hub).execute(plan)
    assert result.status == ExecutionStatus.SUCCESS


async def test_simulate_mode_without_hub():
    result = await PlanExecutorCapability(None).execute(bath_plan())

    assert result.status == ExecutionStatus.PARTIAL
    assert result.simulated
    assert len(result.steps) == 3
    assert all(s.success and s.note for s in result.steps)
    assert result.plan_id == "p1"
