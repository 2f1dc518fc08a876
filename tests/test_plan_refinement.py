"""Tests for plan refinement, validation and feasibility checks."""

from plan_assist.models import ActionStep, IntentLabel, Plan, StepStatus
from plan_assist.utils.plan_refinement import (
    check_feasibility,
    executable_steps,
    plan_summary,
    refine_plan,
    validate_plan,
)

from conftest import bath_devices, device, make_snapshot


def bath_plan(confidence=0.8):
    return Plan(
        plan_id="fallback_prepare-bath_1",
        intent=IntentLabel.PREPARE_BATH,
        steps=[
            ActionStep("switch.turn_on", "switch.water_heater", description="Preheat the water heater"),
            ActionStep("switch.turn_on", "switch.bathroom_heater", description="Turn on the bathroom heater"),
            ActionStep("light.turn_on", "light.bathroom", description="Turn on the bathroom light"),
        ],
        estimated_time=5,
        confidence=confidence,
    )


# ============================================================================
# REFINEMENT
# ============================================================================


def test_all_steps_active_when_devices_off():
    refined = refine_plan(bath_plan(), make_snapshot(devices=bath_devices("off")))
    assert [s.status for s in refined.steps] == [StepStatus.NORMAL] * 3
    assert len(executable_steps(refined)) == 3


def test_step_skipped_when_already_on():
    refined = refine_plan(bath_plan(), make_snapshot(devices=bath_devices("on")))
    assert refined.steps[0].status == StepStatus.SKIPPED_ALREADY_SATISFIED
    assert refined.steps[1].status == StepStatus.NORMAL
    assert [s.entity_id for s in executable_steps(refined)] == [
        "switch.bathroom_heater",
        "light.bathroom",
    ]


def test_turn_off_skipped_when_already_off():
    plan = Plan(
        plan_id="p",
        intent=IntentLabel.SLEEP,
        steps=[ActionStep("light.turn_off", "light.living_room")],
    )
    refined = refine_plan(plan, make_snapshot(devices=[device("light.living_room", "off")]))
    assert refined.steps[0].status == StepStatus.SKIPPED_ALREADY_SATISFIED


def test_missing_device_flagged():
    snapshot = make_snapshot(devices=[device("switch.water_heater"), device("light.bathroom")])
    refined = refine_plan(bath_plan(), snapshot)
    assert refined.steps[1].status == StepStatus.TARGET_MISSING
    assert not refined.steps[1].is_dispatchable


def test_refinement_keeps_order_and_descriptions():
    plan = bath_plan()
    refined = refine_plan(plan, make_snapshot(devices=bath_devices("on")))
    assert [s.entity_id for s in refined.steps] == [s.entity_id for s in plan.steps]
    assert [s.description for s in refined.steps] == [s.description for s in plan.steps]


def test_refinement_is_idempotent():
    snapshot = make_snapshot(devices=bath_devices("on"))
    once = refine_plan(bath_plan(), snapshot)
    twice = refine_plan(once, snapshot)
    assert once.as_dict() == twice.as_dict()


def test_refinement_does_not_mutate_input():
    plan = bath_plan()
    refine_plan(plan, make_snapshot(devices=bath_devices("on")))
    assert all(s.status == StepStatus.NORMAL for s in plan.steps)


# ============================================================================
# VALIDATION / FEASIBILITY
# ============================================================================


def test_validate_plan():
    assert validate_plan(bath_plan(), make_snapshot())
    assert not validate_plan(bath_plan(), make_snapshot(devices=[device("light.bathroom")]))


def test_feasible_plan():
    report = check_feasibility(bath_plan(), make_snapshot())
    assert report.feasible
    assert report.reasons == []


def test_feasibility_collects_all_reasons():
    plan = bath_plan(confidence=0.5)
    report = check_feasibility(plan, make_snapshot(devices=[device("light.bathroom")]))
    assert not report.feasible
    assert len(report.reasons) == 3  # two missing devices plus low confidence


def test_empty_plan_not_feasible():
    plan = Plan(plan_id="p", intent=IntentLabel.GET_STATUS, confidence=0.5)
    report = check_feasibility(plan, make_snapshot())
    assert "plan has no steps" in report.reasons


def test_plan_summary_lists_only_executable_steps():
    refined = refine_plan(bath_plan(), make_snapshot(devices=bath_devices("on")))
    summary = plan_summary(refined)
    assert "Preheat the water heater" not in summary
    assert "Turn on the bathroom light" in summary
    assert "~5 min" in summary


def test_plan_summary_without_actions():
    plan = Plan(plan_id="p", intent=IntentLabel.GET_STATUS)
    assert plan_summary(plan).endswith("actions: none")
