"""Plan refinement and pre-execution checks against an environment snapshot.

Refinement only annotates steps (``ActionStep.status``); it never reorders or
drops them, so operators can still see everything a plan asked for.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List

from ..const import MIN_PLAN_CONFIDENCE
from ..models import ActionStep, EnvironmentSnapshot, Plan, StepStatus

_LOGGER = logging.getLogger(__name__)


@dataclass
class FeasibilityReport:
    feasible: bool
    reasons: List[str] = field(default_factory=list)


def refine_step(step: ActionStep, snapshot: EnvironmentSnapshot) -> ActionStep:
    """Return a copy of the step with its status set from current device state."""
    device = snapshot.device(step.entity_id)
    if device is None:
        status = StepStatus.TARGET_MISSING
    elif step.is_turn_on and device.state == "on":
        status = StepStatus.SKIPPED_ALREADY_SATISFIED
    elif step.is_turn_off and device.state == "off":
        status = StepStatus.SKIPPED_ALREADY_SATISFIED
    else:
        status = StepStatus.NORMAL
    return replace(step, status=status)


def refine_plan(plan: Plan, snapshot: EnvironmentSnapshot) -> Plan:
    """Annotate every step of a plan. Idempotent for a fixed snapshot."""
    refined = plan.copy()
    refined.steps = [refine_step(step, snapshot) for step in plan.steps]

    skipped = sum(1 for s in refined.steps if s.status == StepStatus.SKIPPED_ALREADY_SATISFIED)
    missing = sum(1 for s in refined.steps if s.status == StepStatus.TARGET_MISSING)
    if skipped or missing:
        _LOGGER.debug(
            "[Refinement] Plan %s: %d step(s) already satisfied, %d target(s) missing",
            plan.plan_id,
            skipped,
            missing,
        )
    return refined


def validate_plan(plan: Plan, snapshot: EnvironmentSnapshot) -> bool:
    """True if every step still targets a device present in the snapshot."""
    return all(snapshot.has_device(step.entity_id) for step in plan.steps)


def check_feasibility(plan: Plan, snapshot: EnvironmentSnapshot) -> FeasibilityReport:
    """Advisory pre-execution check; collects reasons instead of raising."""
    reasons: List[str] = []
    if not plan.steps:
        reasons.append("plan has no steps")
    for step in plan.steps:
        if not snapshot.has_device(step.entity_id):
            reasons.append(f"device {step.entity_id} is not in the current environment")
    if plan.confidence < MIN_PLAN_CONFIDENCE:
        reasons.append(f"confidence {plan.confidence:.2f} is below {MIN_PLAN_CONFIDENCE}")
    return FeasibilityReport(feasible=not reasons, reasons=reasons)


def executable_steps(plan: Plan) -> List[ActionStep]:
    return [step for step in plan.steps if step.is_dispatchable]


def plan_summary(plan: Plan) -> str:
    actions = ", ".join(step.description or step.service for step in executable_steps(plan))
    return (
        f"plan {plan.plan_id} | ~{plan.estimated_time:g} min | "
        f"actions: {actions or 'none'}"
    )
