import logging
import time
from typing import List

from ..models import DeviceCommand, ExecutionResult, ExecutionStatus, Plan, StepResult
from .base import Capability

_LOGGER = logging.getLogger(__name__)

SIMULATED_NOTE = "simulated: no device controller configured"


class PlanExecutorCapability(Capability):
    """Dispatches the executable steps of a plan to the device hub."""

    name = "plan_executor"
    description = "Runs plan steps against the device controller."

    def __init__(self, hub=None, config=None):
        super().__init__(hub, config or {})

    async def execute(self, plan: Plan) -> ExecutionResult:
        start = time.monotonic()

        def elapsed_ms() -> float:
            return round((time.monotonic() - start) * 1000, 3)

        if self.hub is None:
            _LOGGER.info("[PlanExecutor] Simulating %s (%d step(s))", plan.plan_id, len(plan.steps))
            return ExecutionResult(
                plan_id=plan.plan_id,
                status=ExecutionStatus.PARTIAL,
                steps=[
                    StepResult(
                        step_index=index,
                        entity_id=step.entity_id,
                        service=step.service,
                        success=True,
                        note=SIMULATED_NOTE,
                    )
                    for index, step in enumerate(plan.steps)
                ],
                total_time=elapsed_ms(),
                simulated=True,
            )

        # (plan index, step) for every step that goes to the hub
        indexed = [(index, step) for index, step in enumerate(plan.steps) if step.is_dispatchable]
        if not indexed:
            _LOGGER.info("[PlanExecutor] Nothing to do for %s", plan.plan_id)
            return ExecutionResult(
                plan_id=plan.plan_id, status=ExecutionStatus.SUCCESS, total_time=elapsed_ms()
            )

        commands = [DeviceCommand(service=s.service, entity_id=s.entity_id) for _, s in indexed]
        try:
            report = await self.hub.execute(commands)
        except Exception as err:
            _LOGGER.exception("[PlanExecutor] Dispatch of %s failed", plan.plan_id)
            return ExecutionResult(
                plan_id=plan.plan_id,
                status=ExecutionStatus.FAILED,
                steps=[
                    StepResult(
                        step_index=index,
                        entity_id=step.entity_id,
                        service=step.service,
                        success=False,
                        error=str(err),
                    )
                    for index, step in indexed
                ],
                total_time=elapsed_ms(),
            )

        # Each reported error marks the first unmatched step with the same entity and service.
        pending = [
            ((error.get("entity"), error.get("service")), error.get("error"))
            for error in report.errors
        ]
        results: List[StepResult] = []
        for index, step in indexed:
            match = next(
                (n for n, (key, _) in enumerate(pending) if key == (step.entity_id, step.service)),
                None,
            )
            error = pending.pop(match)[1] if match is not None else None
            results.append(
                StepResult(
                    step_index=index,
                    entity_id=step.entity_id,
                    service=step.service,
                    success=match is None,
                    error=error,
                )
            )

        status = ExecutionStatus.SUCCESS if report.success else ExecutionStatus.PARTIAL
        _LOGGER.info(
            "[PlanExecutor] %s finished: %s (%d ok, %d failed)",
            plan.plan_id,
            status.value,
            sum(1 for r in results if r.success),
            sum(1 for r in results if not r.success),
        )
        return ExecutionResult(
            plan_id=plan.plan_id, status=status, steps=results, total_time=elapsed_ms()
        )
