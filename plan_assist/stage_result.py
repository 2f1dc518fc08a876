from typing import Any, Dict, Optional

from .models import EnvironmentSnapshot, ExecutionResult, Intent, Plan


class PipelineResult:
    """Container for everything one request produced."""

    def __init__(
        self,
        intent: Intent,
        snapshot: EnvironmentSnapshot,
        plan: Plan,
        execution: ExecutionResult,
        cache_hit: bool = False,
        cache_key: Optional[str] = None,
        stage: Any = None,
    ):
        self.intent = intent
        self.snapshot = snapshot
        self.plan = plan
        self.execution = execution
        self.cache_hit = cache_hit
        self.cache_key = cache_key
        self.stage = stage

    def as_dict(self) -> Dict[str, Any]:
        return {
            "intent": {
                "label": self.intent.label.value,
                "confidence": self.intent.confidence,
                "raw_input": self.intent.raw_input,
                "time_hint": self.intent.time_hint,
            },
            "snapshot": {
                "timestamp": self.snapshot.timestamp,
                "time_of_day": self.snapshot.time_of_day.value,
                "presence": self.snapshot.presence,
                "temperature": self.snapshot.temperature,
                "humidity": self.snapshot.humidity,
                "devices": len(self.snapshot.devices),
            },
            "plan": self.plan.as_dict(),
            "execution": {
                "plan_id": self.execution.plan_id,
                "status": self.execution.status.value,
                "simulated": self.execution.simulated,
                "total_time": self.execution.total_time,
                "steps": [
                    {
                        "step_index": s.step_index,
                        "entity_id": s.entity_id,
                        "service": s.service,
                        "success": s.success,
                        "error": s.error,
                        "note": s.note,
                    }
                    for s in self.execution.steps
                ],
            },
            "cache_hit": self.cache_hit,
            "cache_key": self.cache_key,
            "stage": getattr(self.stage, "value", self.stage),
        }

    def __repr__(self) -> str:
        return (
            f"<PipelineResult intent={self.intent.label.value!r} "
            f"plan={self.plan.plan_id!r} status={self.execution.status.value!r} "
            f"cache_hit={self.cache_hit}>"
        )
