"""Exceptions raised by the Plan Assist pipeline."""


class PlanAssistError(Exception):
    """Base error for the package."""


class ConfigError(PlanAssistError):
    """Configuration did not pass schema validation."""


class UpstreamUnavailable(PlanAssistError):
    """An inference or device-controller call failed."""

    def __init__(self, service: str, message: str = "") -> None:
        self.service = service
        super().__init__(f"{service} unavailable: {message}" if message else f"{service} unavailable")


class InvalidPlanShape(PlanAssistError):
    """The plan generator returned a payload that is not a usable plan."""
