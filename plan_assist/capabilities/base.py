import logging
from typing import Any, Dict, Optional

from ..errors import UpstreamUnavailable
from ..prompt_executor import PromptExecutor

_LOGGER = logging.getLogger(__name__)


class Capability:
    """Base class for a reusable reasoning or execution skill."""

    name: str = "generic"
    description: str = ""

    def __init__(self, hub, config, executor: Optional[PromptExecutor] = None):
        self.hub = hub
        self.config = config
        self._executor = executor

    @property
    def executor(self) -> PromptExecutor:
        if self._executor is None:
            self._executor = PromptExecutor(self.config)
        return self._executor

    async def _safe_prompt(
        self,
        prompt_def: Dict[str, Any],
        variables: Dict[str, Any],
        temperature: Optional[float] = None,
    ) -> Optional[Dict[str, Any]]:
        """Run a prompt through the shared PromptExecutor; None if the model is down."""
        try:
            _LOGGER.debug(
                "[Capability:%s] Executing prompt with vars=%s",
                self.name,
                list(variables.keys()),
            )
            data = await self.executor.run(prompt_def, variables, temperature=temperature)
            _LOGGER.debug("[Capability:%s] Prompt result=%s", self.name, data)
            return data
        except UpstreamUnavailable:
            _LOGGER.warning("[Capability:%s] Prompt execution failed", self.name)
            return None
