"""Periodic driver that advances a running simulation."""

import asyncio
import logging
from typing import Callable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .model.engine import SimulationController
    from .model.state import SimulationState

logger = logging.getLogger(__name__)


class SimulationTicker:
    """
    Calls controller.advance() every `interval` seconds while it is running.

    Runs on the caller's event loop, so ticks and user edits are serialised
    with no locking. Pausing the controller stops future ticks; a tick that
    has already started always completes. Only one run() may be active.
    """

    def __init__(self, controller: "SimulationController", interval: float = 1.0,
                 on_step: Optional[Callable[["SimulationState"], None]] = None):
        if interval < 0:
            raise ValueError(f"Tick interval must be non-negative, got {interval}")
        self.controller = controller
        self.interval = interval
        self.on_step = on_step
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    async def run(self, max_steps: Optional[int] = None) -> int:
        """Start the controller and tick until paused or max_steps reached.

        Returns the number of steps taken.
        """
        if self._active:
            raise RuntimeError("Ticker is already running")
        self._active = True
        steps = 0
        try:
            self.controller.start()
            while self.controller.is_running:
                if max_steps is not None and steps >= max_steps:
                    self.controller.pause()
                    break
                await asyncio.sleep(self.interval)
                if not self.controller.is_running:
                    break
                state = self.controller.advance()
                steps += 1
                if self.on_step is not None:
                    self.on_step(state)
        finally:
            self._active = False
        logger.debug("Ticker stopped after %d steps", steps)
        return steps
