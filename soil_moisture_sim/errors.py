"""Error taxonomy for the soil moisture simulation."""

from typing import Optional


class SimulationError(Exception):
    """Base class for recoverable simulation errors."""


class InvalidParameterError(SimulationError, ValueError):
    """Raised when a value falls outside its numeric domain.

    The offending mutation is rejected before any state changes.
    """

    def __init__(self, name: str, value: object, reason: str) -> None:
        self.name = name
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for {name}: {value!r} ({reason})")


class BackwardBoundaryError(SimulationError):
    """Raised when stepping backward from time step 0."""

    def __init__(self, time_step: int = 0) -> None:
        self.time_step = time_step
        super().__init__(
            f"Cannot step backward from time step {time_step}: "
            "already at initial state"
        )


class PersistenceError(SimulationError):
    """Raised when a save, load or export call fails."""

    def __init__(self, message: str, *, simulation_id: Optional[str] = None) -> None:
        self.simulation_id = simulation_id
        super().__init__(message)


class NotFoundError(PersistenceError):
    """Raised when no snapshot is stored under the requested id."""

    def __init__(self, simulation_id: str) -> None:
        super().__init__(f"Simulation not found: {simulation_id}",
                         simulation_id=simulation_id)


class RestoreError(SimulationError):
    """Raised when a persisted snapshot cannot be obtained or decoded.

    The controller stays idle; it never falls back to a fresh grid.
    """

    def __init__(self, simulation_id: Optional[str], underlying: Exception) -> None:
        self.simulation_id = simulation_id
        self.underlying = underlying
        super().__init__(
            f"Failed to restore simulation {simulation_id}: {underlying}"
        )
