"""Simulation controller for the soil moisture grid."""

import logging
import time
from dataclasses import asdict, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

import numpy as np

from .actions import ActionKind, CELL_KINDS, UserAction
from .diffusion import apply_step
from .grid import MoistureGrid
from .history import HistoryEntry, HistoryLog, LogPhase
from .params import (
    SimulationParams,
    canonical_param_name,
    validate_time_step_size,
)
from .snapshot import SavedSimulation
from .state import MoisturePoint, SimulationState
from ..config import DisplayConfig, SetupConfig, SimulationConfig
from ..errors import BackwardBoundaryError, PersistenceError, RestoreError

if TYPE_CHECKING:
    from ..export.gateway import PersistenceGateway

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "csv")


class ControllerMode(Enum):
    """IDLE until a grid exists; then PAUSED or RUNNING."""
    IDLE = "idle"
    PAUSED = "paused"
    RUNNING = "running"


class SimulationController:
    """
    Sole mutator of the grid and its history.

    Implements:
    1. Initialisation from setup parameters or a saved run
    2. Run/pause and single-step forward/backward
    3. User edits and global parameter changes, logged per time step
    4. Selected-cell moisture tracking
    5. Save/load/export through a persistence gateway

    Edits made at time step 0 collapse into the staging head entry; once the
    run has advanced, every edit becomes its own event-only time step.
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config if config is not None else SimulationConfig()
        self.mode = ControllerMode.IDLE
        self.name = self.config.name
        self.setup: Optional[SetupConfig] = None
        self.display: DisplayConfig = self.config.display
        self.params = SimulationParams(**asdict(self.config.parameters))
        self.time_step_size = validate_time_step_size(self.config.run.time_step_size)
        self.time_step = 0

        self.grid: Optional[MoistureGrid] = None
        self.history: Optional[HistoryLog] = None
        self._initial_grid: Optional[MoistureGrid] = None

        self.selected_cell: Optional[Tuple[int, int]] = None
        self._series: List[MoisturePoint] = []

        self.simulation_id: Optional[str] = None
        self._unsaved = False
        self._revision = 0

    # --- lifecycle -------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self.mode is not ControllerMode.IDLE

    @property
    def is_running(self) -> bool:
        return self.mode is ControllerMode.RUNNING

    @property
    def has_unsaved_changes(self) -> bool:
        return self._unsaved

    @property
    def moisture_series(self) -> Tuple[MoisturePoint, ...]:
        return tuple(self._series)

    def _require_ready(self) -> None:
        if self.mode is ControllerMode.IDLE:
            raise RuntimeError("Simulation has not been initialized")

    def _require_idle(self) -> None:
        if self.mode is not ControllerMode.IDLE:
            raise RuntimeError("Simulation is already initialized")

    def initialize(self, setup: Optional[SetupConfig] = None,
                   params: Optional[SimulationParams] = None) -> SimulationState:
        """Generate a fresh grid and seed the history with time step 0."""
        self._require_idle()
        setup = setup if setup is not None else self.config.setup
        if params is not None:
            self.params = params
        rng = np.random.default_rng(setup.seed)
        grid = MoistureGrid.create(
            setup.rows, setup.cols, self.params,
            distribution=setup.initial_moisture,
            value=setup.uniform_moisture,
            rng=rng,
        )
        self.setup = setup
        self._start_history(grid)
        self.mode = ControllerMode.PAUSED
        self._mark_dirty()
        logger.info("Initialized new %dx%d simulation (%s moisture)",
                    setup.rows, setup.cols, setup.initial_moisture)
        return self.current_state()

    def restore(self, saved: SavedSimulation,
                simulation_id: Optional[str] = None) -> SimulationState:
        """Rebuild grid and history from a saved run."""
        self._require_idle()
        try:
            history = HistoryLog.from_entries(saved.history)
            if saved.selected_cell is not None:
                history.last.grid.cell_index(*saved.selected_cell)
            time_step_size = validate_time_step_size(saved.time_step_size)
            initial_grid = (saved.initial_grid if saved.initial_grid is not None
                            else history.head.grid)
            if initial_grid.shape != history.head.grid.shape:
                raise ValueError(f"Initial grid has shape {initial_grid.shape}, "
                                 f"expected {history.head.grid.shape}")
        except (RuntimeError, ValueError) as exc:
            logger.warning("Saved simulation %s is corrupt: %s", simulation_id, exc)
            raise RestoreError(simulation_id, exc) from exc

        self.name = saved.name
        self.setup = saved.setup
        self.display = saved.display
        self.history = history
        self.grid = history.last.grid
        self.params = saved.simulation_params
        self.time_step = history.last.time_step
        self.time_step_size = time_step_size
        self._initial_grid = initial_grid
        self.selected_cell = saved.selected_cell
        self._series = [p for p in saved.moisture_history if p.time <= self.time_step]
        self.simulation_id = simulation_id
        self.mode = ControllerMode.PAUSED
        self._unsaved = False
        logger.info("Loaded saved simulation %s at time step %d",
                    simulation_id, self.time_step)
        return self.current_state()

    async def load(self, gateway: "PersistenceGateway",
                   simulation_id: str) -> SimulationState:
        """Fetch a saved run from the gateway and restore it."""
        self._require_idle()
        try:
            saved = await gateway.load(simulation_id)
        except PersistenceError as exc:
            logger.warning("Failed to load simulation %s: %s", simulation_id, exc)
            raise RestoreError(simulation_id, exc) from exc
        return self.restore(saved, simulation_id=simulation_id)

    def _start_history(self, grid: MoistureGrid) -> None:
        self.grid = grid
        self._initial_grid = grid
        self.time_step = 0
        self.history = HistoryLog(HistoryEntry(time_step=0, grid=grid,
                                               params=self.params))

    def start(self) -> None:
        self._require_ready()
        if self.mode is not ControllerMode.RUNNING:
            self.mode = ControllerMode.RUNNING
            logger.info("Simulation started at time step %d", self.time_step)

    def pause(self) -> None:
        self._require_ready()
        if self.mode is ControllerMode.RUNNING:
            self.mode = ControllerMode.PAUSED
            logger.info("Simulation paused at time step %d", self.time_step)

    def toggle(self) -> bool:
        """Start if paused, pause if running. Returns the new running flag."""
        if self.is_running:
            self.pause()
        else:
            self.start()
        return self.is_running

    # --- stepping ----------------------------------------------------------------

    def advance(self) -> SimulationState:
        """Apply the update rule once and append the result as a new step."""
        self._require_ready()
        self.grid = apply_step(self.grid, self.params, self.time_step_size)
        self._append_entry({}, ())
        self._mark_dirty()
        logger.debug("Advanced to time step %d", self.time_step)
        return self.current_state()

    def step_backward(self) -> SimulationState:
        """Undo the newest time step, whether a tick or an edit."""
        self._require_ready()
        if self.time_step == 0:
            logger.warning("Cannot step backward: already at initial state")
            raise BackwardBoundaryError(self.time_step)
        self.history.truncate_last()
        previous = self.history.last
        self.grid = previous.grid
        self.params = previous.params
        self.time_step = previous.time_step
        while self._series and self._series[-1].time > self.time_step:
            self._series.pop()
        self._mark_dirty()
        logger.debug("Stepped back to time step %d", self.time_step)
        return self.current_state()

    def reset(self) -> SimulationState:
        """Return to the grid the run was initialized with."""
        self._require_ready()
        self.mode = ControllerMode.PAUSED
        initial = self._initial_grid
        self._start_history(initial)
        self._series = []
        self._record_sample()
        self._mark_dirty()
        logger.info("Simulation reset")
        return self.current_state()

    # --- edits -------------------------------------------------------------------

    def apply_user_action(self, action: UserAction) -> SimulationState:
        """Apply one edit to the grid and log it."""
        self._require_ready()
        grid = self.grid
        if action.kind in CELL_KINDS:
            row, col = grid.position(action.cell_index)

        if action.kind is ActionKind.TOGGLE_TAP:
            grid = grid.with_tap_toggled(row, col)
        elif action.kind is ActionKind.RESET_TAP_CONTROL:
            grid = grid.with_tap_control_reset(row, col)
        elif action.kind is ActionKind.SET_MOISTURE:
            grid = grid.with_moisture(row, col, action.value)
            # Log the value actually applied after clamping
            action = replace(action, value=float(grid.moisture[row, col]))
        elif action.kind is ActionKind.SET_CELL_PARAMETER:
            grid = grid.with_cell_parameter(row, col, action.param, action.value)
        elif action.kind is ActionKind.RESET_CELL_PARAMETER:
            grid = grid.without_cell_parameter(row, col, action.param)
        elif action.kind is ActionKind.RESET_ALL_CELL_PARAMETERS:
            grid = grid.without_cell_parameters()

        self.grid = grid
        self._log_event({}, (action,))
        logger.debug("Applied %s at time step %d", action.kind.value, self.time_step)
        return self.current_state()

    def _index(self, row: int, col: int) -> int:
        self._require_ready()
        return self.grid.cell_index(row, col)

    def toggle_tap(self, row: int, col: int) -> SimulationState:
        return self.apply_user_action(
            UserAction(ActionKind.TOGGLE_TAP, self._index(row, col)))

    def reset_tap_control(self, row: int, col: int) -> SimulationState:
        return self.apply_user_action(
            UserAction(ActionKind.RESET_TAP_CONTROL, self._index(row, col)))

    def set_moisture(self, row: int, col: int, value: float) -> SimulationState:
        return self.apply_user_action(
            UserAction(ActionKind.SET_MOISTURE, self._index(row, col),
                       value=value))

    def set_cell_parameter(self, row: int, col: int,
                           param: str, value: float) -> SimulationState:
        return self.apply_user_action(
            UserAction(ActionKind.SET_CELL_PARAMETER, self._index(row, col),
                       param=param, value=value))

    def reset_cell_parameter(self, row: int, col: int, param: str) -> SimulationState:
        return self.apply_user_action(
            UserAction(ActionKind.RESET_CELL_PARAMETER, self._index(row, col),
                       param=param))

    def reset_all_cell_parameters(self) -> SimulationState:
        return self.apply_user_action(UserAction(ActionKind.RESET_ALL_CELL_PARAMETERS))

    def set_global_param(self, name: str, value: float) -> SimulationState:
        """Change one global parameter and log it as a parameter change."""
        self._require_ready()
        name = canonical_param_name(name)
        self.params = self.params.with_value(name, value)
        self._log_event({name: self.params.get(name)}, ())
        logger.debug("Set %s=%s at time step %d", name, value, self.time_step)
        return self.current_state()

    def set_time_step_size(self, hours: float) -> None:
        """Hours simulated per step; applies to subsequent steps only."""
        self.time_step_size = validate_time_step_size(hours)
        if self.is_ready:
            self._mark_dirty()

    # --- selected cell -------------------------------------------------------------

    def select_cell(self, row: int, col: int) -> None:
        """Start tracking one cell's moisture, beginning at the current step."""
        self._require_ready()
        self.grid.cell_index(row, col)
        self.selected_cell = (row, col)
        self._series = []
        self._record_sample()

    def clear_selection(self) -> None:
        self.selected_cell = None
        self._series = []

    def _record_sample(self) -> None:
        if self.selected_cell is None:
            return
        row, col = self.selected_cell
        point = MoisturePoint(time=self.time_step,
                              moisture=float(self.grid.moisture[row, col]))
        if self._series and self._series[-1].time == self.time_step:
            self._series[-1] = point
        else:
            self._series.append(point)

    # --- history plumbing --------------------------------------------------------

    def _mark_dirty(self) -> None:
        self._unsaved = True
        self._revision += 1

    def _append_entry(self, changes: Dict[str, float],
                      actions: Tuple[UserAction, ...]) -> None:
        entry = HistoryEntry(
            time_step=self.time_step + 1,
            grid=self.grid,
            params=self.params,
            parameter_changes=dict(changes),
            user_actions=tuple(actions),
        )
        self.history.append(entry)
        self.time_step = entry.time_step
        self._record_sample()

    def _log_event(self, changes: Dict[str, float],
                   actions: Tuple[UserAction, ...]) -> None:
        """Merge into the staging head at step 0, else append an event-only step."""
        if self.history.phase is LogPhase.STAGING_HEAD:
            self.history.merge_into_head(changes, actions,
                                         grid=self.grid, params=self.params)
            self._record_sample()
        else:
            self._append_entry(changes, actions)
        self._mark_dirty()

    # --- views & persistence -------------------------------------------------------

    def current_state(self) -> SimulationState:
        """Create immutable snapshot of current simulation state."""
        self._require_ready()
        return SimulationState(
            time_step=self.time_step,
            is_running=self.is_running,
            params=self.params,
            time_step_size=self.time_step_size,
            grid=self.grid,
            selected_cell=self.selected_cell,
            moisture_series=tuple(self._series),
            has_unsaved_changes=self._unsaved,
            simulation_id=self.simulation_id,
        )

    def to_saved(self, name: Optional[str] = None) -> SavedSimulation:
        self._require_ready()
        name = name or self.name or f"Simulation_{int(time.time() * 1000)}"
        return SavedSimulation(
            name=name,
            setup=self.setup,
            simulation_params=self.params,
            display=self.display,
            history=list(self.history),
            time_step=self.time_step,
            time_step_size=self.time_step_size,
            moisture_history=list(self._series),
            initial_grid=self._initial_grid,
            selected_cell=self.selected_cell,
        )

    async def save(self, gateway: "PersistenceGateway",
                   name: Optional[str] = None) -> str:
        """
        Persist the current run and return its id.

        Stepping and editing may continue while the call is outstanding; the
        unsaved flag is only cleared if nothing changed in the meantime.
        """
        saved = self.to_saved(name)
        revision = self._revision
        try:
            simulation_id = await gateway.save(saved)
        except PersistenceError as exc:
            logger.warning("Failed to save simulation: %s", exc)
            raise
        self.simulation_id = simulation_id
        self.name = saved.name
        if self._revision == revision:
            self._unsaved = False
        logger.info("Saved simulation %s at time step %d",
                    simulation_id, saved.time_step)
        return simulation_id

    async def export(self, gateway: "PersistenceGateway", fmt: str) -> bytes:
        """Export the run, saving it first if it has unsaved changes."""
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Invalid export format: {fmt}")
        if self._unsaved or self.simulation_id is None:
            await self.save(gateway)
        return await gateway.export(self.simulation_id, fmt)
