"""Model package for the soil moisture simulation."""

from .params import SimulationParams, PARAM_NAMES, PARAM_BOUNDS
from .grid import Cell, MoistureGrid
from .diffusion import apply_step
from .actions import ActionKind, UserAction
from .history import HistoryEntry, HistoryLog, LogPhase
from .state import MoisturePoint, SimulationState
from .snapshot import SavedSimulation
from .engine import ControllerMode, SimulationController

__all__ = [
    'SimulationParams',
    'PARAM_NAMES',
    'PARAM_BOUNDS',
    'Cell',
    'MoistureGrid',
    'apply_step',
    'ActionKind',
    'UserAction',
    'HistoryEntry',
    'HistoryLog',
    'LogPhase',
    'MoisturePoint',
    'SimulationState',
    'SavedSimulation',
    'ControllerMode',
    'SimulationController',
]
