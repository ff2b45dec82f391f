"""State snapshot dataclasses for the presentation layer."""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .grid import MoistureGrid
from .params import VOLUMETRIC_FACTOR, SimulationParams


@dataclass(frozen=True)
class MoisturePoint:
    """One sample of the selected cell's moisture time series."""
    time: int
    moisture: float

    @property
    def moisture_volumetric(self) -> float:
        return self.moisture * VOLUMETRIC_FACTOR

    def to_dict(self) -> Dict:
        return {
            'time': self.time,
            'moisture': self.moisture,
            'moistureVolumetric': self.moisture_volumetric,
        }

    @classmethod
    def from_dict(cls, raw: Dict) -> "MoisturePoint":
        return cls(time=int(raw['time']), moisture=float(raw['moisture']))


@dataclass(frozen=True, eq=False)
class SimulationState:
    """Read-only view of the controller at one instant."""
    time_step: int
    is_running: bool
    params: SimulationParams
    time_step_size: float
    grid: MoistureGrid
    selected_cell: Optional[Tuple[int, int]]
    moisture_series: Tuple[MoisturePoint, ...]
    has_unsaved_changes: bool
    simulation_id: Optional[str]

    @property
    def metrics(self) -> Dict[str, float]:
        """Grid-wide summary figures (mean/min/max moisture, tap counts)."""
        moisture = self.grid.moisture
        return {
            'mean_moisture': float(np.mean(moisture)),
            'min_moisture': float(np.min(moisture)),
            'max_moisture': float(np.max(moisture)),
            'taps_on': int(np.count_nonzero(self.grid.tap_status)),
            'taps_overridden': int(np.count_nonzero(self.grid.override_tap)),
            'cells_with_overrides': int(np.count_nonzero(
                np.any(~np.isnan(self.grid.param_overrides), axis=0))),
        }
