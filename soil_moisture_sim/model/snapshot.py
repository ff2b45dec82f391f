"""Persisted form of a simulation run."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .grid import MoistureGrid
from .history import HistoryEntry, as_mapping
from .params import SimulationParams, validate_time_step_size
from .state import MoisturePoint
from ..config import COLOR_SCHEMES, MOISTURE_UNITS, DisplayConfig, SetupConfig


@dataclass(eq=False)
class SavedSimulation:
    """
    Everything needed to rebuild a controller: setup, params, display
    settings, the full history, current time step, step size and the
    selected-cell moisture series.

    Serialises to the camelCase JSON document used by the storage backend.
    """
    name: str
    setup: SetupConfig
    simulation_params: SimulationParams
    display: DisplayConfig
    history: List[HistoryEntry]
    time_step: int
    time_step_size: float
    moisture_history: List[MoisturePoint] = field(default_factory=list)
    initial_grid: Optional[MoistureGrid] = None
    selected_cell: Optional[Tuple[int, int]] = None

    def to_dict(self) -> Dict:
        data = {
            'name': self.name,
            'setupParams': {
                'gridSize': {'rows': self.setup.rows, 'cols': self.setup.cols},
                'initialMoistureDistribution': self.setup.initial_moisture.capitalize(),
                'initialMoistureValue': self.setup.uniform_moisture,
            },
            'simulationParams': self.simulation_params.to_dict(),
            'displaySettings': {
                'colorScheme': self.display.color_scheme,
                'displayValuesInCells': self.display.display_values_in_cells,
                'moistureUnit': self.display.moisture_unit,
            },
            'gridHistory': [entry.to_dict() for entry in self.history],
            'timeStep': self.time_step,
            'timeStepSize': self.time_step_size,
            'moistureHistory': [point.to_dict() for point in self.moisture_history],
        }
        if self.initial_grid is not None:
            data['initialGrid'] = self.initial_grid.to_cells()
        if self.selected_cell is not None:
            data['selectedCell'] = {'row': self.selected_cell[0],
                                    'col': self.selected_cell[1]}
        return data

    @classmethod
    def from_dict(cls, raw: Dict) -> "SavedSimulation":
        """
        Decode a stored document.

        Every grid must have the saved dimensions and every stored value must
        lie in the domain a live edit would accept. Raises KeyError, TypeError
        or ValueError on malformed input; the controller reports these as a
        failed restore.
        """
        raw = as_mapping(raw, 'simulation')
        setup_raw = as_mapping(raw['setupParams'], 'setupParams')
        grid_size = as_mapping(setup_raw['gridSize'], 'gridSize')
        setup = SetupConfig(
            rows=int(grid_size['rows']),
            cols=int(grid_size['cols']),
            initial_moisture=str(
                setup_raw.get('initialMoistureDistribution', 'Uniform')).lower(),
            uniform_moisture=float(setup_raw.get('initialMoistureValue') or 0.0),
        )
        shape = (setup.rows, setup.cols)
        params = SimulationParams.from_dict(
            as_mapping(raw['simulationParams'], 'simulationParams'))

        display_raw = as_mapping(raw.get('displaySettings') or {}, 'displaySettings')
        display = DisplayConfig(
            color_scheme=display_raw.get('colorScheme', 'default'),
            display_values_in_cells=bool(display_raw.get('displayValuesInCells', True)),
            moisture_unit=display_raw.get('moistureUnit', 'percentage'),
        )
        if display.color_scheme not in COLOR_SCHEMES:
            raise ValueError(f"Unknown color scheme: {display.color_scheme}")
        if display.moisture_unit not in MOISTURE_UNITS:
            raise ValueError(f"Unknown moisture unit: {display.moisture_unit}")

        history_raw = raw['gridHistory']
        if not isinstance(history_raw, list) or not history_raw:
            raise ValueError("Saved simulation has an empty history")
        history = [HistoryEntry.from_dict(entry, fallback_params=params)
                   for entry in history_raw]
        for entry in history:
            if entry.grid.shape != shape:
                raise ValueError(
                    f"History entry {entry.time_step} has grid shape "
                    f"{entry.grid.shape}, expected {shape}"
                )
        time_step = int(raw.get('timeStep', history[-1].time_step))
        if time_step != history[-1].time_step:
            raise ValueError(
                f"Saved time step {time_step} does not match last history "
                f"entry {history[-1].time_step}"
            )

        initial_grid = None
        if raw.get('initialGrid') is not None:
            initial_grid = MoistureGrid.from_cells(raw['initialGrid'])
            if initial_grid.shape != shape:
                raise ValueError(
                    f"Initial grid has shape {initial_grid.shape}, expected {shape}")

        selected = raw.get('selectedCell')
        if selected:
            selected = as_mapping(selected, 'selectedCell')
            selected = (int(selected['row']), int(selected['col']))

        return cls(
            name=str(raw.get('name', '')),
            setup=setup,
            simulation_params=params,
            display=display,
            history=history,
            time_step=time_step,
            time_step_size=validate_time_step_size(raw.get('timeStepSize', 1.0)),
            moisture_history=[MoisturePoint.from_dict(as_mapping(p, 'moisture point'))
                              for p in raw.get('moistureHistory') or []],
            initial_grid=initial_grid,
            selected_cell=selected or None,
        )
