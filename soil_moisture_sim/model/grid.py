"""Moisture grid for the soil moisture simulation."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from .params import (
    PARAM_NAMES,
    VOLUMETRIC_FACTOR,
    SimulationParams,
    canonical_param_name,
    param_index,
    validate_param,
)
from ..errors import InvalidParameterError


def _frozen(array: np.ndarray) -> np.ndarray:
    """Mark array read-only so grids can share it safely."""
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class Cell:
    """Read-only view of one grid position."""
    row: int
    col: int
    moisture: float
    tap_status: bool
    override_tap: bool
    overrides: Dict[str, float] = field(default_factory=dict)

    @property
    def moisture_volumetric(self) -> float:
        return self.moisture * VOLUMETRIC_FACTOR

    def effective(self, name: str, params: SimulationParams) -> float:
        """Per-cell override if present, else the current global value."""
        name = canonical_param_name(name)
        if name in self.overrides:
            return self.overrides[name]
        return params.get(name)

    def to_dict(self) -> Dict:
        data = {
            'row': self.row,
            'col': self.col,
            'moisture': self.moisture,
            'moistureVolumetric': self.moisture_volumetric,
            'tapStatus': self.tap_status,
            'overrideTap': self.override_tap,
        }
        data.update(self.overrides)
        return data


@dataclass(frozen=True, eq=False)
class MoistureGrid:
    """
    Immutable rows x cols moisture grid.

    Array layout is [row, col]. Per-cell parameter overrides live in one
    (4, rows, cols) array ordered like PARAM_NAMES; NaN means "inherit the
    global value at evaluation time". All arrays are read-only and every
    edit returns a new grid that shares the arrays it did not touch.
    """
    moisture: np.ndarray
    tap_status: np.ndarray
    override_tap: np.ndarray
    param_overrides: np.ndarray

    @classmethod
    def from_arrays(cls, moisture: np.ndarray,
                    tap_status: Optional[np.ndarray] = None,
                    override_tap: Optional[np.ndarray] = None,
                    param_overrides: Optional[np.ndarray] = None) -> "MoistureGrid":
        """Build a grid from (copied) arrays, filling defaults."""
        moisture = np.clip(np.array(moisture, dtype=np.float64), 0.0, 1.0)
        if moisture.ndim != 2 or 0 in moisture.shape:
            raise InvalidParameterError('gridSize', moisture.shape,
                                        "grid must be a non-empty 2-D array")
        shape = moisture.shape
        if tap_status is None:
            tap_status = np.zeros(shape, dtype=bool)
        if override_tap is None:
            override_tap = np.zeros(shape, dtype=bool)
        if param_overrides is None:
            param_overrides = np.full((len(PARAM_NAMES),) + shape, np.nan)
        return cls(
            moisture=_frozen(moisture),
            tap_status=_frozen(np.array(tap_status, dtype=bool).reshape(shape)),
            override_tap=_frozen(np.array(override_tap, dtype=bool).reshape(shape)),
            param_overrides=_frozen(
                np.array(param_overrides, dtype=np.float64)
                .reshape((len(PARAM_NAMES),) + shape)
            ),
        )

    @classmethod
    def create(cls, rows: int, cols: int, params: SimulationParams,
               distribution: str = 'uniform', value: float = 0.5,
               rng: Optional[np.random.Generator] = None) -> "MoistureGrid":
        """
        Generate a fresh grid.

        distribution is 'uniform' (every cell at `value`) or 'random'
        (uniform draws in [0, 1) from `rng`). Taps start on wherever
        moisture is below the global threshold.
        """
        if rows < 1 or cols < 1:
            raise InvalidParameterError('gridSize', (rows, cols),
                                        "rows and cols must be positive")
        distribution = distribution.lower()
        if distribution == 'uniform':
            moisture = np.full((rows, cols), float(value))
        elif distribution == 'random':
            rng = rng if rng is not None else np.random.default_rng()
            moisture = rng.random((rows, cols))
        else:
            raise ValueError(f"Unknown moisture distribution: {distribution}")
        moisture = np.clip(moisture, 0.0, 1.0)
        return cls.from_arrays(moisture,
                               tap_status=moisture < params.moisture_threshold)

    @property
    def rows(self) -> int:
        return self.moisture.shape[0]

    @property
    def cols(self) -> int:
        return self.moisture.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.moisture.shape

    @property
    def moisture_volumetric(self) -> np.ndarray:
        return self.moisture * VOLUMETRIC_FACTOR

    def cell_index(self, row: int, col: int) -> int:
        self._check_bounds(row, col)
        return row * self.cols + col

    def position(self, cell_index: int) -> Tuple[int, int]:
        """Inverse of cell_index."""
        if not 0 <= cell_index < self.rows * self.cols:
            raise InvalidParameterError('cellIndex', cell_index, "outside grid")
        return divmod(cell_index, self.cols)

    def _check_bounds(self, row: int, col: int) -> None:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise InvalidParameterError('cell', (row, col),
                                        f"outside {self.rows}x{self.cols} grid")

    def effective_parameter(self, name: str, params: SimulationParams) -> np.ndarray:
        """Per-cell values of a parameter, resolved against `params` now."""
        overrides = self.param_overrides[param_index(name)]
        return np.where(np.isnan(overrides), params.get(name), overrides)

    def cell(self, row: int, col: int) -> Cell:
        self._check_bounds(row, col)
        overrides = {
            name: float(self.param_overrides[i, row, col])
            for i, name in enumerate(PARAM_NAMES)
            if not np.isnan(self.param_overrides[i, row, col])
        }
        return Cell(
            row=row,
            col=col,
            moisture=float(self.moisture[row, col]),
            tap_status=bool(self.tap_status[row, col]),
            override_tap=bool(self.override_tap[row, col]),
            overrides=overrides,
        )

    def cells(self) -> Iterator[Cell]:
        """Iterate cells in row-major order."""
        for row in range(self.rows):
            for col in range(self.cols):
                yield self.cell(row, col)

    def has_overrides(self) -> bool:
        return bool(np.any(~np.isnan(self.param_overrides)))

    def equals(self, other: "MoistureGrid") -> bool:
        return (
            self.shape == other.shape
            and np.array_equal(self.moisture, other.moisture)
            and np.array_equal(self.tap_status, other.tap_status)
            and np.array_equal(self.override_tap, other.override_tap)
            and np.array_equal(self.param_overrides, other.param_overrides,
                               equal_nan=True)
        )

    # --- copy-on-write edits -------------------------------------------------

    def _replace(self, **arrays) -> "MoistureGrid":
        fields = {
            'moisture': self.moisture,
            'tap_status': self.tap_status,
            'override_tap': self.override_tap,
            'param_overrides': self.param_overrides,
        }
        for key, array in arrays.items():
            fields[key] = _frozen(array)
        return MoistureGrid(**fields)

    def evolved(self, moisture: np.ndarray, tap_status: np.ndarray) -> "MoistureGrid":
        """New grid with fresh moisture/tap layers; user settings are shared."""
        if moisture.shape != self.shape or tap_status.shape != self.shape:
            raise ValueError("Grid dimensions are fixed for the grid's lifetime")
        return self._replace(moisture=np.array(moisture, dtype=np.float64),
                             tap_status=np.array(tap_status, dtype=bool))

    def with_tap_toggled(self, row: int, col: int) -> "MoistureGrid":
        """Flip the tap and pin it against automatic recomputation."""
        self._check_bounds(row, col)
        tap = self.tap_status.copy()
        tap[row, col] = not tap[row, col]
        pinned = self.override_tap.copy()
        pinned[row, col] = True
        return self._replace(tap_status=tap, override_tap=pinned)

    def with_tap_control_reset(self, row: int, col: int) -> "MoistureGrid":
        self._check_bounds(row, col)
        pinned = self.override_tap.copy()
        pinned[row, col] = False
        return self._replace(override_tap=pinned)

    def with_moisture(self, row: int, col: int, value: float) -> "MoistureGrid":
        """Set moisture directly, clamped to [0, 1]."""
        self._check_bounds(row, col)
        value = float(value)
        if np.isnan(value):
            raise InvalidParameterError('moisture', value, "not a number")
        moisture = self.moisture.copy()
        moisture[row, col] = min(1.0, max(0.0, value))
        return self._replace(moisture=moisture)

    def with_cell_parameter(self, row: int, col: int,
                            name: str, value: float) -> "MoistureGrid":
        """Override one parameter for one cell (same bounds as globals)."""
        self._check_bounds(row, col)
        value = validate_param(name, value)
        overrides = self.param_overrides.copy()
        overrides[param_index(name), row, col] = value
        return self._replace(param_overrides=overrides)

    def without_cell_parameter(self, row: int, col: int, name: str) -> "MoistureGrid":
        self._check_bounds(row, col)
        overrides = self.param_overrides.copy()
        overrides[param_index(name), row, col] = np.nan
        return self._replace(param_overrides=overrides)

    def without_cell_parameters(self) -> "MoistureGrid":
        return self._replace(param_overrides=np.full(self.param_overrides.shape, np.nan))

    # --- serialisation --------------------------------------------------------

    def to_cells(self) -> List[List[Dict]]:
        """Nested row-major list of cell dicts (wire format)."""
        return [
            [self.cell(row, col).to_dict() for col in range(self.cols)]
            for row in range(self.rows)
        ]

    @classmethod
    def from_cells(cls, raw: List[List[Dict]]) -> "MoistureGrid":
        """
        Rebuild a grid from the nested wire format.

        Stored per-cell overrides are held to the same bounds as edits.
        Raises ValueError (or InvalidParameterError) on malformed input.
        """
        if not isinstance(raw, list) or not all(isinstance(r, list) for r in raw):
            raise ValueError("Grid must be a list of rows")
        rows = len(raw)
        cols = len(raw[0]) if rows else 0
        if rows == 0 or cols == 0 or any(len(r) != cols for r in raw):
            raise ValueError("Grid must be a non-empty rectangular list of rows")
        moisture = np.zeros((rows, cols))
        tap = np.zeros((rows, cols), dtype=bool)
        pinned = np.zeros((rows, cols), dtype=bool)
        overrides = np.full((len(PARAM_NAMES), rows, cols), np.nan)
        for r, row_cells in enumerate(raw):
            for c, cell in enumerate(row_cells):
                if not isinstance(cell, dict):
                    raise ValueError(f"Cell ({r}, {c}) must be an object")
                moisture[r, c] = float(cell['moisture'])
                if not np.isfinite(moisture[r, c]):
                    raise InvalidParameterError('moisture', cell['moisture'], "not finite")
                tap[r, c] = bool(cell.get('tapStatus', False))
                pinned[r, c] = bool(cell.get('overrideTap', False))
                for i, name in enumerate(PARAM_NAMES):
                    if cell.get(name) is not None:
                        overrides[i, r, c] = validate_param(name, cell[name])
        return cls.from_arrays(moisture, tap, pinned, overrides)
