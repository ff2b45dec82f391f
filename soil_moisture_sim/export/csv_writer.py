"""CSV export functionality for the soil moisture simulation."""

import csv
import io
import json
from pathlib import Path
from typing import Dict, List, Optional, TextIO, TYPE_CHECKING

from ..model.params import PARAM_NAMES, VOLUMETRIC_FACTOR

if TYPE_CHECKING:
    from ..model.history import HistoryEntry
    from ..model.snapshot import SavedSimulation


FIELDNAMES = [
    'timeStep',
    'row',
    'col',
    'moisture_percentage',
    'moisture_volumetric',
    'cell_diffusionCoefficient',
    'cell_evapotranspirationRate',
    'cell_irrigationRate',
    'cell_moistureThreshold',
    'tapStatus',
    'overrideTap',
    'parameterChanges',
    'userActions',
]


def _compact(value) -> str:
    return json.dumps(value, separators=(',', ':'))


def _flag(value: bool) -> str:
    return 'true' if value else 'false'


def entry_rows(entry: "HistoryEntry") -> List[Dict]:
    """
    One row per cell of a history entry.

    Per-cell parameters are resolved against the params in effect at that
    entry. Parameter changes are repeated on every row of the step; user
    actions only on the row of the cell they target.
    """
    changes = _compact(dict(entry.parameter_changes)) if entry.parameter_changes else ''
    grid = entry.grid
    rows = []
    for cell in grid.cells():
        index = grid.cell_index(cell.row, cell.col)
        actions = [a.to_dict() for a in entry.user_actions if a.cell_index == index]
        row = {
            'timeStep': entry.time_step,
            'row': cell.row,
            'col': cell.col,
            'moisture_percentage': round(cell.moisture * 100, 2),
            'moisture_volumetric': round(cell.moisture * VOLUMETRIC_FACTOR, 4),
        }
        for name in PARAM_NAMES:
            row[f'cell_{name}'] = cell.effective(name, entry.params)
        row.update({
            'tapStatus': _flag(cell.tap_status),
            'overrideTap': _flag(cell.override_tap),
            'parameterChanges': changes,
            'userActions': _compact(actions) if actions else '',
        })
        rows.append(row)
    return rows


class CSVWriter:
    """
    Exports history entries to CSV format incrementally.

    Output format:
        timeStep,row,col,moisture_percentage,...,parameterChanges,userActions
        0,0,0,50.0,0.25,0.1,0.02,0.05,0.2,false,false,,
        ...
    """

    def __init__(self, output_path: Optional[Path] = None,
                 stream: Optional[TextIO] = None):
        if (output_path is None) == (stream is None):
            raise ValueError("Provide exactly one of output_path or stream")
        self.output_path = Path(output_path) if output_path is not None else None
        self.file: Optional[TextIO] = stream
        self.writer: Optional[csv.DictWriter] = None
        self._owns_file = stream is None
        self._is_open = False

    def open(self) -> None:
        """Initialize file and write header."""
        if self._owns_file:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.file = open(self.output_path, 'w', newline='')
        self.writer = csv.DictWriter(self.file, fieldnames=FIELDNAMES)
        self.writer.writeheader()
        self._is_open = True

    def append(self, entry: "HistoryEntry") -> None:
        """Write all cell rows for one time step."""
        if not self._is_open:
            self.open()
        self.writer.writerows(entry_rows(entry))
        self.file.flush()

    def close(self) -> None:
        """Close file handle."""
        if self.file and self._owns_file:
            self.file.close()
            self.file = None
        self.writer = None
        self._is_open = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def simulation_to_csv(saved: "SavedSimulation") -> bytes:
    """Render a saved run's full history as UTF-8 CSV bytes."""
    buffer = io.StringIO(newline='')
    with CSVWriter(stream=buffer) as writer:
        for entry in saved.history:
            writer.append(entry)
    return buffer.getvalue().encode('utf-8')
