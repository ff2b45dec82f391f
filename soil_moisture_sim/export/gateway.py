"""
PersistenceGateway interface for pluggable storage of saved simulations.

The controller consumes this interface to save, load and export runs by an
opaque string id. Two implementations are included:

1. InMemoryGateway - dict-based storage, data lost on exit (tests, scripts)
2. JsonFileGateway - one pretty-printed JSON document per run in a directory

All methods are async so slow I/O never blocks grid stepping: the controller
keeps accepting steps and edits while a save is outstanding. Failures are
reported once as PersistenceError; there is no retry.

Usage pattern:
    gateway = JsonFileGateway("simulations")
    simulation_id = await controller.save(gateway)
    data = await gateway.export(simulation_id, "csv")
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from itertools import count
from pathlib import Path
from typing import Dict
from uuid import uuid4

from .csv_writer import simulation_to_csv
from ..errors import NotFoundError, PersistenceError
from ..model.snapshot import SavedSimulation

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "csv")


class PersistenceGateway(ABC):
    """Abstract storage backend for saved simulations.

    Subclasses implement the raw document store (save_document /
    load_document); decoding and export formatting are shared.
    """

    @abstractmethod
    async def save_document(self, document: Dict) -> str:
        """Store a serialised run and return its new id."""

    @abstractmethod
    async def load_document(self, simulation_id: str) -> Dict:
        """Return the stored document. Raises NotFoundError if missing."""

    async def save(self, saved: SavedSimulation) -> str:
        simulation_id = await self.save_document(saved.to_dict())
        logger.info("Stored simulation %s (%s)", simulation_id, saved.name)
        return simulation_id

    async def load(self, simulation_id: str) -> SavedSimulation:
        """Load and decode a run. Corrupt documents raise PersistenceError."""
        document = await self.load_document(simulation_id)
        try:
            return SavedSimulation.from_dict(document)
        except (KeyError, TypeError, ValueError, IndexError, AttributeError) as exc:
            raise PersistenceError(
                f"Simulation {simulation_id} is corrupt: {exc!r}",
                simulation_id=simulation_id,
            ) from exc

    async def export(self, simulation_id: str, fmt: str) -> bytes:
        """Export a stored run as 'json' (raw document) or 'csv'."""
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Invalid export format: {fmt}")
        if fmt == "json":
            document = await self.load_document(simulation_id)
            return json.dumps(document, indent=2).encode("utf-8")
        saved = await self.load(simulation_id)
        return simulation_to_csv(saved)


class InMemoryGateway(PersistenceGateway):
    """Dict-backed gateway with incrementing numeric ids."""

    def __init__(self):
        self.documents: Dict[str, str] = {}
        self._ids = count(1)

    async def save_document(self, document: Dict) -> str:
        simulation_id = str(next(self._ids))
        # Stored as text so later mutation of the caller's dict cannot leak in
        self.documents[simulation_id] = json.dumps(document)
        return simulation_id

    async def load_document(self, simulation_id: str) -> Dict:
        if simulation_id not in self.documents:
            raise NotFoundError(simulation_id)
        return json.loads(self.documents[simulation_id])


class JsonFileGateway(PersistenceGateway):
    """File-based gateway: {base_path}/{id}.json, written off the event loop."""

    def __init__(self, base_path: Path | str = "simulations"):
        self.base_path = Path(base_path)

    def _path(self, simulation_id: str) -> Path:
        if not simulation_id or Path(simulation_id).name != simulation_id:
            raise NotFoundError(simulation_id)
        return self.base_path / f"{simulation_id}.json"

    async def save_document(self, document: Dict) -> str:
        simulation_id = uuid4().hex
        path = self._path(simulation_id)
        text = json.dumps(document, indent=2)
        try:
            await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_text, text, "utf-8")
        except OSError as exc:
            raise PersistenceError(f"Failed to save simulation: {exc}",
                                   simulation_id=simulation_id) from exc
        return simulation_id

    async def load_document(self, simulation_id: str) -> Dict:
        path = self._path(simulation_id)
        try:
            text = await asyncio.to_thread(path.read_text, "utf-8")
        except FileNotFoundError:
            raise NotFoundError(simulation_id) from None
        except OSError as exc:
            raise PersistenceError(f"Failed to read simulation {simulation_id}: {exc}",
                                   simulation_id=simulation_id) from exc
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Simulation {simulation_id} is not valid JSON",
                                   simulation_id=simulation_id) from exc
