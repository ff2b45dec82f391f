"""Time-step history used for replay, step-backward and export."""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .actions import UserAction
from .grid import MoistureGrid
from .params import SimulationParams, canonical_param_name, validate_param
from ..errors import BackwardBoundaryError


def as_mapping(value: Any, what: str) -> Mapping:
    """Return `value` if it is a JSON object, else raise ValueError."""
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be an object, got {type(value).__name__}")
    return value


def _as_list(value: Any, what: str) -> List:
    if not isinstance(value, list):
        raise ValueError(f"{what} must be a list, got {type(value).__name__}")
    return value


class LogPhase(Enum):
    """
    STAGING_HEAD: only entry 0 exists and it absorbs edits in place.
    SEALED: at least one step has been appended; entries are immutable.
    """
    STAGING_HEAD = "staging_head"
    SEALED = "sealed"


@dataclass(frozen=True, eq=False)
class HistoryEntry:
    """Point-in-time record of one logical time step."""
    time_step: int
    grid: MoistureGrid
    params: SimulationParams
    parameter_changes: Mapping[str, float] = field(default_factory=dict)
    user_actions: Tuple[UserAction, ...] = ()

    def __post_init__(self):
        # Logged changes are read-only
        object.__setattr__(self, 'parameter_changes',
                           MappingProxyType(dict(self.parameter_changes)))
        object.__setattr__(self, 'user_actions', tuple(self.user_actions))

    def to_dict(self) -> Dict:
        return {
            'timeStep': self.time_step,
            'grid': self.grid.to_cells(),
            'params': self.params.to_dict(),
            'parameterChanges': dict(self.parameter_changes),
            'userActions': [action.to_dict() for action in self.user_actions],
        }

    @classmethod
    def from_dict(cls, raw: Dict,
                  fallback_params: Optional[SimulationParams] = None) -> "HistoryEntry":
        raw = as_mapping(raw, 'history entry')
        params_raw = raw.get('params')
        if params_raw is not None:
            params = SimulationParams.from_dict(as_mapping(params_raw, 'params'))
        else:
            params = fallback_params or SimulationParams()
        return cls(
            time_step=int(raw['timeStep']),
            grid=MoistureGrid.from_cells(raw['grid']),
            params=params,
            parameter_changes={
                canonical_param_name(name): validate_param(name, value)
                for name, value in as_mapping(raw.get('parameterChanges') or {},
                                              'parameterChanges').items()
            },
            user_actions=tuple(
                UserAction.from_dict(as_mapping(a, 'user action'))
                for a in _as_list(raw.get('userActions') or [], 'userActions')
            ),
        )


class HistoryLog:
    """
    Append-only log of HistoryEntry with a mutable staging head.

    Time steps always form the contiguous sequence 0, 1, ..., n.
    """

    def __init__(self, head: HistoryEntry):
        if head.time_step != 0:
            raise RuntimeError(f"History must start at time step 0, got {head.time_step}")
        self._entries: List[HistoryEntry] = [head]
        self._phase = LogPhase.STAGING_HEAD

    @classmethod
    def from_entries(cls, entries: Iterable[HistoryEntry]) -> "HistoryLog":
        """Rebuild a log, checking that time steps are contiguous."""
        entries = list(entries)
        if not entries:
            raise ValueError("History must contain at least the time step 0 entry")
        log = cls(entries[0])
        for entry in entries[1:]:
            log.append(entry)
        return log

    @property
    def phase(self) -> LogPhase:
        return self._phase

    @property
    def head(self) -> HistoryEntry:
        return self._entries[0]

    @property
    def last(self) -> HistoryEntry:
        return self._entries[-1]

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> HistoryEntry:
        return self._entries[index]

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def time_steps(self) -> List[int]:
        return [entry.time_step for entry in self._entries]

    def append(self, entry: HistoryEntry) -> None:
        """Append the next step. A wrong time step is a caller bug."""
        expected = self.last.time_step + 1
        if entry.time_step != expected:
            raise RuntimeError(
                f"History append out of order: expected time step {expected}, "
                f"got {entry.time_step}"
            )
        if entry.grid.shape != self.head.grid.shape:
            raise RuntimeError(
                f"Grid shape changed from {self.head.grid.shape} to {entry.grid.shape}"
            )
        self._entries.append(entry)
        self._phase = LogPhase.SEALED

    def truncate_last(self) -> HistoryEntry:
        """Drop and return the newest entry. Entry 0 is never removed."""
        if len(self._entries) == 1:
            raise BackwardBoundaryError(self.last.time_step)
        removed = self._entries.pop()
        if len(self._entries) == 1:
            self._phase = LogPhase.STAGING_HEAD
        return removed

    def merge_into_head(self, changes: Dict[str, float],
                        actions: Iterable[UserAction],
                        grid: Optional[MoistureGrid] = None,
                        params: Optional[SimulationParams] = None) -> HistoryEntry:
        """
        Fold edits made at time step 0 into entry 0.

        Parameter changes overwrite by key. An action replaces the existing
        one with the same (kind, cell_index, param), else it is appended.
        """
        if self._phase is not LogPhase.STAGING_HEAD:
            raise RuntimeError("merge_into_head is only valid at time step 0")
        head = self.head
        merged_changes = dict(head.parameter_changes)
        merged_changes.update(changes)
        merged_actions = list(head.user_actions)
        for action in actions:
            for i, existing in enumerate(merged_actions):
                if existing.key == action.key:
                    merged_actions[i] = action
                    break
            else:
                merged_actions.append(action)
        self._entries[0] = replace(
            head,
            grid=grid if grid is not None else head.grid,
            params=params if params is not None else head.params,
            parameter_changes=merged_changes,
            user_actions=tuple(merged_actions),
        )
        return self._entries[0]
