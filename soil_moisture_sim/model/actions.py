"""Discrete user-initiated grid edits."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from .params import canonical_param_name


class ActionKind(Enum):
    """Kinds of user edit; values are the wire names."""
    TOGGLE_TAP = "ToggleTap"
    RESET_TAP_CONTROL = "ResetTapControl"
    SET_MOISTURE = "SetMoisture"
    SET_CELL_PARAMETER = "SetCellParameter"
    RESET_CELL_PARAMETER = "ResetCellParameter"
    RESET_ALL_CELL_PARAMETERS = "ResetAllCellParameters"


# Kinds that target a single cell
CELL_KINDS = frozenset({
    ActionKind.TOGGLE_TAP,
    ActionKind.RESET_TAP_CONTROL,
    ActionKind.SET_MOISTURE,
    ActionKind.SET_CELL_PARAMETER,
    ActionKind.RESET_CELL_PARAMETER,
})

# Kinds that name a parameter
PARAM_KINDS = frozenset({
    ActionKind.SET_CELL_PARAMETER,
    ActionKind.RESET_CELL_PARAMETER,
})


@dataclass(frozen=True)
class UserAction:
    """One logged edit. cell_index is row * cols + col."""
    kind: ActionKind
    cell_index: Optional[int] = None
    param: Optional[str] = None
    value: Optional[float] = None

    def __post_init__(self):
        if self.kind in CELL_KINDS and self.cell_index is None:
            raise ValueError(f"{self.kind.value} requires a cell index")
        if self.kind in PARAM_KINDS:
            if self.param is None:
                raise ValueError(f"{self.kind.value} requires a parameter name")
            object.__setattr__(self, 'param', canonical_param_name(self.param))
        if self.kind in (ActionKind.SET_MOISTURE, ActionKind.SET_CELL_PARAMETER) \
                and self.value is None:
            raise ValueError(f"{self.kind.value} requires a value")

    @property
    def key(self) -> Tuple[ActionKind, Optional[int], Optional[str]]:
        """Identity used to collapse repeated edits at time step 0."""
        return (self.kind, self.cell_index, self.param)

    def to_dict(self) -> Dict:
        data = {'action': self.kind.value}
        if self.cell_index is not None:
            data['cellIndex'] = self.cell_index
        if self.param is not None:
            data['param'] = self.param
        if self.value is not None:
            data['value'] = self.value
        return data

    @classmethod
    def from_dict(cls, raw: Dict) -> "UserAction":
        cell_index = raw.get('cellIndex')
        value = raw.get('value')
        return cls(
            kind=ActionKind(raw['action']),
            cell_index=int(cell_index) if cell_index is not None else None,
            param=raw.get('param'),
            value=float(value) if value is not None else None,
        )
