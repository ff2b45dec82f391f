"""Global simulation parameters and their numeric domains."""

import math
from dataclasses import dataclass, replace
from typing import Dict, Tuple

from ..errors import InvalidParameterError


# Wire names, in the order used by per-cell override arrays
PARAM_NAMES: Tuple[str, ...] = (
    'diffusionCoefficient',
    'evapotranspirationRate',
    'irrigationRate',
    'moistureThreshold',
)

_FIELDS = {
    'diffusionCoefficient': 'diffusion_coefficient',
    'evapotranspirationRate': 'evapotranspiration_rate',
    'irrigationRate': 'irrigation_rate',
    'moistureThreshold': 'moisture_threshold',
}
_ALIASES = {field: name for name, field in _FIELDS.items()}

# Inclusive (min, max) per parameter
PARAM_BOUNDS: Dict[str, Tuple[float, float]] = {
    'diffusionCoefficient': (0.0, 1.0),
    'evapotranspirationRate': (0.0, 0.5),
    'irrigationRate': (0.0, 0.5),
    'moistureThreshold': (0.0, 1.0),
}

TIME_STEP_BOUNDS: Tuple[float, float] = (0.1, 24.0)

# Fixed porosity-like scaling from normalized saturation to m3/m3
VOLUMETRIC_FACTOR = 0.5


def canonical_param_name(name: str) -> str:
    """Map a wire name or snake_case field name to the wire name."""
    if name in _FIELDS:
        return name
    if name in _ALIASES:
        return _ALIASES[name]
    raise InvalidParameterError(name, None, "unknown parameter")


def param_index(name: str) -> int:
    """Position of a parameter in the per-cell override arrays."""
    return PARAM_NAMES.index(canonical_param_name(name))


def _check_range(name: str, value: float, bounds: Tuple[float, float]) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(name, value, "not a number") from None
    if not math.isfinite(value):
        raise InvalidParameterError(name, value, "not finite")
    low, high = bounds
    if not low <= value <= high:
        raise InvalidParameterError(name, value, f"must be in [{low}, {high}]")
    return value


def validate_param(name: str, value: float) -> float:
    """Return `value` as float if it lies in the parameter's domain."""
    name = canonical_param_name(name)
    return _check_range(name, value, PARAM_BOUNDS[name])


def validate_time_step_size(hours: float) -> float:
    return _check_range('timeStepSize', hours, TIME_STEP_BOUNDS)


@dataclass(frozen=True)
class SimulationParams:
    """The four global rates and thresholds of the update rule."""
    diffusion_coefficient: float = 0.1     # unitless
    evapotranspiration_rate: float = 0.02  # moisture fraction per hour
    irrigation_rate: float = 0.05          # moisture fraction per hour
    moisture_threshold: float = 0.2        # moisture fraction

    def __post_init__(self):
        for name in PARAM_NAMES:
            validate_param(name, getattr(self, _FIELDS[name]))

    def get(self, name: str) -> float:
        return getattr(self, _FIELDS[canonical_param_name(name)])

    def with_value(self, name: str, value: float) -> "SimulationParams":
        """Return a copy with one parameter replaced (validated)."""
        name = canonical_param_name(name)
        return replace(self, **{_FIELDS[name]: validate_param(name, value)})

    def as_vector(self) -> Tuple[float, ...]:
        return tuple(self.get(name) for name in PARAM_NAMES)

    def to_dict(self) -> Dict[str, float]:
        return {name: self.get(name) for name in PARAM_NAMES}

    @classmethod
    def from_dict(cls, raw: Dict[str, float]) -> "SimulationParams":
        defaults = cls()
        return cls(**{
            _FIELDS[name]: float(raw.get(name, defaults.get(name)))
            for name in PARAM_NAMES
        })
