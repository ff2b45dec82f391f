"""Configuration dataclasses and YAML loader for the soil moisture simulation."""

from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path
import yaml


@dataclass
class SetupConfig:
    rows: int = 10
    cols: int = 10
    initial_moisture: str = "uniform"   # "uniform" or "random"
    uniform_moisture: float = 0.5       # fraction (0.0-1.0)
    seed: Optional[int] = None


@dataclass
class ParamsConfig:
    diffusion_coefficient: float = 0.1
    evapotranspiration_rate: float = 0.02
    irrigation_rate: float = 0.05
    moisture_threshold: float = 0.2


@dataclass
class RunConfig:
    max_steps: int = 24
    time_step_size: float = 1.0   # hours
    tick_interval: float = 0.0    # wall-clock seconds between steps


@dataclass
class DisplayConfig:
    color_scheme: str = "default"       # "default", "blue" or "grayscale"
    display_values_in_cells: bool = True
    moisture_unit: str = "percentage"   # "percentage" or "volumetric"


@dataclass
class SimulationConfig:
    setup: SetupConfig = field(default_factory=SetupConfig)
    parameters: ParamsConfig = field(default_factory=ParamsConfig)
    run: RunConfig = field(default_factory=RunConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    name: Optional[str] = None

    # Export flags (can be overridden by CLI)
    csv_enabled: bool = True
    json_enabled: bool = True
    snapshot_enabled: bool = True
    gif_enabled: bool = False
    quiet: bool = False
    out_dir: Path = field(default_factory=lambda: Path("./output"))
    store_dir: Path = field(default_factory=lambda: Path("./simulations"))


COLOR_SCHEMES = ("default", "blue", "grayscale")
MOISTURE_UNITS = ("percentage", "volumetric")


def _parse_setup(raw: dict) -> SetupConfig:
    """Parse grid and initial moisture settings.

    Initial uniform moisture is given in percent, as in the setup form.
    """
    grid_raw = raw.get('grid', {})
    setup_raw = raw.get('setup', {})
    distribution = setup_raw.get('initial_moisture', 'uniform').lower()
    if distribution not in ('uniform', 'random'):
        raise ValueError(f"Unknown initial moisture distribution: {distribution}")
    return SetupConfig(
        rows=int(grid_raw.get('rows', 10)),
        cols=int(grid_raw.get('cols', 10)),
        initial_moisture=distribution,
        uniform_moisture=float(setup_raw.get('uniform_moisture', 50)) / 100,
        seed=setup_raw.get('seed'),
    )


def _parse_display(display_raw: dict) -> DisplayConfig:
    display = DisplayConfig(
        color_scheme=display_raw.get('color_scheme', 'default'),
        display_values_in_cells=display_raw.get('display_values_in_cells', True),
        moisture_unit=display_raw.get('moisture_unit', 'percentage'),
    )
    if display.color_scheme not in COLOR_SCHEMES:
        raise ValueError(f"Unknown color scheme: {display.color_scheme}")
    if display.moisture_unit not in MOISTURE_UNITS:
        raise ValueError(f"Unknown moisture unit: {display.moisture_unit}")
    return display


def load_config(config_path: Path) -> SimulationConfig:
    """Load and validate YAML configuration file."""
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    params_raw = raw.get('parameters', {})
    defaults = ParamsConfig()
    parameters = ParamsConfig(
        diffusion_coefficient=params_raw.get(
            'diffusion_coefficient', defaults.diffusion_coefficient),
        evapotranspiration_rate=params_raw.get(
            'evapotranspiration_rate', defaults.evapotranspiration_rate),
        irrigation_rate=params_raw.get('irrigation_rate', defaults.irrigation_rate),
        moisture_threshold=params_raw.get(
            'moisture_threshold', defaults.moisture_threshold),
    )

    sim_raw = raw.get('simulation', {})
    run = RunConfig(
        max_steps=sim_raw.get('max_steps', 24),
        time_step_size=sim_raw.get('time_step_size', 1.0),
        tick_interval=sim_raw.get('tick_interval', 0.0),
    )

    # Parse export config (optional)
    export_raw = raw.get('export', {})
    storage_raw = raw.get('storage', {})

    return SimulationConfig(
        setup=_parse_setup(raw),
        parameters=parameters,
        run=run,
        display=_parse_display(raw.get('display', {})),
        name=raw.get('name'),
        csv_enabled=export_raw.get('csv', True),
        json_enabled=export_raw.get('json', True),
        snapshot_enabled=export_raw.get('snapshot', True),
        gif_enabled=export_raw.get('gif', False),
        store_dir=Path(storage_raw.get('path', './simulations')),
    )
