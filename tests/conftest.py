"""Shared fixtures for soil moisture simulation tests."""

import pytest

from soil_moisture_sim.config import ParamsConfig, SetupConfig, SimulationConfig
from soil_moisture_sim.model.engine import SimulationController


def make_config(rows=2, cols=2, moisture=0.5, distribution="uniform", seed=1,
                **params) -> SimulationConfig:
    config = SimulationConfig(
        setup=SetupConfig(rows=rows, cols=cols, initial_moisture=distribution,
                          uniform_moisture=moisture, seed=seed),
        parameters=ParamsConfig(**params),
    )
    config.name = "test_run"
    return config


@pytest.fixture
def controller():
    """Initialized 2x2 controller at uniform 50% moisture, no diffusion."""
    ctrl = SimulationController(make_config(
        diffusion_coefficient=0.0,
        irrigation_rate=0.1,
        evapotranspiration_rate=0.05,
        moisture_threshold=0.2,
    ))
    ctrl.initialize()
    return ctrl


@pytest.fixture
def random_controller():
    ctrl = SimulationController(make_config(rows=4, cols=5, distribution="random", seed=7))
    ctrl.initialize()
    return ctrl
