"""Tests for the immutable moisture grid."""

import numpy as np
import pytest

from soil_moisture_sim.errors import InvalidParameterError
from soil_moisture_sim.model.grid import MoistureGrid
from soil_moisture_sim.model.params import SimulationParams


def test_uniform_grid_and_initial_taps():
    params = SimulationParams(moisture_threshold=0.6)
    grid = MoistureGrid.create(3, 4, params, distribution='uniform', value=0.5)
    assert grid.shape == (3, 4)
    assert np.all(grid.moisture == 0.5)
    # 0.5 is below the 0.6 threshold, so every tap starts on
    assert grid.tap_status.all()
    assert not grid.override_tap.any()
    assert not grid.has_overrides()


def test_random_grid_is_reproducible_with_seed():
    params = SimulationParams()
    a = MoistureGrid.create(5, 5, params, 'random', rng=np.random.default_rng(3))
    b = MoistureGrid.create(5, 5, params, 'random', rng=np.random.default_rng(3))
    assert a.equals(b)
    assert np.all((a.moisture >= 0) & (a.moisture <= 1))
    assert np.array_equal(a.tap_status, a.moisture < params.moisture_threshold)


def test_unknown_distribution():
    with pytest.raises(ValueError):
        MoistureGrid.create(2, 2, SimulationParams(), distribution='gaussian')


def test_non_positive_dimensions():
    with pytest.raises(InvalidParameterError):
        MoistureGrid.create(0, 3, SimulationParams())


def test_arrays_are_read_only():
    grid = MoistureGrid.create(2, 2, SimulationParams())
    assert not grid.moisture.flags.writeable
    with pytest.raises(ValueError):
        grid.moisture[0, 0] = 1.0


def test_cell_index_and_position():
    grid = MoistureGrid.create(3, 4, SimulationParams())
    assert grid.cell_index(2, 1) == 9
    assert grid.position(9) == (2, 1)
    with pytest.raises(InvalidParameterError):
        grid.cell_index(3, 0)
    with pytest.raises(InvalidParameterError):
        grid.position(12)


def test_edit_leaves_original_untouched_and_shares_arrays():
    grid = MoistureGrid.create(2, 2, SimulationParams(), value=0.5)
    edited = grid.with_moisture(0, 1, 0.8)
    assert grid.moisture[0, 1] == 0.5
    assert edited.moisture[0, 1] == 0.8
    assert edited.tap_status is grid.tap_status
    assert edited.param_overrides is grid.param_overrides


@pytest.mark.parametrize("value,expected", [(1.5, 1.0), (-0.2, 0.0), (0.3, 0.3)])
def test_manual_moisture_is_clamped(value, expected):
    grid = MoistureGrid.create(1, 1, SimulationParams())
    assert grid.with_moisture(0, 0, value).moisture[0, 0] == expected


def test_manual_moisture_rejects_nan():
    grid = MoistureGrid.create(1, 1, SimulationParams())
    with pytest.raises(InvalidParameterError):
        grid.with_moisture(0, 0, float('nan'))


def test_toggle_pins_tap_and_reset_releases_it():
    grid = MoistureGrid.create(2, 2, SimulationParams(), value=0.5)
    toggled = grid.with_tap_toggled(1, 0)
    assert toggled.tap_status[1, 0]
    assert toggled.override_tap[1, 0]
    released = toggled.with_tap_control_reset(1, 0)
    assert not released.override_tap[1, 0]
    # Tap value is left as is until the next step recomputes it
    assert released.tap_status[1, 0]


def test_cell_parameter_override_resolution():
    params = SimulationParams(irrigation_rate=0.05)
    grid = MoistureGrid.create(2, 2, params).with_cell_parameter(0, 0, 'irrigationRate', 0.3)
    effective = grid.effective_parameter('irrigationRate', params)
    assert effective[0, 0] == 0.3
    assert effective[1, 1] == 0.05
    # Non-overridden cells follow later global changes
    later = params.with_value('irrigationRate', 0.1)
    assert grid.effective_parameter('irrigationRate', later)[1, 1] == 0.1
    assert grid.cell(0, 0).overrides == {'irrigationRate': 0.3}
    assert grid.cell(0, 0).effective('irrigation_rate', later) == 0.3


def test_cell_parameter_override_uses_global_bounds():
    grid = MoistureGrid.create(2, 2, SimulationParams())
    with pytest.raises(InvalidParameterError):
        grid.with_cell_parameter(0, 0, 'evapotranspirationRate', 0.8)
    with pytest.raises(InvalidParameterError):
        grid.with_cell_parameter(0, 0, 'porosity', 0.1)


def test_reset_cell_parameters():
    grid = (MoistureGrid.create(2, 2, SimulationParams())
            .with_cell_parameter(0, 0, 'diffusionCoefficient', 0.5)
            .with_cell_parameter(1, 1, 'moistureThreshold', 0.4))
    single = grid.without_cell_parameter(0, 0, 'diffusionCoefficient')
    assert single.cell(0, 0).overrides == {}
    assert single.cell(1, 1).overrides == {'moistureThreshold': 0.4}
    assert not grid.without_cell_parameters().has_overrides()


def test_wire_format_preserves_cells():
    grid = (MoistureGrid.create(2, 3, SimulationParams(), value=0.25)
            .with_tap_toggled(0, 2)
            .with_cell_parameter(1, 1, 'irrigationRate', 0.2))
    cells = grid.to_cells()
    assert cells[0][2]['tapStatus'] is True
    assert cells[0][2]['overrideTap'] is True
    assert cells[1][1]['irrigationRate'] == 0.2
    assert cells[0][0]['moistureVolumetric'] == 0.125
    assert 'irrigationRate' not in cells[0][0]
    assert MoistureGrid.from_cells(cells).equals(grid)


def test_from_cells_rejects_ragged_rows():
    cells = MoistureGrid.create(2, 2, SimulationParams()).to_cells()
    cells[1].pop()
    with pytest.raises(ValueError):
        MoistureGrid.from_cells(cells)


def test_evolved_keeps_dimensions():
    grid = MoistureGrid.create(2, 2, SimulationParams())
    with pytest.raises(ValueError):
        grid.evolved(np.zeros((3, 2)), np.zeros((3, 2), dtype=bool))
