"""Per-time-step moisture update rule."""

import numpy as np
from scipy.ndimage import convolve

from .grid import MoistureGrid
from .params import SimulationParams


# Von Neumann neighbourhood (4-connected), centre excluded
NEIGHBOR_KERNEL = np.array([
    [0.0, 1.0, 0.0],
    [1.0, 0.0, 1.0],
    [0.0, 1.0, 0.0],
], dtype=np.float64)


def _neighbor_sum(field: np.ndarray) -> np.ndarray:
    """Sum over existing orthogonal neighbours; outside the grid counts as 0."""
    return convolve(field, NEIGHBOR_KERNEL, mode='constant', cval=0.0)


def apply_step(grid: MoistureGrid, params: SimulationParams,
               dt_hours: float) -> MoistureGrid:
    """
    Advance the grid by one time step. Pure: reads only `grid`.

    Per cell:
    1. Resolve effective parameters (override, else current global).
    2. tap = moisture < threshold unless the tap is pinned by the user.
    3. Base delta: +irrigation*dt if tap on, else -ET*dt.
    4. Diffusion: sum over neighbours n of
       (D_cell + D_n) / 2 * (m_n - m_cell) * dt
    5. Clamp moisture + delta to [0, 1].

    Expanding step 4 over all neighbours gives
        0.5 * [D_c * (sum m_n - k * m_c) + (sum D_n m_n - m_c * sum D_n)]
    with k the neighbour count, so each term is one convolution of the
    previous snapshot.
    """
    m = grid.moisture
    diffusion = grid.effective_parameter('diffusionCoefficient', params)
    et_rate = grid.effective_parameter('evapotranspirationRate', params)
    irrigation = grid.effective_parameter('irrigationRate', params)
    threshold = grid.effective_parameter('moistureThreshold', params)

    tap = np.where(grid.override_tap, grid.tap_status, m < threshold)

    base = np.where(tap, irrigation * dt_hours, -et_rate * dt_hours)

    count = _neighbor_sum(np.ones_like(m))
    exchange = 0.5 * (
        diffusion * (_neighbor_sum(m) - count * m)
        + (_neighbor_sum(diffusion * m) - m * _neighbor_sum(diffusion))
    ) * dt_hours

    moisture = np.clip(m + (base + exchange), 0.0, 1.0)

    return grid.evolved(moisture, tap)
