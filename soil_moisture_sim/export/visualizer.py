"""Visualization and export for the soil moisture simulation."""

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
from matplotlib.colors import hsv_to_rgb
from pathlib import Path
from typing import List, Sequence, TYPE_CHECKING
from PIL import Image
import io

from ..model.params import VOLUMETRIC_FACTOR

if TYPE_CHECKING:
    from ..config import DisplayConfig
    from ..model.state import MoisturePoint, SimulationState


def moisture_colors(moisture: np.ndarray, color_scheme: str) -> np.ndarray:
    """
    Map moisture in [0, 1] to an RGB image.

    default:   hue 0 (red, dry) to 240 (blue, wet), full saturation
    blue:      hue 240, lightness 100% (dry) to 50% (wet)
    grayscale: lightness 100% (dry) to 0% (wet)
    """
    m = np.clip(moisture, 0.0, 1.0)
    hsv = np.zeros(m.shape + (3,))
    if color_scheme == 'blue':
        # HSL(240, 100%, l) with l in [0.5, 1] == HSV(240, 2(1-l), 1)
        lightness = 1.0 - 0.5 * m
        hsv[..., 0] = 240 / 360
        hsv[..., 1] = 2 * (1 - lightness)
        hsv[..., 2] = 1.0
    elif color_scheme == 'grayscale':
        hsv[..., 2] = 1.0 - m
    else:
        hsv[..., 0] = m * 240 / 360
        hsv[..., 1] = 1.0
        hsv[..., 2] = 1.0
    return hsv_to_rgb(hsv)


def format_moisture(moisture: float, unit: str) -> str:
    if unit == 'percentage':
        return f"{moisture * 100:.1f}%"
    return f"{moisture * VOLUMETRIC_FACTOR:.3f}"


class Visualizer:
    """
    Generates visual outputs using matplotlib.

    Supports:
    - Single PNG heatmap snapshots
    - Animated GIF compilation
    - Moisture time-series chart for the selected cell
    """

    # Color scheme
    COLORS = {
        'tap_on': '#F1C40F',     # Yellow
        'override': '#E74C3C',   # Red
        'grid': '#7F8C8D',       # Gray
        'series': '#2980B9',     # Blue
    }

    def __init__(self, display: "DisplayConfig"):
        self.display = display
        self.frames: List[Image.Image] = []

    def _create_figure(self, state: "SimulationState") -> plt.Figure:
        """Create matplotlib figure for state visualization."""
        grid = state.grid
        aspect = grid.cols / grid.rows
        fig_height = 6
        fig_width = max(6, fig_height * aspect)
        fig, ax = plt.subplots(figsize=(fig_width, fig_height))

        image = moisture_colors(grid.moisture, self.display.color_scheme)
        ax.imshow(image, origin='upper', aspect='equal',
                  extent=[-0.5, grid.cols - 0.5, grid.rows - 0.5, -0.5])

        # Tap and override markers
        for row, col in zip(*np.nonzero(grid.tap_status)):
            ax.add_patch(plt.Rectangle((col - 0.45, row - 0.45), 0.9, 0.9,
                                       fill=False, edgecolor=self.COLORS['tap_on'],
                                       linewidth=2))
        for row, col in zip(*np.nonzero(grid.override_tap)):
            ax.add_patch(plt.Rectangle((col - 0.35, row - 0.35), 0.7, 0.7,
                                       fill=False, edgecolor=self.COLORS['override'],
                                       linewidth=1.5))

        if self.display.display_values_in_cells:
            fontsize = max(4, min(9, int(60 / max(grid.rows, grid.cols))))
            for cell in grid.cells():
                ax.text(cell.col, cell.row,
                        format_moisture(cell.moisture, self.display.moisture_unit),
                        ha='center', va='center', fontsize=fontsize,
                        color='white' if cell.moisture > 0.5 else 'black')

        # Title and labels
        metrics = state.metrics
        ax.set_title(f'Time step {state.time_step} | '
                     f'Mean moisture: {format_moisture(metrics["mean_moisture"], self.display.moisture_unit)} | '
                     f'Taps on: {metrics["taps_on"]}')
        ax.set_xlabel('Column')
        ax.set_ylabel('Row')

        ax.set_xlim(-0.5, grid.cols - 0.5)
        ax.set_ylim(grid.rows - 0.5, -0.5)

        # Legend
        legend_elements = [
            plt.Line2D([0], [0], marker='s', color='w', label='Tap on',
                       markerfacecolor='none', markeredgecolor=self.COLORS['tap_on'],
                       markersize=10),
            plt.Line2D([0], [0], marker='s', color='w', label='Manual tap control',
                       markerfacecolor='none', markeredgecolor=self.COLORS['override'],
                       markersize=10),
        ]
        ax.legend(handles=legend_elements, loc='upper right', fontsize=8)

        plt.tight_layout()
        return fig

    def buffer_frame(self, state: "SimulationState") -> None:
        """Store frame for GIF generation."""
        fig = self._create_figure(state)

        # Convert to PIL Image
        buf = io.BytesIO()
        fig.savefig(buf, format='png', dpi=80)
        buf.seek(0)
        img = Image.open(buf).copy()
        self.frames.append(img)
        buf.close()
        plt.close(fig)

    def save_snapshot(self, state: "SimulationState", output_path: Path) -> None:
        """Save single PNG image of current state."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig = self._create_figure(state)
        fig.savefig(output_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

    def save_moisture_chart(self, series: Sequence["MoisturePoint"],
                            cell: tuple, output_path: Path) -> None:
        """Line chart of the tracked cell's moisture over time."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig, ax = plt.subplots(figsize=(8, 4))
        times = [p.time for p in series]
        if self.display.moisture_unit == 'percentage':
            values = [p.moisture * 100 for p in series]
            ax.set_ylabel('Moisture (%)')
            ax.set_ylim(0, 100)
        else:
            values = [p.moisture_volumetric for p in series]
            ax.set_ylabel('Moisture (m³/m³)')
            ax.set_ylim(0, VOLUMETRIC_FACTOR)
        ax.plot(times, values, color=self.COLORS['series'], marker='o', markersize=3)
        ax.set_xlabel('Time step')
        ax.set_title(f'Cell ({cell[0]}, {cell[1]}) moisture')
        ax.grid(True, alpha=0.3)
        plt.tight_layout()
        fig.savefig(output_path, dpi=120)
        plt.close(fig)

    def generate_gif(self, output_path: Path, fps: int = 10) -> None:
        """Compile buffered frames into animated GIF."""
        if not self.frames:
            return

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        duration = int(1000 / fps)  # milliseconds per frame

        self.frames[0].save(
            output_path,
            save_all=True,
            append_images=self.frames[1:],
            duration=duration,
            loop=0
        )

    def clear_frames(self) -> None:
        """Clear buffered frames."""
        self.frames.clear()
