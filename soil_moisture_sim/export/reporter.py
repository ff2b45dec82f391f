"""Summary report generation for the soil moisture simulation."""

from typing import Dict, Optional, TYPE_CHECKING
from pathlib import Path

if TYPE_CHECKING:
    from ..model.state import SimulationState


class Reporter:
    """Generates summary statistics and formatted text report."""

    def __init__(self, config_path: str, seed: Optional[int]):
        self.config_path = config_path
        self.seed = seed
        self.peak_moisture = 0.0
        self.lowest_moisture = 1.0
        self.irrigation_cell_steps = 0
        self.dry_steps = 0

    def update(self, state: "SimulationState") -> None:
        """Accumulate metrics per step."""
        metrics = state.metrics
        self.peak_moisture = max(self.peak_moisture, metrics['max_moisture'])
        self.lowest_moisture = min(self.lowest_moisture, metrics['min_moisture'])
        self.irrigation_cell_steps += metrics['taps_on']

        # Any cell fully dried out
        if metrics['min_moisture'] <= 0.0:
            self.dry_steps += 1

    def generate_summary(self, final_state: "SimulationState",
                         output_files: Dict[str, Optional[Path]],
                         simulation_id: Optional[str] = None) -> str:
        """Returns formatted text report."""
        metrics = final_state.metrics
        grid = final_state.grid
        params = final_state.params
        total_cells = grid.rows * grid.cols

        lines = [
            "",
            "=" * 80,
            "                    SOIL MOISTURE SIMULATION REPORT",
            "=" * 80,
            f"Configuration: {self.config_path}",
            f"Random Seed: {self.seed if self.seed is not None else 'None (random)'}",
            f"Simulation ID: {simulation_id or '(not saved)'}",
            "",
            "SIMULATION METRICS",
            "-" * 40,
            f"Grid:                  {grid.rows} x {grid.cols}",
            f"Time Steps:            {final_state.time_step} "
            f"({final_state.time_step * final_state.time_step_size:.1f} h)",
            f"Mean Moisture:         {metrics['mean_moisture'] * 100:.2f}%",
            f"Min / Max Moisture:    {metrics['min_moisture'] * 100:.2f}% / "
            f"{metrics['max_moisture'] * 100:.2f}%",
            f"Peak Moisture (run):   {self.peak_moisture * 100:.2f}%",
            f"Lowest Moisture (run): {self.lowest_moisture * 100:.2f}%",
            f"Taps On:               {metrics['taps_on']} / {total_cells}",
            f"Irrigated Cell-Steps:  {self.irrigation_cell_steps}",
            "",
            "PARAMETERS",
            "-" * 40,
            f"Diffusion Coefficient: {params.diffusion_coefficient}",
            f"Evapotranspiration:    {params.evapotranspiration_rate} /h",
            f"Irrigation Rate:       {params.irrigation_rate} /h",
            f"Moisture Threshold:    {params.moisture_threshold}",
            f"Cells With Overrides:  {metrics['cells_with_overrides']}",
            "",
            "EVENTS DETECTED",
            "-" * 40,
            f"[{'X' if self.dry_steps > 0 else ' '}] Dry-Out Steps: {self.dry_steps} detected",
            "",
            "OUTPUT FILES",
            "-" * 40,
        ]

        for label, path in output_files.items():
            lines.append(f"{label + ':':<11} {path if path else '(disabled)'}")

        lines.append("=" * 80)

        return "\n".join(lines)
