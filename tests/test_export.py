"""Tests for rendering, reporting and the command line entry point."""

import io

import numpy as np
import pytest

from soil_moisture_sim.config import DisplayConfig
from soil_moisture_sim.export.csv_writer import FIELDNAMES, CSVWriter
from soil_moisture_sim.export.reporter import Reporter
from soil_moisture_sim.export.visualizer import Visualizer, format_moisture, moisture_colors
from soil_moisture_sim.main import main


@pytest.mark.parametrize("scheme", ["default", "blue", "grayscale"])
def test_moisture_colors_shape_and_range(scheme):
    rgb = moisture_colors(np.linspace(0, 1, 6).reshape(2, 3), scheme)
    assert rgb.shape == (2, 3, 3)
    assert rgb.min() >= 0.0 and rgb.max() <= 1.0


def test_default_scheme_runs_red_to_blue():
    rgb = moisture_colors(np.array([[0.0, 1.0]]), "default")
    assert rgb[0, 0] == pytest.approx(np.array([1.0, 0.0, 0.0]))
    assert rgb[0, 1] == pytest.approx(np.array([0.0, 0.0, 1.0]))


def test_format_moisture():
    assert format_moisture(0.456, "percentage") == "45.6%"
    assert format_moisture(0.456, "volumetric") == "0.228"


def test_snapshot_chart_and_gif(tmp_path, controller):
    visualizer = Visualizer(DisplayConfig(moisture_unit="volumetric"))
    controller.select_cell(0, 0)
    visualizer.buffer_frame(controller.current_state())
    controller.advance()
    state = controller.current_state()
    visualizer.buffer_frame(state)

    visualizer.save_snapshot(state, tmp_path / "final.png")
    visualizer.save_moisture_chart(state.moisture_series, (0, 0), tmp_path / "chart.png")
    visualizer.generate_gif(tmp_path / "run.gif", fps=5)
    assert (tmp_path / "final.png").stat().st_size > 0
    assert (tmp_path / "chart.png").stat().st_size > 0
    assert (tmp_path / "run.gif").stat().st_size > 0
    visualizer.clear_frames()
    assert visualizer.frames == []


def test_reporter_tracks_run(controller):
    reporter = Reporter("configs/default.yaml", 1)
    reporter.update(controller.current_state())
    controller.toggle_tap(0, 0)
    reporter.update(controller.advance())
    assert reporter.peak_moisture == pytest.approx(0.6)
    assert reporter.lowest_moisture == pytest.approx(0.45)
    assert reporter.irrigation_cell_steps == 1
    summary = reporter.generate_summary(controller.current_state(),
                                        {"CSV": None}, simulation_id="abc")
    assert "Simulation ID: abc" in summary
    assert "(disabled)" in summary
    assert "Irrigated Cell-Steps:  1" in summary


def test_csv_writer_streams_entries(controller):
    buffer = io.StringIO()
    controller.advance()
    with CSVWriter(stream=buffer) as writer:
        for entry in controller.history:
            writer.append(entry)
    lines = buffer.getvalue().splitlines()
    assert lines[0] == ",".join(FIELDNAMES)
    assert len(lines) == 1 + 2 * 4


def test_csv_writer_needs_one_target():
    with pytest.raises(ValueError):
        CSVWriter()


def test_cli_run(tmp_path):
    out_dir = tmp_path / "out"
    code = main(["--steps", "3", "--out-dir", str(out_dir),
                 "--store", str(tmp_path / "store"), "--chart-cell", "1", "1",
                 "--quiet"])
    assert code == 0
    assert len(list(out_dir.glob("simulation_*_export.csv"))) == 1
    assert len(list(out_dir.glob("simulation_*_export.json"))) == 1
    assert (out_dir / "final_state.png").exists()
    assert (out_dir / "moisture_chart.png").exists()
    stored = list((tmp_path / "store").glob("*.json"))
    assert len(stored) == 1

    # Continue the stored run for two more steps
    code = main(["--load", stored[0].stem, "--steps", "2", "--no-csv", "--no-json",
                 "--no-snapshot", "--out-dir", str(out_dir),
                 "--store", str(tmp_path / "store"), "--quiet"])
    assert code == 0
    assert len(list((tmp_path / "store").glob("*.json"))) == 2


def test_cli_errors(tmp_path):
    assert main(["--config", str(tmp_path / "missing.yaml"), "--quiet"]) == 1
    assert main(["--load", "nope", "--store", str(tmp_path), "--quiet"]) == 1
