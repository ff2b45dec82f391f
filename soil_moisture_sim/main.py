#!/usr/bin/env python3
"""
Soil Moisture Simulation

A 2-D soil moisture diffusion and threshold-irrigation simulator.

Usage:
    soil-moisture-sim --config configs/default.yaml [options]

Examples:
    soil-moisture-sim --config configs/default.yaml
    soil-moisture-sim --config configs/default.yaml --gif --out-dir results/
    soil-moisture-sim --config configs/default.yaml --chart-cell 4 5 --steps 72
    soil-moisture-sim --config configs/default.yaml --load 3f2a... --steps 10
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import SimulationConfig, load_config
from .errors import PersistenceError, RestoreError, SimulationError
from .export.gateway import JsonFileGateway
from .export.reporter import Reporter
from .export.visualizer import Visualizer
from .model.engine import SimulationController
from .runner import SimulationTicker


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Soil Moisture Diffusion and Irrigation Simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    soil-moisture-sim --config configs/default.yaml
    soil-moisture-sim --config configs/default.yaml --gif --out-dir results/
    soil-moisture-sim --config configs/default.yaml --chart-cell 4 5 --steps 72
        """
    )

    parser.add_argument('--config', type=Path, default=None,
                        help='Path to YAML configuration file (defaults built in)')

    # Optional overrides
    parser.add_argument('--steps', type=int, default=None,
                        help='Override number of time steps to run')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for the initial moisture grid')
    parser.add_argument('--out-dir', type=Path, default=Path('./output'),
                        help='Output directory for exports (default: ./output)')
    parser.add_argument('--interval', type=float, default=None,
                        help='Wall-clock seconds between steps (1.0 for real time)')
    parser.add_argument('--store', type=Path, default=None,
                        help='Directory of saved simulations')
    parser.add_argument('--load', metavar='ID', default=None,
                        help='Continue a saved simulation instead of starting fresh')
    parser.add_argument('--chart-cell', type=int, nargs=2, metavar=('ROW', 'COL'),
                        default=None, help='Track and chart one cell\'s moisture')

    # Export toggles
    parser.add_argument('--csv', dest='csv', action='store_true', default=None,
                        help='Enable CSV export (default)')
    parser.add_argument('--no-csv', dest='csv', action='store_false',
                        help='Disable CSV export')

    parser.add_argument('--json', dest='json', action='store_true', default=None,
                        help='Enable JSON export (default)')
    parser.add_argument('--no-json', dest='json', action='store_false',
                        help='Disable JSON export')

    parser.add_argument('--snapshot', dest='snapshot', action='store_true', default=None,
                        help='Enable final snapshot (default)')
    parser.add_argument('--no-snapshot', dest='snapshot', action='store_false',
                        help='Disable final snapshot')

    parser.add_argument('--gif', action='store_true', default=False,
                        help='Enable GIF animation export')

    parser.add_argument('--quiet', action='store_true', default=False,
                        help='Suppress stdout output')
    parser.add_argument('--verbose', action='store_true', default=False,
                        help='Enable debug logging')

    return parser.parse_args(argv)


def apply_overrides(config: SimulationConfig, args: argparse.Namespace) -> None:
    """Apply CLI overrides to a loaded configuration."""
    if args.steps is not None:
        config.run.max_steps = args.steps
    if args.seed is not None:
        config.setup.seed = args.seed
    if args.interval is not None:
        config.run.tick_interval = args.interval
    if args.csv is not None:
        config.csv_enabled = args.csv
    if args.json is not None:
        config.json_enabled = args.json
    if args.snapshot is not None:
        config.snapshot_enabled = args.snapshot
    if args.gif:
        config.gif_enabled = True
    if args.store is not None:
        config.store_dir = args.store
    config.quiet = args.quiet
    config.out_dir = args.out_dir


async def run(config: SimulationConfig, args: argparse.Namespace) -> int:
    """Run, save and export one simulation."""
    controller = SimulationController(config)
    gateway = JsonFileGateway(config.store_dir)

    if args.load:
        try:
            await controller.load(gateway, args.load)
        except RestoreError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        controller.initialize()

    state = controller.current_state()
    if not config.quiet:
        print("Initializing simulation...")
        print(f"  Grid: {state.grid.rows}x{state.grid.cols}")
        print(f"  Starting time step: {state.time_step}")
        print(f"  Steps to run: {config.run.max_steps}")
        print(f"  Time step size: {state.time_step_size} h")

    if args.chart_cell:
        controller.select_cell(*args.chart_cell)

    visualizer = Visualizer(controller.display)
    reporter = Reporter(str(args.config or '(defaults)'), config.setup.seed)
    reporter.update(state)
    if config.gif_enabled:
        visualizer.buffer_frame(state)

    def on_step(step_state) -> None:
        # Buffer GIF frame (every N steps to reduce memory)
        if config.gif_enabled and step_state.time_step % 5 == 0:
            visualizer.buffer_frame(step_state)
        reporter.update(step_state)
        if not config.quiet and step_state.time_step % 24 == 0:
            metrics = step_state.metrics
            print(f"  Step {step_state.time_step}: "
                  f"mean moisture {metrics['mean_moisture'] * 100:.1f}%, "
                  f"{metrics['taps_on']} taps on")

    if not config.quiet:
        print("\nRunning simulation...")

    ticker = SimulationTicker(controller, interval=config.run.tick_interval,
                              on_step=on_step)
    try:
        await ticker.run(max_steps=config.run.max_steps)
    except (KeyboardInterrupt, asyncio.CancelledError):
        controller.pause()
        if not config.quiet:
            print("\nSimulation interrupted by user.")

    final_state = controller.current_state()
    config.out_dir.mkdir(parents=True, exist_ok=True)
    output_files = {}

    try:
        simulation_id = await controller.save(gateway)
        if not config.quiet:
            print(f"\nSimulation saved with ID: {simulation_id}")
        for fmt, enabled in (('csv', config.csv_enabled), ('json', config.json_enabled)):
            path = None
            if enabled:
                path = config.out_dir / f'simulation_{simulation_id}_export.{fmt}'
                path.write_bytes(await controller.export(gateway, fmt))
            output_files[fmt.upper()] = path
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if config.snapshot_enabled:
        snapshot_path = config.out_dir / 'final_state.png'
        visualizer.save_snapshot(final_state, snapshot_path)
        output_files['Snapshot'] = snapshot_path
    else:
        output_files['Snapshot'] = None

    if config.gif_enabled:
        gif_path = config.out_dir / 'simulation.gif'
        if not config.quiet:
            print(f"Generating GIF ({len(visualizer.frames)} frames)...")
        visualizer.generate_gif(gif_path, fps=10)
        output_files['Animation'] = gif_path
    else:
        output_files['Animation'] = None

    if final_state.selected_cell is not None:
        chart_path = config.out_dir / 'moisture_chart.png'
        visualizer.save_moisture_chart(final_state.moisture_series,
                                       final_state.selected_cell, chart_path)
        output_files['Chart'] = chart_path

    # Print summary report
    if not config.quiet:
        print(reporter.generate_summary(final_state, output_files,
                                        controller.simulation_id))

    return 0


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Load configuration
    try:
        config = load_config(args.config) if args.config else SimulationConfig()
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    apply_overrides(config, args)

    try:
        return asyncio.run(run(config, args))
    except SimulationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
