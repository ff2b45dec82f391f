"""Tests for the periodic simulation driver."""

import asyncio

import pytest

from soil_moisture_sim.model.engine import SimulationController
from soil_moisture_sim.runner import SimulationTicker


@pytest.mark.asyncio
async def test_runs_until_max_steps(controller):
    seen = []
    ticker = SimulationTicker(controller, interval=0, on_step=lambda s: seen.append(s.time_step))
    steps = await ticker.run(max_steps=5)
    assert steps == 5
    assert seen == [1, 2, 3, 4, 5]
    assert controller.time_step == 5
    assert not controller.is_running
    assert not ticker.is_active


@pytest.mark.asyncio
async def test_pause_stops_future_ticks(controller):
    def on_step(state):
        if state.time_step == 2:
            controller.pause()

    ticker = SimulationTicker(controller, interval=0, on_step=on_step)
    assert await ticker.run(max_steps=10) == 2
    assert controller.time_step == 2


@pytest.mark.asyncio
async def test_edits_interleave_with_ticks(controller):
    ticker = SimulationTicker(controller, interval=0.001)
    task = asyncio.create_task(ticker.run())
    while controller.time_step < 2:
        await asyncio.sleep(0.001)
    controller.toggle_tap(0, 0)
    controller.pause()
    await task
    steps = controller.history.time_steps()
    assert steps == list(range(len(steps)))
    assert any(entry.user_actions for entry in controller.history)


@pytest.mark.asyncio
async def test_only_one_run_at_a_time(controller):
    ticker = SimulationTicker(controller, interval=0.01)
    task = asyncio.create_task(ticker.run())
    await asyncio.sleep(0)
    with pytest.raises(RuntimeError):
        await ticker.run()
    controller.pause()
    await task


def test_negative_interval():
    with pytest.raises(ValueError):
        SimulationTicker(None, interval=-1)


@pytest.mark.asyncio
async def test_failed_start_releases_ticker():
    ctrl = SimulationController()
    ticker = SimulationTicker(ctrl, interval=0)
    with pytest.raises(RuntimeError):
        await ticker.run(max_steps=1)
    assert not ticker.is_active

    ctrl.initialize()
    assert await ticker.run(max_steps=1) == 1
    assert ctrl.time_step == 1
