"""Tests for the time-step history log."""

import pytest

from soil_moisture_sim.errors import BackwardBoundaryError
from soil_moisture_sim.model.actions import ActionKind, UserAction
from soil_moisture_sim.model.grid import MoistureGrid
from soil_moisture_sim.model.history import HistoryEntry, HistoryLog, LogPhase
from soil_moisture_sim.model.params import SimulationParams


@pytest.fixture
def log():
    params = SimulationParams()
    grid = MoistureGrid.create(2, 2, params)
    return HistoryLog(HistoryEntry(time_step=0, grid=grid, params=params))


def _next(log, **kwargs):
    return HistoryEntry(time_step=log.last.time_step + 1, grid=log.last.grid,
                        params=log.last.params, **kwargs)


def test_head_must_be_step_zero():
    params = SimulationParams()
    with pytest.raises(RuntimeError):
        HistoryLog(HistoryEntry(time_step=3, grid=MoistureGrid.create(1, 1, params),
                                params=params))


def test_append_seals_and_keeps_contiguous(log):
    assert log.phase is LogPhase.STAGING_HEAD
    log.append(_next(log))
    log.append(_next(log))
    assert log.phase is LogPhase.SEALED
    assert log.time_steps() == [0, 1, 2]
    assert len(log) == 3


def test_append_out_of_order(log):
    entry = HistoryEntry(time_step=2, grid=log.head.grid, params=log.head.params)
    with pytest.raises(RuntimeError):
        log.append(entry)
    assert len(log) == 1


def test_append_rejects_shape_change(log):
    params = SimulationParams()
    entry = HistoryEntry(time_step=1, grid=MoistureGrid.create(3, 3, params),
                         params=params)
    with pytest.raises(RuntimeError):
        log.append(entry)


def test_truncate_never_removes_head(log):
    with pytest.raises(BackwardBoundaryError):
        log.truncate_last()
    assert len(log) == 1


def test_truncate_back_to_head_reopens_staging(log):
    log.append(_next(log))
    removed = log.truncate_last()
    assert removed.time_step == 1
    assert log.phase is LogPhase.STAGING_HEAD


def test_merge_overwrites_changes_and_deduplicates_actions(log):
    toggle = UserAction(ActionKind.TOGGLE_TAP, cell_index=0)
    log.merge_into_head({'irrigationRate': 0.1}, [toggle])
    log.merge_into_head({'irrigationRate': 0.3},
                        [UserAction(ActionKind.SET_MOISTURE, cell_index=0, value=0.2)])
    log.merge_into_head({}, [toggle,
                             UserAction(ActionKind.SET_MOISTURE, cell_index=0, value=0.9)])
    head = log.head
    assert len(log) == 1
    assert head.parameter_changes == {'irrigationRate': 0.3}
    assert [a.kind for a in head.user_actions] == [ActionKind.TOGGLE_TAP,
                                                   ActionKind.SET_MOISTURE]
    assert head.user_actions[1].value == 0.9


def test_merge_refreshes_head_grid(log):
    edited = log.head.grid.with_moisture(0, 0, 0.9)
    log.merge_into_head({}, [], grid=edited)
    assert log.head.grid is edited


def test_merge_after_seal_is_a_bug(log):
    log.append(_next(log))
    with pytest.raises(RuntimeError):
        log.merge_into_head({'irrigationRate': 0.1}, [])


def test_entry_wire_format(log):
    action = UserAction(ActionKind.SET_CELL_PARAMETER, cell_index=3,
                        param='irrigation_rate', value=0.25)
    entry = _next(log, parameter_changes={'moistureThreshold': 0.3},
                  user_actions=(action,))
    raw = entry.to_dict()
    assert raw['timeStep'] == 1
    assert raw['userActions'] == [{'action': 'SetCellParameter', 'cellIndex': 3,
                                   'param': 'irrigationRate', 'value': 0.25}]
    decoded = HistoryEntry.from_dict(raw)
    assert decoded.user_actions == (action,)
    assert decoded.parameter_changes == {'moistureThreshold': 0.3}
    assert decoded.grid.equals(entry.grid)


def test_from_entries_rejects_gaps(log):
    entries = [log.head, HistoryEntry(time_step=2, grid=log.head.grid,
                                      params=log.head.params)]
    with pytest.raises(RuntimeError):
        HistoryLog.from_entries(entries)
    with pytest.raises(ValueError):
        HistoryLog.from_entries([])


def test_action_validation():
    with pytest.raises(ValueError):
        UserAction(ActionKind.TOGGLE_TAP)
    with pytest.raises(ValueError):
        UserAction(ActionKind.SET_MOISTURE, cell_index=0)
    with pytest.raises(ValueError):
        UserAction(ActionKind.RESET_CELL_PARAMETER, cell_index=0)
    assert UserAction(ActionKind.RESET_ALL_CELL_PARAMETERS).to_dict() == {
        'action': 'ResetAllCellParameters'}


def test_logged_changes_are_read_only(log):
    changes = {'irrigationRate': 0.1}
    entry = _next(log, parameter_changes=changes)
    log.append(entry)
    changes['irrigationRate'] = 0.4
    assert log.last.parameter_changes == {'irrigationRate': 0.1}
    with pytest.raises(TypeError):
        log.last.parameter_changes['irrigationRate'] = 0.3
    assert log.last.to_dict()['parameterChanges'] == {'irrigationRate': 0.1}


def test_merged_head_changes_are_read_only(log):
    log.merge_into_head({'moistureThreshold': 0.3}, [])
    with pytest.raises(TypeError):
        log.head.parameter_changes['moistureThreshold'] = 0.5
    log.merge_into_head({'moistureThreshold': 0.4}, [])
    assert log.head.parameter_changes == {'moistureThreshold': 0.4}


def test_entry_decode_rejects_wrong_types(log):
    raw = log.head.to_dict()
    raw['parameterChanges'] = [1, 2]
    with pytest.raises(ValueError):
        HistoryEntry.from_dict(raw)
    raw = log.head.to_dict()
    raw['params'] = 'fast'
    with pytest.raises(ValueError):
        HistoryEntry.from_dict(raw)
