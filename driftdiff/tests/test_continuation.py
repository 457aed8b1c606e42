# -*- coding: utf-8 -*-
"""
Homotopy and bias/scan ramps against a scripted nonlinear solver.
"""
from __future__ import annotations

import numpy as np
import pytest

from driftdiff.geometry.grid import Grid
from driftdiff.models.pin_diode import PINDiodeParams, build_pin_parameters
from driftdiff.physics.context import KernelData
from driftdiff.physics.reaction import electroneutral_potential
from driftdiff.solver.continuation import (
    ContinuationSolver,
    bias_schedule,
    homotopy_schedule,
    scan_schedule,
)
from driftdiff.solver.newton import SolveResult


class ScriptedSolver:
    """Converges (solution = guess + 1) unless `fail(data)` says otherwise."""

    def __init__(self, fail=lambda data: False):
        self.fail = fail
        self.calls = []

    def solve(self, initial_guess, data, *, control=None, tstep=np.inf, boundary_values=None):
        self.calls.append((data, tstep, None if boundary_values is None else boundary_values.copy()))
        ok = not self.fail(data)
        return SolveResult(
            solution=np.asarray(initial_guess) + 1.0,
            converged=ok,
            iterations=3 if ok else 30,
            update_norm=1e-12 if ok else 1.0,
        )


class RecordingAccumulator:
    def __init__(self):
        self.records = []

    def record(self, voltage, u, data, *, u_old=None, tstep=np.inf):
        self.records.append((voltage, u.copy(), u_old.copy(), tstep))
        return 2.0 * voltage


def _data(v0=0.0, v1=0.0):
    p = build_pin_parameters(PINDiodeParams()).with_contact_voltages([v0, v1])
    return KernelData(params=p)


def test_homotopy_schedule():
    s = homotopy_schedule()
    assert s.size == 22
    assert s[0] == 0.0 and s[-1] == 1.0
    assert s[1] == pytest.approx(1e-20)
    assert np.all(np.diff(s) > 0.0)
    assert homotopy_schedule(2).tolist() == pytest.approx([0.0, 0.01, 0.1, 1.0])


def test_bias_and_scan_schedules():
    np.testing.assert_allclose(bias_schedule(0.0, 1.0, 5), [0.0, 0.25, 0.5, 0.75, 1.0])
    t, v = scan_schedule(0.04, 1.2, 4)
    np.testing.assert_allclose(t, [0.0, 10.0, 20.0, 30.0])
    np.testing.assert_allclose(v, [0.0, 0.4, 0.8, 1.2])
    t, v = scan_schedule(-0.5, -1.0, 3, v_start=0.0)
    np.testing.assert_allclose(v, [0.0, -0.5, -1.0])
    for args in ((0.0, 1.0, 3), (0.1, -1.0, 3), (0.1, 1.0, 1), (np.inf, 1.0, 3)):
        with pytest.raises(ValueError):
            scan_schedule(*args)
    with pytest.raises(ValueError):
        bias_schedule(0.0, 1.0, 0)


def test_homotopy_walks_embedding_at_zero_bias():
    solver = ScriptedSolver()
    cont = ContinuationSolver(solver, _data(0.7, 0.2))
    res = cont.homotopy(np.zeros((3, 4)))
    assert res.converged and res.failed_at is None
    assert [c[0].embedding for c in solver.calls] == homotopy_schedule().tolist()
    assert all(np.all(c[0].params.contact_voltage == 0.0) for c in solver.calls)
    # carriers pinned at 0 V on both contacts, ψ free
    bv = solver.calls[0][2]
    assert bv[:2].tolist() == [[0.0, 0.0], [0.0, 0.0]]
    assert np.all(np.isnan(bv[2]))
    assert np.all(res.solution == 22.0)
    assert res.last_value == 1.0
    assert cont.data.embedding == 1.0


def test_homotopy_reports_failure_with_last_converged_state():
    solver = ScriptedSolver(fail=lambda d: d.embedding > 5e-4)
    cont = ContinuationSolver(solver, _data())
    res = cont.homotopy(np.zeros((3, 4)))
    assert not res.converged
    assert res.failed_at == pytest.approx(1e-3)
    assert res.last_value == pytest.approx(1e-4)
    assert res.data.embedding == pytest.approx(1e-4)
    assert np.all(res.solution == len(res.values))
    with pytest.raises(ValueError):
        cont.homotopy(np.zeros((3, 4)), schedule=[])


def test_bias_ramp_sets_contact_voltage_and_records_current():
    solver = ScriptedSolver()
    acc = RecordingAccumulator()
    cont = ContinuationSolver(solver, _data())
    u0 = np.zeros((3, 4))
    res = cont.bias_ramp(u0, [0.0, 0.1, 0.2], bregion=0, accumulator=acc)
    assert res.converged
    assert res.values == [0.0, 0.1, 0.2]
    assert [c[0].params.contact_voltage[0] for c in solver.calls] == [0.0, 0.1, 0.2]
    assert all(c[1] == np.inf for c in solver.calls)
    assert solver.calls[-1][2][:2, 0].tolist() == [0.2, 0.2]
    assert solver.calls[-1][2][:2, 1].tolist() == [0.0, 0.0]
    # each record sees the converged state and the previous one
    v, u, u_old, _ = acc.records[1]
    assert v == 0.1 and np.all(u == 2.0) and np.all(u_old == 1.0)
    assert cont.data.params.contact_voltage[0] == 0.2


def test_bias_ramp_restores_the_other_contacts_after_homotopy():
    solver = ScriptedSolver()
    cont = ContinuationSolver(solver, _data(0.05, 0.3))
    hom = cont.homotopy(np.zeros((3, 4)))
    assert cont.data.params.contact_voltage.tolist() == [0.0, 0.0]
    n_hom = len(solver.calls)
    cont.bias_ramp(hom.solution, [0.1, 0.2], bregion=0)
    ramp_calls = solver.calls[n_hom:]
    assert [c[0].params.contact_voltage.tolist() for c in ramp_calls] == [[0.1, 0.3], [0.2, 0.3]]
    assert ramp_calls[0][2][:2, 1].tolist() == [0.3, 0.3]
    # the configured value is not lost when scanning the other contact
    cont.scan_ramp(hom.solution, 0.1, 0.5, 2, bregion=1)
    assert solver.calls[-1][0].params.contact_voltage.tolist() == [0.05, 0.5]


def test_bias_ramp_stops_at_first_divergence():
    solver = ScriptedSolver(fail=lambda d: d.params.contact_voltage[0] > 0.25)
    acc = RecordingAccumulator()
    cont = ContinuationSolver(solver, _data())
    res = cont.bias_ramp(np.zeros((3, 4)), bias_schedule(0.0, 1.0, 11), bregion=0, accumulator=acc)
    assert not res.converged
    assert res.failed_at == pytest.approx(0.3)
    assert res.last_value == pytest.approx(0.2)
    assert len(acc.records) == 3
    assert len(solver.calls) == 4


def test_ramps_reject_non_contact_boundaries():
    cont = ContinuationSolver(ScriptedSolver(), _data(), contacts=(0, 1))
    with pytest.raises(ValueError):
        cont.bias_ramp(np.zeros((3, 4)), [0.1], bregion=2)
    with pytest.raises(ValueError):
        cont.scan_ramp(np.zeros((3, 4)), 0.1, 1.0, 3, bregion=5)


def test_scan_ramp_skips_the_start_and_uses_time_steps():
    solver = ScriptedSolver()
    acc = RecordingAccumulator()
    cont = ContinuationSolver(solver, _data())
    res = cont.scan_ramp(np.zeros((3, 4)), 0.04, 1.2, 4, bregion=1, accumulator=acc)
    assert res.converged
    np.testing.assert_allclose(res.values, [0.4, 0.8, 1.2])
    assert [c[1] for c in solver.calls] == pytest.approx([10.0, 10.0, 10.0])
    assert [r[3] for r in acc.records] == pytest.approx([10.0, 10.0, 10.0])


def test_initial_state_is_electroneutral_per_region():
    data = _data()
    grid = Grid.from_layers([2e-6] * 3, 3)
    cont = ContinuationSolver(ScriptedSolver(), data)
    u = cont.initial_state(grid, embedding=1.0)
    assert u.shape == (3, 7)
    assert np.all(u[:2] == 0.0)
    full = data.with_embedding(1.0)
    assert u[2, 0] == pytest.approx(electroneutral_potential(0.0, 0, full))
    assert u[2, -1] == pytest.approx(electroneutral_potential(0.0, 2, full))
