# -*- coding: utf-8 -*-
"""
IV accumulation and simple curve metrics.
"""
from __future__ import annotations

import numpy as np
import pytest

from driftdiff.models.pin_diode import PINDiodeParams, build_pin_parameters
from driftdiff.physics.context import KernelData
from driftdiff.postprocess.extract_iv import IVAccumulator, ron, turn_on_voltage


class FixedIntegrals:
    """Returns the per-species integrals given at construction."""

    def __init__(self, values):
        self.values = np.asarray(values, dtype=float)
        self.calls = []

    def integrate(self, tf, u, data, u_old=None, tstep=np.inf):
        self.calls.append((u_old, tstep))
        return self.values * float(np.mean(u))


DATA = KernelData(params=build_pin_parameters(PINDiodeParams()))


def test_current_weights_carriers_by_charge_and_scales_with_area():
    # electrons z = -1, holes z = +1
    acc = IVAccumulator(FixedIntegrals([1.0, -3.0, 100.0]), np.zeros(4), area=2.0)
    u = np.ones((3, 4))
    assert acc.current(u, DATA) == pytest.approx(-8.0)
    assert acc.record(0.5, u, DATA) == pytest.approx(8.0)
    assert acc.currents == [pytest.approx(8.0)]


def test_opposite_particle_fluxes_add_up():
    # forward bias: electrons and holes stream in opposite directions
    acc = IVAccumulator(FixedIntegrals([3.0e-3, -3.0e-3, 0.0]), np.zeros(4))
    assert acc.record(0.1, np.ones((3, 4)), DATA) == pytest.approx(6.0e-3)
    same_way = IVAccumulator(FixedIntegrals([3.0e-3, 3.0e-3, 0.0]), np.zeros(4))
    assert same_way.current(np.ones((3, 4)), DATA) == pytest.approx(0.0, abs=1e-18)


def test_displacement_slot_is_optional():
    acc = IVAccumulator(FixedIntegrals([1.0, 2.0, 10.0]), np.zeros(4), include_displacement=True)
    assert acc.current(np.ones((3, 4)), DATA) == pytest.approx(11.0)


def test_record_keeps_order_and_forwards_time_step():
    system = FixedIntegrals([-1.0, 1.0, 0.0])
    acc = IVAccumulator(system, np.zeros(4))
    u_old = np.zeros((3, 4))
    for k, v in enumerate([0.0, 0.1, 0.2]):
        acc.record(v, np.full((3, 4), float(k)), DATA, u_old=u_old, tstep=5.0)
    assert len(acc) == 3
    v, i = acc.as_arrays()
    np.testing.assert_allclose(v, [0.0, 0.1, 0.2])
    np.testing.assert_allclose(i, [0.0, 2.0, 4.0])
    assert system.calls[-1][1] == 5.0 and system.calls[-1][0] is u_old

    df = acc.to_frame()
    assert list(df.columns) == ["V", "I"]
    assert df["I"].iloc[-1] == pytest.approx(4.0)


def test_ron_is_inverse_slope():
    v = np.linspace(0.0, 1.0, 11)
    i = 0.5 * v + 0.1
    assert ron(v, i) == pytest.approx(2.0)
    i2 = np.where(v < 0.5, 0.0, 4.0 * (v - 0.5))
    assert ron(v, i2, v_window=(0.6, 1.0)) == pytest.approx(0.25)


def test_turn_on_voltage():
    v = np.array([0.0, 0.5, 1.0, 1.5])
    i = np.array([0.0, 1e-6, 1e-3, 1e-1])
    assert turn_on_voltage(v, i, 5e-4) == pytest.approx(0.5 + 0.5 * (5e-4 - 1e-6) / (1e-3 - 1e-6))
    assert turn_on_voltage(v, i, 1.0) is None
    assert turn_on_voltage(v, -i, 0.0) == 0.0
