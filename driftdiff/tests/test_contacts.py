# -*- coding: utf-8 -*-
"""
Ohmic penalty contact and insulating boundary kernels.
"""
from __future__ import annotations

import numpy as np
import pytest

from driftdiff.boundaries.contacts import contact_space_charge, insulating, ohmic_contact
from driftdiff.models.pin_diode import PINDiodeParams, build_pin_parameters
from driftdiff.physics.context import BoundaryNode, KernelData
from driftdiff.physics.model import DevicePhysics
from driftdiff.physics.reaction import electroneutral_potential
from driftdiff.utils.constants import CONSTANTS


def _data(**kw):
    return KernelData(params=build_pin_parameters(PINDiodeParams()), **kw)


def test_carrier_slots_are_zero():
    data = _data()
    f = np.full(3, 5.0)
    ohmic_contact(f, np.array([0.4, -0.2, 0.3]), BoundaryNode(0, 0), data)
    assert f[0] == 0.0 and f[1] == 0.0


@pytest.mark.parametrize("bregion, region", [(0, 0), (1, 2)])
def test_neutral_contact_potential_closes_poisson(bregion, region):
    data = _data()
    psi = electroneutral_potential(0.0, region, data)
    rho = contact_space_charge(psi, bregion, data)
    assert abs(rho) < 1e-6 * np.max(data.params.b_doping[bregion])
    # any other potential is pushed back
    assert contact_space_charge(psi + 0.05, bregion, data) < 0.0
    assert contact_space_charge(psi - 0.05, bregion, data) > 0.0


def test_contact_voltage_shifts_the_neutral_potential():
    data = _data()
    psi0 = electroneutral_potential(0.0, 0, data)
    biased = data.with_params(data.params.with_contact_voltage(0, 0.3))
    assert contact_space_charge(psi0 + 0.3, 0, biased) == pytest.approx(
        contact_space_charge(psi0, 0, data), abs=1e-6 * data.params.b_doping[0, 1]
    )


def test_penalty_scales_the_potential_row():
    u = np.array([0.0, 0.0, 0.1])
    f_lo = np.zeros(3)
    f_hi = np.zeros(3)
    ohmic_contact(f_lo, u, BoundaryNode(0, 0), _data(penalty=1.0e10))
    ohmic_contact(f_hi, u, BoundaryNode(0, 0), _data(penalty=1.0e20))
    assert f_hi[2] == pytest.approx(1.0e10 * f_lo[2])
    assert f_lo[2] == pytest.approx(
        -1.0e10 * CONSTANTS.q * contact_space_charge(0.1, 0, _data())
    )


def test_embedding_scales_contact_doping():
    data = _data()
    full = contact_space_charge(0.2, 0, data)
    none = contact_space_charge(0.2, 0, data.with_embedding(0.0))
    assert full - none == pytest.approx(-data.params.b_doping[0, 1], rel=1e-9)


def test_insulating_boundary_contributes_nothing():
    f = np.full(3, 1.0)
    insulating(f, np.array([0.1, 0.2, 0.3]), BoundaryNode(4, 2), _data())
    assert np.all(f == 0.0)


def test_device_physics_routes_boundaries():
    data = _data()
    physics = DevicePhysics(contacts=(0,))
    u = np.array([0.0, 0.0, 0.1])
    f = np.zeros(3)
    physics.breaction(f, u, BoundaryNode(0, 0), data)
    assert f[2] != 0.0
    physics.breaction(f, u, BoundaryNode(10, 1), data)
    assert np.all(f == 0.0)
