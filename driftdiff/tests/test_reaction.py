# -*- coding: utf-8 -*-
"""
Node kernels: space charge, recombination prefactor, reaction and storage.
"""
from __future__ import annotations

import numpy as np
import pytest

from driftdiff.models.parameters import ParameterBuilder
from driftdiff.models.pin_diode import ELECTRONS, HOLES, PINDiodeParams, build_pin_parameters
from driftdiff.physics.context import KernelData, Node, RecombinationScope
from driftdiff.physics.reaction import (
    electroneutral_potential,
    reaction,
    recombination_prefactor,
    space_charge,
    srh_term,
    storage,
)
from driftdiff.utils.constants import CONSTANTS

Q = CONSTANTS.q


def _pin_data(**kw):
    return KernelData(params=build_pin_parameters(PINDiodeParams()), **kw)


def _bare_store():
    b = ParameterBuilder(1, 1, (-1, +1))
    b.set_region(0, dielectric_constant=1.0)
    for c in range(2):
        b.set_carrier(0, c, density_of_states=1.0e24, band_edge_energy=0.0, mobility=1.0)
    b.set_boundary_from_region(0, 0)
    return b.build()


def test_no_recombination_at_equal_quasi_fermi_potentials():
    data = _pin_data()
    u = np.array([0.3, 0.3, 0.9])
    f = np.zeros(3)
    reaction(f, u, Node(5, 1), data)
    assert f[ELECTRONS] == pytest.approx(0.0, abs=1e-30)
    assert f[HOLES] == pytest.approx(0.0, abs=1e-30)
    assert f[2] != 0.0


def test_carrier_slots_have_opposite_signs():
    data = _pin_data()
    u = np.array([0.1, 0.4, 0.8])
    f = np.zeros(3)
    reaction(f, u, Node(5, 1), data)
    assert f[ELECTRONS] != 0.0
    assert f[ELECTRONS] == pytest.approx(-f[HOLES])


def test_srh_uses_reversed_trap_densities():
    p = build_pin_parameters(PINDiodeParams(trap_density_cm3=1.0e10, lifetime_s=1.0e-9))
    u = np.array([0.1, 0.2, 0.0])
    t = p.srh_trap_density[0]
    tau = p.srh_lifetime[0]
    expected = 1.0 / (t[1] * (0.1 + tau[0]) + t[0] * (0.2 + tau[1]))
    assert srh_term(u, 0, p) == pytest.approx(expected)


def test_srh_is_zero_without_traps():
    p = _bare_store()
    assert srh_term(np.array([0.1, 0.2, 0.0]), 0, p) == 0.0
    # batched input with a zero column stays finite
    U = np.zeros((3, 4))
    out = srh_term(U, 0, p)
    assert np.all(out == 0.0)
    assert recombination_prefactor(np.array([0.1, 0.2, 0.0]), 0, p) == 0.0


def test_prefactor_sums_radiative_and_auger():
    par = PINDiodeParams(trap_density_cm3=0.0)
    p = build_pin_parameters(par)
    u = np.array([0.2, 0.5, 0.0])
    expected = p.radiative[0] + p.auger[0, 0] * 0.2 + p.auger[0, 1] * 0.5
    assert recombination_prefactor(u, 0, p) == pytest.approx(expected)


def test_space_charge_vanishes_at_electroneutral_potential():
    data = _pin_data()
    p = data.params
    for region in range(3):
        psi = electroneutral_potential(0.0, region, data)
        rho = space_charge(np.array([0.0, 0.0, psi]), region, data)
        scale = max(np.max(p.doping[region]), np.max(p.density_of_states[region]) * 1e-6)
        assert abs(rho) < 1e-6 * scale
    # p-side lies below the n-side
    assert electroneutral_potential(0.0, 0, data) < electroneutral_potential(0.0, 2, data)


def test_embedding_scales_the_doping():
    data = _pin_data()
    p = data.params
    u = np.array([0.0, 0.0, 0.7])
    full = space_charge(u, 0, data)
    none = space_charge(u, 0, data.with_embedding(0.0))
    half = space_charge(u, 0, data.with_embedding(0.5))
    assert full - none == pytest.approx(-p.doping[0, HOLES], rel=1e-9)
    assert half == pytest.approx(0.5 * (full + none), rel=1e-9)


def test_reaction_potential_slot_is_minus_q_rho():
    data = _pin_data()
    u = np.array([0.0, 0.1, 0.6])
    f = np.zeros(3)
    reaction(f, u, Node(0, 2), data)
    assert f[2] == pytest.approx(-Q * space_charge(u, 2, data))


def test_recombination_switch_zeroes_carrier_slots():
    data = _pin_data(recombination=False)
    f = np.full(3, 7.0)
    reaction(f, np.array([0.1, 0.4, 0.8]), Node(3, 0), data)
    assert f[ELECTRONS] == 0.0 and f[HOLES] == 0.0


def test_all_regions_scope_sums_every_region():
    u = np.array([0.1, 0.4, 0.8])
    f_node = np.zeros(3)
    f_all = np.zeros(3)
    reaction(f_node, u, Node(3, 0), _pin_data())
    reaction(f_all, u, Node(3, 0), _pin_data(recombination_scope=RecombinationScope.ALL_REGIONS))
    # the three preset regions share their recombination data
    assert f_all[ELECTRONS] == pytest.approx(3.0 * f_node[ELECTRONS])
    assert f_all[2] == f_node[2]


def test_batched_reaction_matches_single_calls():
    data = _pin_data()
    rng = np.random.default_rng(11)
    U = rng.uniform(0.0, 1.0, size=(3, 6))
    F = np.zeros((3, 6))
    reaction(F, U, Node(0, 1), data)
    for m in range(6):
        f = np.zeros(3)
        reaction(f, U[:, m], Node(0, 1), data)
        np.testing.assert_allclose(F[:, m], f, rtol=1e-10)


def test_storage_is_the_carrier_charge():
    data = _pin_data()
    p = data.params
    u = np.array([0.0, 0.0, 0.7])
    f = np.zeros(3)
    storage(f, u, Node(0, 1), data)
    UT = data.thermal_voltage
    n = p.density_of_states[1, ELECTRONS] * np.exp((0.7 - p.band_edge_energy[1, ELECTRONS] / Q) / UT)
    pp = p.density_of_states[1, HOLES] * np.exp(-0.7 / UT)
    assert f[ELECTRONS] == pytest.approx(-Q * n, rel=1e-9)
    assert f[HOLES] == pytest.approx(Q * pp, rel=1e-9)
    assert f[2] == 0.0
