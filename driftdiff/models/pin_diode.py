# driftdiff/models/pin_diode.py
"""
Device presets: GaAs p-i-n diode and a three-layer perovskite solar cell
(transport layers without mobile ions).

Inputs are given in the customary semiconductor units (cm, cm^-3, cm^2/Vs,
eV) and converted to SI when the ParameterStore is built.

Carrier order: 0 = electrons (z = −1), 1 = holes (z = +1); ψ is species 2.

p-i-n layout (left → right):
    region 0 p-doped | region 1 intrinsic | region 2 n-doped
    boundary 0 = acceptor contact (biased), boundary 1 = donor contact

Perovskite layout (left → right):
    region 0 n-doped ETL | region 1 perovskite | region 2 p-doped HTL
    boundary 0 = donor contact, boundary 1 = acceptor contact (biased)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from ..geometry.grid import Grid
from ..physics.statistics import Distribution
from ..utils.constants import CM, EV, UM
from .parameters import ParameterBuilder, ParameterStore

__all__ = [
    "ELECTRONS",
    "HOLES",
    "PINDiodeParams",
    "build_pin_parameters",
    "build_pin_grid",
    "PSCParams",
    "build_psc_parameters",
    "build_psc_grid",
]

ELECTRONS = 0
HOLES = 1
CHARGE_NUMBERS = (-1, +1)

_PER_CM3 = 1.0 / CM ** 3
_CM2_PER_VS = CM ** 2


# -----------------------------------------------------------------------------
# GaAs p-i-n
# -----------------------------------------------------------------------------

@dataclass(slots=True)
class PINDiodeParams:
    """GaAs p-i-n diode with three equal layers."""
    layer_um: float = 2.0
    nodes_per_layer: int = 11
    T_K: float = 300.0
    Ec_eV: float = 1.424
    Ev_eV: float = 0.0
    Nc_cm3: float = 4.351959895879690e17
    Nv_cm3: float = 9.139615903601645e18
    mun_cm2: float = 8500.0
    mup_cm2: float = 400.0
    eps_r: float = 12.9
    # recombination
    auger_cm6: float = 1.0e-29
    trap_density_cm3: float = 1.0e10
    lifetime_s: float = 1.0e-9
    radiative_cm3: float = 1.0e-10
    # doping (None = Nd = Nc, Na = 0.46 Nv)
    Nd_cm3: float | None = None
    Na_cm3: float | None = None
    distribution: Distribution = Distribution.BOLTZMANN
    # cross-section used for the terminal current (w × depth)
    area_m2: float = 0.5 * UM * 1.0e-4 * CM

    @property
    def donor_doping(self) -> float:
        return self.Nc_cm3 if self.Nd_cm3 is None else self.Nd_cm3

    @property
    def acceptor_doping(self) -> float:
        return 0.46 * self.Nv_cm3 if self.Na_cm3 is None else self.Na_cm3


def build_pin_parameters(par: PINDiodeParams) -> ParameterStore:
    b = ParameterBuilder(3, 2, CHARGE_NUMBERS, temperature=par.T_K)
    for carrier in (ELECTRONS, HOLES):
        b.set_distribution(carrier, par.distribution)

    for region in range(3):
        b.set_region(region, dielectric_constant=par.eps_r, radiative=par.radiative_cm3 * CM ** 3)
        for carrier, E, N, mu in (
            (ELECTRONS, par.Ec_eV, par.Nc_cm3, par.mun_cm2),
            (HOLES, par.Ev_eV, par.Nv_cm3, par.mup_cm2),
        ):
            b.set_carrier(
                region, carrier,
                density_of_states=N * _PER_CM3,
                band_edge_energy=E * EV,
                mobility=mu * _CM2_PER_VS,
                srh_lifetime=par.lifetime_s,
                srh_trap_density=par.trap_density_cm3 * _PER_CM3,
                auger=par.auger_cm6 * CM ** 6,
            )

    Na = par.acceptor_doping * _PER_CM3
    Nd = par.donor_doping * _PER_CM3
    b.set_carrier(0, HOLES, doping=Na)
    b.set_carrier(2, ELECTRONS, doping=Nd)

    b.set_boundary_from_region(0, 0)
    b.set_boundary_from_region(1, 2)
    b.set_boundary_carrier(0, HOLES, doping=Na)
    b.set_boundary_carrier(1, ELECTRONS, doping=Nd)
    b.set_contact_voltage(0, 0.0)
    b.set_contact_voltage(1, 0.0)
    return b.build()


def build_pin_grid(par: PINDiodeParams) -> Grid:
    return Grid.from_layers([par.layer_um * UM] * 3, par.nodes_per_layer)


# -----------------------------------------------------------------------------
# Perovskite solar cell (no ions)
# -----------------------------------------------------------------------------

@dataclass(slots=True)
class PSCParams:
    """ETL | perovskite | HTL stack, recombination off."""
    thickness_cm: Tuple[float, float, float] = (9.90e-6, 4.02e-5, 1.99e-5)
    nodes_per_layer: Tuple[int, int, int] = (8, 20, 12)
    T_K: float = 300.0
    Ec_eV: Tuple[float, float, float] = (-4.0, -3.7, -3.1)
    Ev_eV: Tuple[float, float, float] = (-6.0, -5.4, -5.1)
    Nc_cm3: Tuple[float, float, float] = (5.0e19, 8.1e18, 5.0e19)
    Nv_cm3: Tuple[float, float, float] = (5.0e19, 5.8e18, 5.0e19)
    mu_cm2: Tuple[float, float, float] = (3.89, 66.2, 0.389)
    eps_r: Tuple[float, float, float] = (10.0, 24.1, 3.0)
    Nd_cm3: float = 1.03e18
    Na_cm3: float = 1.03e18
    intrinsic_acceptor_cm3: float = 8.32e7
    v_acceptor: float = 1.05
    distributions: Tuple[Distribution, Distribution] = field(
        default=(Distribution.BOLTZMANN, Distribution.BOLTZMANN)
    )


def build_psc_parameters(par: PSCParams) -> ParameterStore:
    b = ParameterBuilder(3, 2, CHARGE_NUMBERS, temperature=par.T_K)
    for carrier, dist in zip((ELECTRONS, HOLES), par.distributions):
        b.set_distribution(carrier, dist)

    for r in range(3):
        b.set_region(r, dielectric_constant=par.eps_r[r])
        b.set_carrier(
            r, ELECTRONS,
            density_of_states=par.Nc_cm3[r] * _PER_CM3,
            band_edge_energy=par.Ec_eV[r] * EV,
            mobility=par.mu_cm2[r] * _CM2_PER_VS,
        )
        b.set_carrier(
            r, HOLES,
            density_of_states=par.Nv_cm3[r] * _PER_CM3,
            band_edge_energy=par.Ev_eV[r] * EV,
            mobility=par.mu_cm2[r] * _CM2_PER_VS,
        )

    b.set_carrier(0, ELECTRONS, doping=par.Nd_cm3 * _PER_CM3)
    b.set_carrier(1, HOLES, doping=par.intrinsic_acceptor_cm3 * _PER_CM3)
    b.set_carrier(2, HOLES, doping=par.Na_cm3 * _PER_CM3)

    b.set_boundary_from_region(0, 0)
    b.set_boundary_from_region(1, 2)
    b.set_boundary_carrier(0, ELECTRONS, doping=par.Nd_cm3 * _PER_CM3)
    b.set_boundary_carrier(1, HOLES, doping=par.Na_cm3 * _PER_CM3)
    b.set_contact_voltage(0, 0.0)
    b.set_contact_voltage(1, par.v_acceptor)
    return b.build()


def build_psc_grid(par: PSCParams) -> Grid:
    return Grid.from_layers([t * CM for t in par.thickness_cm], list(par.nodes_per_layer))
