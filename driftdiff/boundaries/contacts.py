# driftdiff/boundaries/contacts.py
"""
Boundary kernels for drift–diffusion in the quasi-Fermi-potential formulation.

Ohmic contact (penalty form)
----------------------------
The carrier quasi-Fermi potentials of a contact are Dirichlet values set by
the assembly engine (boundary value = contact voltage). This module only
closes Poisson's equation at the contact: charge neutrality is enforced with a
large penalty 1/α (α = 1/data.penalty):

    f[ψ] = −(1/α) q Σ_c z_c ( N^b_c F_c(η^b_c) − λ C^b_c )
    η^b_c = z_c / U_T · ( (V_contact − ψ) + E^b_c / q )
    f[c] = 0

The quasi-Fermi potential inside η^b is the contact voltage held in the
parameter store, not the local unknown, so the condition does not couple to
the interior carrier iteration. The condition is stiff by construction.

Insulating / symmetry boundary: all components zero.

Public API
----------
    ohmic_contact(f, u, bnode, data)
    insulating(f, u, bnode, data)
    contact_space_charge(psi, bregion, data)
"""

from __future__ import annotations

import numpy as np

from ..physics.context import BoundaryNode, KernelData

__all__ = [
    "ohmic_contact",
    "insulating",
    "contact_space_charge",
]


def contact_space_charge(psi, bregion: int, data: KernelData):
    """
    Σ_c z_c ( N^b_c F_c(η^b_c) − λ C^b_c ) [1/m^3] at potential ψ of contact `bregion`.
    """
    p = data.params
    UT = data.thermal_voltage
    q = data.constants.q
    lam = data.embedding
    V = p.contact_voltage[bregion]

    acc = 0.0 * np.asarray(psi, dtype=np.float64)
    for icc in range(p.n_carriers):
        z = p.charge_numbers[icc]
        eta = z / UT * ((V - psi) + p.b_band_edge_energy[bregion, icc] / q)
        acc = acc - z * lam * p.b_doping[bregion, icc]                                # subtract doping
        acc = acc + z * p.b_density_of_states[bregion, icc] * p.distributions[icc](eta)  # add carrier
    return acc if np.ndim(acc) else float(acc)


def ohmic_contact(f: np.ndarray, u: np.ndarray, bnode: BoundaryNode, data: KernelData) -> None:
    """Penalty closure of Poisson's equation at an ohmic contact."""
    p = data.params
    ipsi = p.ipsi
    q = data.constants.q

    for icc in range(p.n_carriers):
        # carrier values at the contact are Dirichlet data of the engine
        f[icc] = 0.0 * u[icc]

    f[ipsi] = -data.penalty * q * contact_space_charge(u[ipsi], bnode.region, data)


def insulating(f: np.ndarray, u: np.ndarray, bnode: BoundaryNode, data: KernelData) -> None:
    """Zero-flux boundary: contributes nothing."""
    for i in range(data.params.n_species):
        f[i] = 0.0 * u[i]
