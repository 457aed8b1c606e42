# driftdiff/physics/reaction.py
"""
Node kernels: space charge (Poisson right-hand side), recombination and
storage, in the quasi-Fermi-potential formulation (SI units, vectorized).

Callback signature (shared with the assembly engine):
    reaction(f, u, node, data) -> None
    storage(f, u, node, data)  -> None

Reaction
--------
With η_c = z_c / U_T · (u_c − u_ψ + E_c / q) and λ = data.embedding:

    f[ψ] = −q · [ λ C_i − Σ_c z_c λ C_c + Σ_c z_c N_c F_c(η_c) ]
    f[c] =  q · z_c · R · Π_c u_c · (1 − exp(−Σ_c z_c u_c))

    R = r_rad + Σ_c r_aug,c u_c + 1 / Σ_c t_{rev(c)} (u_c + τ_c)

where C_i is the intrinsic doping, C_c the carrier doping, t the SRH trap
densities taken in reversed carrier order and τ the SRH lifetimes. The SRH
term is 0 when its denominator vanishes (e.g. all trap densities zero). The
factor (1 − exp(−Σ z u)) vanishes when all quasi-Fermi potentials coincide,
so net recombination is zero in equilibrium.

Storage
-------
    s[c] = z_c q N_c F_c(η_c),   s[ψ] = 0

Public API (stable):
    space_charge(u, region, data)
    srh_term(u, region, params)
    recombination_prefactor(u, region, params)
    reaction(f, u, node, data)
    storage(f, u, node, data)
    electroneutral_potential(phi, region, data)
"""
from __future__ import annotations

from typing import Iterable

import numpy as np

from ..models.parameters import ParameterStore
from .context import KernelData, Node, RecombinationScope

__all__ = [
    "space_charge",
    "srh_term",
    "recombination_prefactor",
    "reaction",
    "storage",
    "electroneutral_potential",
]


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------


def _col(a: np.ndarray, like: np.ndarray) -> np.ndarray:
    """Reshape a per-carrier vector to broadcast against u[:nc] (with batch axis)."""
    return np.reshape(a, (a.shape[0],) + (1,) * (np.ndim(like) - 1))


def _eta(u: np.ndarray, icc: int, region: int, data: KernelData):
    p = data.params
    z = p.charge_numbers[icc]
    return z / data.thermal_voltage * (
        (u[icc] - u[p.ipsi]) + p.band_edge_energy[region, icc] / data.constants.q
    )


# ---------------------------------------------------------------------
# Space charge
# ---------------------------------------------------------------------


def space_charge(u: np.ndarray, region: int, data: KernelData):
    """
    Net charge density over q [1/m^3]:
        λ C_i − Σ_c z_c λ C_c + Σ_c z_c N_c F_c(η_c).
    """
    p = data.params
    lam = data.embedding
    rho = lam * p.intrinsic_doping[region]
    for icc in range(p.n_carriers):
        z = p.charge_numbers[icc]
        rho = rho - z * lam * p.doping[region, icc]
        rho = rho + z * p.density_of_states[region, icc] * p.distributions[icc](_eta(u, icc, region, data))
    return rho


# ---------------------------------------------------------------------
# Recombination prefactor
# ---------------------------------------------------------------------


def srh_term(u: np.ndarray, region: int, params: ParameterStore):
    """
    1 / Σ_c t_{rev(c)} (u_c + τ_c); exactly 0 where the denominator is 0.
    """
    nc = params.n_carriers
    uc = u[:nc]
    trap = params.srh_trap_density[region][::-1]
    tau = params.srh_lifetime[region]
    denom = np.sum(_col(trap, uc) * (uc + _col(tau, uc)), axis=0)
    zero = denom == 0.0
    out = np.where(zero, 0.0, 1.0 / np.where(zero, 1.0, denom))
    return out if np.ndim(out) else float(out)


def recombination_prefactor(u: np.ndarray, region: int, params: ParameterStore):
    """R = radiative + Σ_c auger_c u_c + SRH for one region."""
    nc = params.n_carriers
    uc = u[:nc]
    auger = params.auger[region]
    R = params.radiative[region] + np.sum(_col(auger, uc) * uc, axis=0)
    return R + srh_term(u, region, params)


def _regions(node: Node, data: KernelData) -> Iterable[int]:
    if data.recombination_scope is RecombinationScope.ALL_REGIONS:
        return range(data.params.n_regions)
    return (node.region,)


# ---------------------------------------------------------------------
# Kernels
# ---------------------------------------------------------------------


def reaction(f: np.ndarray, u: np.ndarray, node: Node, data: KernelData) -> None:
    """Poisson right-hand side plus recombination for one node."""
    p = data.params
    q = data.constants.q
    nc = p.n_carriers

    f[p.ipsi] = -q * space_charge(u, node.region, data)

    if not data.recombination:
        for icc in range(nc):
            f[icc] = 0.0 * u[icc]
        return

    R = 0.0
    for ireg in _regions(node, data):
        R = R + recombination_prefactor(u, ireg, p)

    uc = u[:nc]
    zc = _col(p.charge_numbers, uc)
    kernel = R * np.prod(uc, axis=0) * (1.0 - np.exp(-np.sum(zc * uc, axis=0)))
    for icc in range(nc):
        f[icc] = q * p.charge_numbers[icc] * kernel


def storage(f: np.ndarray, u: np.ndarray, node: Node, data: KernelData) -> None:
    """Carrier charge densities z q N F(η); no storage for the potential."""
    p = data.params
    q = data.constants.q
    for icc in range(p.n_carriers):
        z = p.charge_numbers[icc]
        F = p.distributions[icc]
        f[icc] = z * q * p.density_of_states[node.region, icc] * F(_eta(u, icc, node.region, data))
    f[p.ipsi] = 0.0 * u[p.ipsi]


# ---------------------------------------------------------------------
# Electroneutral potential
# ---------------------------------------------------------------------


def electroneutral_potential(
    phi: float,
    region: int,
    data: KernelData,
    *,
    tol: float = 1e-12,
    max_iters: int = 200,
) -> float:
    """
    ψ making the space charge of `region` vanish when every carrier sits at
    quasi-Fermi potential `phi`. The space charge decreases strictly in ψ, so
    a bracketing bisection always succeeds.
    """
    p = data.params
    u = np.full(p.n_species, float(phi))

    def rho(psi: float) -> float:
        u[p.ipsi] = psi
        return float(space_charge(u, region, data))

    centre = float(phi) + float(np.mean(p.band_edge_energy[region])) / data.constants.q
    lo, hi = centre - 1.0, centre + 1.0
    width = 1.0
    while rho(lo) < 0.0 or rho(hi) > 0.0:
        width *= 2.0
        lo, hi = centre - width, centre + width
        if width > 1.0e3:
            raise ValueError(f"region {region}: could not bracket the electroneutral potential.")

    for _ in range(int(max_iters)):
        mid = 0.5 * (lo + hi)
        if rho(mid) > 0.0:
            lo = mid
        else:
            hi = mid
        if hi - lo < tol:
            break
    return 0.5 * (lo + hi)
