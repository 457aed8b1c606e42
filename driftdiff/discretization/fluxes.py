"""
driftdiff/discretization/fluxes.py

Exponential-fitting edge fluxes for the quasi-Fermi-potential formulation.
Provides numerically stable Bernoulli functions and two interchangeable
flux kernels (Scharfetter–Gummel, Sedan) with the callback signature

    flux(f, u, edge, data) -> None

Sign convention (edge k → l):
- Δψ = ψ_l − ψ_k, U_T = k_B T / q.
- η_{k,l} = z/U_T · (φ − ψ + E/q) for a carrier of charge number z,
  quasi-Fermi potential φ and band-edge energy E of the edge region.
- j0 = z q μ U_T N is the diffusion-current prefactor of region/carrier.
- Scharfetter–Gummel:
      f[c] = z j0 ( B(x) F(η_k) − B(−x) F(η_l) ),   x = z Δψ / U_T
- Sedan: x is replaced by
      Q = z Δψ / U_T + (η_l − η_k) − ln F(η_l) + ln F(η_k),
  which reduces to x for Boltzmann statistics.
- Potential slot: f[ψ] = −ε_r ε0 Δψ (discrete Poisson flux).

With constant quasi-Fermi potentials both schemes give zero flux.

NOTE: Fluxes are per unit edge factor (area/length); the assembly engine
      multiplies by the geometric edge factor. `u` may carry a trailing batch
      axis, u.shape == (n_species, 2, m); f then has shape (n_species, m).
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Tuple

import numpy as np

from ..physics.context import Edge, KernelData

__all__ = [
    "bern",
    "bernoulli_pm",
    "scharfetter_gummel",
    "sedan",
    "FluxScheme",
]


def bern(x: np.ndarray | float) -> np.ndarray | float:
    """
    Numerically stable Bernoulli function:
        B(x) = x / (exp(x) - 1),   B(0) = 1
    with series expansion for small |x| and no overflow for large |x|.
    Returns array-like with dtype float64.
    """
    x_arr = np.asarray(x, dtype=np.float64)
    out = np.empty_like(x_arr)

    # |x| small: use series B(x) ≈ 1 - x/2 + x^2/12 - x^4/720 ...
    small = np.abs(x_arr) < 1.0e-4
    xs = x_arr[small]
    out[small] = 1.0 - xs / 2.0 + xs * xs / 12.0 - (xs ** 4) / 720.0

    # x > 0: B(x) = x e^{-x} / (1 - e^{-x})
    pos = (~small) & (x_arr > 0.0)
    xp = x_arr[pos]
    out[pos] = xp * np.exp(-xp) / (-np.expm1(-xp))

    # x < 0: B(x) = x / expm1(x)  (→ |x| for x → −∞)
    neg = (~small) & (x_arr < 0.0)
    xn = x_arr[neg]
    out[neg] = xn / np.expm1(xn)

    # Return scalar if scalar input
    return out if isinstance(x, np.ndarray) else float(out)


def bernoulli_pm(x: np.ndarray | float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Return (B(x), B(−x)). Both are evaluated directly so each stays strictly
    positive; they satisfy B(−x) − B(x) = x.
    """
    minus_x = -x if isinstance(x, np.ndarray) else -float(x)
    return bern(x), bern(minus_x)


def _edge_setup(f: np.ndarray, u: np.ndarray, edge: Edge, data: KernelData):
    p = data.params
    uk = edge.view_k(u)
    ul = edge.view_l(u)
    ipsi = p.ipsi
    dpsi = ul[ipsi] - uk[ipsi]
    f[ipsi] = -p.dielectric_constant[edge.region] * data.constants.eps0 * dpsi
    return p, uk, ul, dpsi


def _etas(p, data: KernelData, uk, ul, ireg: int, icc: int):
    z = p.charge_numbers[icc]
    UT = data.thermal_voltage
    E = p.band_edge_energy[ireg, icc] / data.constants.q
    etak = z / UT * ((uk[icc] - uk[p.ipsi]) + E)
    etal = z / UT * ((ul[icc] - ul[p.ipsi]) + E)
    return z, UT, etak, etal


def scharfetter_gummel(f: np.ndarray, u: np.ndarray, edge: Edge, data: KernelData) -> None:
    """Classical Scharfetter–Gummel flux for every carrier of the edge region."""
    p, uk, ul, dpsi = _edge_setup(f, u, edge, data)
    ireg = edge.region
    q = data.constants.q

    for icc in range(p.n_carriers):
        z, UT, etak, etal = _etas(p, data, uk, ul, ireg, icc)
        F = p.distributions[icc]
        j0 = z * q * p.mobility[ireg, icc] * UT * p.density_of_states[ireg, icc]

        bp, bm = bernoulli_pm(z * dpsi / UT)
        f[icc] = z * j0 * (bp * F(etak) - bm * F(etal))


def sedan(f: np.ndarray, u: np.ndarray, edge: Edge, data: KernelData) -> None:
    """Sedan flux: Scharfetter–Gummel with a statistics-corrected Bernoulli argument."""
    p, uk, ul, dpsi = _edge_setup(f, u, edge, data)
    ireg = edge.region
    q = data.constants.q

    for icc in range(p.n_carriers):
        z, UT, etak, etal = _etas(p, data, uk, ul, ireg, icc)
        F = p.distributions[icc]
        j0 = z * q * p.mobility[ireg, icc] * UT * p.density_of_states[ireg, icc]

        Q = z * dpsi / UT + (etal - etak) - F.log(etal) + F.log(etak)

        bp, bm = bernoulli_pm(Q)
        f[icc] = z * j0 * (bp * F(etak) - bm * F(etal))


class FluxScheme(Enum):
    SCHARFETTER_GUMMEL = "scharfetter_gummel"
    SEDAN = "sedan"

    @property
    def kernel(self) -> Callable[[np.ndarray, np.ndarray, Edge, KernelData], None]:
        return scharfetter_gummel if self is FluxScheme.SCHARFETTER_GUMMEL else sedan
