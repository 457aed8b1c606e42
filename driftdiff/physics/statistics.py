# driftdiff/physics/statistics.py
"""
Carrier statistics: distribution functions F(η) for the reduced chemical
potential η.

- Vectorized over numpy arrays, float64 out.
- Every variant is strictly increasing, continuous and F(η) → 0 for η → −∞.
- Overflow-free evaluation: every variant is written as
      F(η) = 1 / (A(η) + exp(−η))
  and evaluated with exp(−|η|) only (A = 0 for Boltzmann).

Variants (Distribution enum):
    BOLTZMANN                    exp(η)
    BLAKEMORE                    1 / (exp(−η) + γ),   γ = 0.27
    FERMI_DIRAC_ONE_HALF         normalized F_{1/2}, Aymerich-Humet approximation
    FERMI_DIRAC_MINUS_ONE_HALF   normalized F_{−1/2}, Aymerich-Humet approximation
    FERMI_DIRAC_MINUS_ONE        1 / (exp(−η) + 1)  (exact)

Aymerich-Humet approximation of order j > −1 (normalized by Γ(j+1)):
    F_j(η) = 1 / [ Γ(j+1)(j+1)2^{j+1} / D^{j+1} + exp(−η) ]
    D      = b + η + (|η − b|^c + a^c)^{1/c}
    a = (1 + 15/4 (j+1) + (j+1)^2/40)^{1/2},  b = 1.8 + 0.61 j,
    c = 2 + (2 − √2) 2^{−j}

Public API (stable):
    Distribution            tagged variant with __call__, derivative, inverse
    BLAKEMORE_GAMMA
    thermal_voltage(T)
    distribution_from_name(name)
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Callable, Dict, Tuple

import numpy as np

from ..utils.constants import K_B, Q

__all__ = [
    "Distribution",
    "BLAKEMORE_GAMMA",
    "thermal_voltage",
    "distribution_from_name",
]

BLAKEMORE_GAMMA = 0.27


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _c64(x):
    """float64 array; scalars stay 0-d."""
    return np.asarray(x, dtype=np.float64)


def _out(x, like):
    """Return a Python float for scalar input, an array otherwise."""
    return float(np.reshape(x, ())) if np.ndim(like) == 0 else x


def thermal_voltage(T: float | np.ndarray) -> np.ndarray:
    """Thermal voltage V_T = k_B T / q [V]."""
    T = _c64(T)
    return (K_B * T) / Q


def _rational(eta: np.ndarray, A: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Evaluate F = 1/(A + e^{-η}) and g = e^{-η} F without overflow.

    For η >= 0 use e = e^{-η}:  F = 1/(A + e),       g = e/(A + e)
    For η <  0 use e = e^{η}:   F = e/(A e + 1),     g = 1/(A e + 1)
    """
    e = np.exp(-np.abs(eta))
    pos = eta >= 0.0
    F = np.where(pos, 1.0 / (A + e), e / (A * e + 1.0))
    g = np.where(pos, e / (A + e), 1.0 / (A * e + 1.0))
    return F, g


def _ah_coefficients(j: float) -> Tuple[float, float, float, float]:
    a = math.sqrt(1.0 + 15.0 / 4.0 * (j + 1.0) + (j + 1.0) ** 2 / 40.0)
    b = 1.8 + 0.61 * j
    c = 2.0 + (2.0 - math.sqrt(2.0)) * 2.0 ** (-j)
    K = math.gamma(j + 1.0) * (j + 1.0) * 2.0 ** (j + 1.0)
    return a, b, c, K


def _ah_A(eta: np.ndarray, j: float) -> Tuple[np.ndarray, np.ndarray]:
    """A(η) = K D^{-(j+1)} and its derivative dA/dη."""
    a, b, c, K = _ah_coefficients(j)
    x = np.abs(eta - b)
    r = (x ** c + a ** c) ** (1.0 / c)
    D = b + eta + r
    dD = 1.0 + (r ** (1.0 - c)) * (x ** (c - 1.0)) * np.sign(eta - b)
    A = K * D ** (-(j + 1.0))
    dA = -K * (j + 1.0) * D ** (-(j + 2.0)) * dD
    return A, dA


def _A_and_slope(kind: "Distribution", eta: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    if kind is Distribution.BOLTZMANN:
        z = np.zeros_like(eta)
        return z, z
    if kind is Distribution.BLAKEMORE:
        return np.full_like(eta, BLAKEMORE_GAMMA), np.zeros_like(eta)
    if kind is Distribution.FERMI_DIRAC_MINUS_ONE:
        return np.ones_like(eta), np.zeros_like(eta)
    if kind is Distribution.FERMI_DIRAC_ONE_HALF:
        return _ah_A(eta, 0.5)
    if kind is Distribution.FERMI_DIRAC_MINUS_ONE_HALF:
        return _ah_A(eta, -0.5)
    raise ValueError(f"Unknown distribution: {kind!r}")


# ---------------------------------------------------------------------
# Tagged variant
# ---------------------------------------------------------------------
class Distribution(Enum):
    """Statistical distribution of one carrier species."""

    BOLTZMANN = "boltzmann"
    BLAKEMORE = "blakemore"
    FERMI_DIRAC_ONE_HALF = "fermi_dirac_one_half"
    FERMI_DIRAC_MINUS_ONE_HALF = "fermi_dirac_minus_one_half"
    FERMI_DIRAC_MINUS_ONE = "fermi_dirac_minus_one"

    def __call__(self, eta):
        """Occupation factor F(η) ∈ (0, ∞)."""
        x = _c64(eta)
        if self is Distribution.BOLTZMANN:
            return _out(np.exp(x), eta)
        A, _ = _A_and_slope(self, x)
        F, _ = _rational(x, A)
        return _out(F, eta)

    def derivative(self, eta):
        """dF/dη (analytic)."""
        x = _c64(eta)
        if self is Distribution.BOLTZMANN:
            return _out(np.exp(x), eta)
        A, dA = _A_and_slope(self, x)
        F, g = _rational(x, A)
        # F = 1/(A + e^{-η})  ->  F' = (e^{-η} − A') F^2 = g F − A' F^2
        return _out(g * F - dA * F * F, eta)

    def log(self, eta):
        """ln F(η) without underflow for very negative η."""
        x = _c64(eta)
        if self is Distribution.BOLTZMANN:
            return _out(x, eta)
        A, _ = _A_and_slope(self, x)
        e = np.exp(-np.abs(x))
        # η >= 0: −ln(A + e^{−η});  η < 0: η − ln(1 + A e^{η})
        val = np.where(x >= 0.0, -np.log(A + e), x - np.log1p(A * e))
        return _out(val, eta)

    @property
    def upper_bound(self) -> float:
        """Supremum of F (inf for unbounded variants)."""
        if self is Distribution.BLAKEMORE:
            return 1.0 / BLAKEMORE_GAMMA
        if self is Distribution.FERMI_DIRAC_MINUS_ONE:
            return 1.0
        return math.inf

    def inverse(self, value, *, tol: float = 1e-13, max_iters: int = 100):
        """
        η such that F(η) = value. Closed form where it exists, otherwise a
        Newton iteration on ln F(η) − ln(value) (ln F is concave and increasing,
        so the iteration converges from any start).
        """
        y = _c64(value)
        if np.any(~np.isfinite(y)) or np.any(y <= 0.0) or np.any(y >= self.upper_bound):
            raise ValueError(
                f"{self.name}: inverse needs 0 < value < {self.upper_bound:g}."
            )
        if self is Distribution.BOLTZMANN:
            return _out(np.log(y), value)
        if self is Distribution.BLAKEMORE:
            return _out(-np.log(1.0 / y - BLAKEMORE_GAMMA), value)
        if self is Distribution.FERMI_DIRAC_MINUS_ONE:
            return _out(np.log(y / (1.0 - y)), value)

        j = 0.5 if self is Distribution.FERMI_DIRAC_ONE_HALF else -0.5
        # degenerate start: F_j ≈ η^{j+1}/Γ(j+2)
        big = np.maximum(y, 1.0)
        eta = np.where(y < 1.0, np.log(y), (math.gamma(j + 2.0) * big) ** (1.0 / (j + 1.0)))
        log_y = np.log(y)
        for _ in range(int(max_iters)):
            F = _c64(self(eta))
            dF = _c64(self.derivative(eta))
            step = (np.log(F) - log_y) / (dF / F)
            eta = eta - step
            if float(np.max(np.abs(step))) < tol:
                break
        return _out(eta, value)


_ALIASES: Dict[str, Distribution] = {
    "boltzmann": Distribution.BOLTZMANN,
    "mb": Distribution.BOLTZMANN,
    "blakemore": Distribution.BLAKEMORE,
    "fermi_dirac_one_half": Distribution.FERMI_DIRAC_ONE_HALF,
    "fd": Distribution.FERMI_DIRAC_ONE_HALF,
    "fd12": Distribution.FERMI_DIRAC_ONE_HALF,
    "fermi_dirac_minus_one_half": Distribution.FERMI_DIRAC_MINUS_ONE_HALF,
    "fdm12": Distribution.FERMI_DIRAC_MINUS_ONE_HALF,
    "fermi_dirac_minus_one": Distribution.FERMI_DIRAC_MINUS_ONE,
    "fdm1": Distribution.FERMI_DIRAC_MINUS_ONE,
}


def distribution_from_name(name: str | Distribution) -> Distribution:
    """Resolve config strings like "Boltzmann", "FD", "blakemore"."""
    if isinstance(name, Distribution):
        return name
    key = str(name).strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return _ALIASES[key]
    except KeyError:
        raise ValueError(
            f"Unknown distribution {name!r}; expected one of {sorted(_ALIASES)}"
        ) from None
