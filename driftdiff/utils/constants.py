# driftdiff/utils/constants.py
"""
Physical constants and unit multipliers (SI).

Kernels never read module globals: they receive a PhysicalConstants value
through KernelData. The module-level CONSTANTS instance is only the default
used when building that value.

Unit multipliers let input decks be written in the usual device units:
    Nc = 4.35e17 / CM**3,   mun = 8500.0 * CM**2 / (V * S),   Ec = 1.424 * EV
"""
from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "PhysicalConstants", "CONSTANTS",
    "Q", "K_B", "EPS0",
    "M", "CM", "MM", "UM", "NM", "S", "NS", "V", "K", "EV",
]

# Fundamental constants (SI)
Q    = 1.602176634e-19       # elementary charge [C]
K_B  = 1.380649e-23          # Boltzmann constant [J/K]
EPS0 = 8.8541878128e-12      # vacuum permittivity [F/m]


@dataclass(frozen=True, slots=True)
class PhysicalConstants:
    """Immutable bundle of the constants the kernels need."""
    k_B: float = K_B
    q: float = Q
    eps0: float = EPS0

    def thermal_voltage(self, T: float) -> float:
        """Thermal voltage U_T = k_B T / q [V]."""
        return self.k_B * float(T) / self.q


CONSTANTS = PhysicalConstants()

# Unit multipliers (value * unit -> SI)
M  = 1.0
CM = 1.0e-2
MM = 1.0e-3
UM = 1.0e-6
NM = 1.0e-9
S  = 1.0
NS = 1.0e-9
V  = 1.0
K  = 1.0
EV = Q                       # [J]
