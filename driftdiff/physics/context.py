# driftdiff/physics/context.py
"""
Call contexts and shared kernel data.

The assembly engine builds an Edge / Node / BoundaryNode per call and hands
it, together with the local unknowns and a KernelData value, to the kernels.
Kernels must not keep references to any of them.

Local unknown layout:
    edge kernels:  u.shape == (n_species, 2), column 0 = node k, column 1 = node l
    node kernels:  u.shape == (n_species,)
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

import numpy as np

from ..models.parameters import ParameterStore
from ..utils.constants import CONSTANTS, PhysicalConstants

__all__ = [
    "Edge", "Node", "BoundaryNode",
    "RecombinationScope", "KernelData",
    "DIRICHLET_PENALTY",
]

# Penalty value of the ohmic-contact condition (α = 1 / DIRICHLET_PENALTY).
DIRICHLET_PENALTY = 1.0e30


@dataclass(frozen=True, slots=True)
class Edge:
    k: int
    l: int
    region: int

    @staticmethod
    def view_k(u: np.ndarray) -> np.ndarray:
        return u[:, 0]

    @staticmethod
    def view_l(u: np.ndarray) -> np.ndarray:
        return u[:, 1]


@dataclass(frozen=True, slots=True)
class Node:
    index: int
    region: int


@dataclass(frozen=True, slots=True)
class BoundaryNode:
    index: int
    region: int


class RecombinationScope(Enum):
    """Which regions feed the recombination prefactor of a node."""
    NODE_REGION = "node_region"     # only the region the node belongs to
    ALL_REGIONS = "all_regions"     # sum of the prefactors of every region


@dataclass(frozen=True, slots=True, eq=False)
class KernelData:
    """
    Everything a kernel reads besides its local unknowns.

    params      : validated device parameters
    constants   : physical constants (k_B, q, ε0)
    embedding   : homotopy parameter λ ∈ [0, 1]; scales the fixed (doping) charge
    penalty     : 1/α of the ohmic-contact penalty condition
    recombination / recombination_scope : recombination switch and region policy
    """
    params: ParameterStore
    constants: PhysicalConstants = CONSTANTS
    embedding: float = 1.0
    penalty: float = DIRICHLET_PENALTY
    recombination: bool = True
    recombination_scope: RecombinationScope = RecombinationScope.NODE_REGION

    def __post_init__(self) -> None:
        lam = float(self.embedding)
        if not 0.0 <= lam <= 1.0:
            raise ValueError(f"embedding λ must lie in [0, 1] (got {lam}).")
        if not float(self.penalty) > 0.0:
            raise ValueError(f"penalty must be > 0 (got {self.penalty}).")
        object.__setattr__(self, "embedding", lam)
        object.__setattr__(self, "recombination_scope", RecombinationScope(self.recombination_scope))

    @property
    def thermal_voltage(self) -> float:
        return self.constants.thermal_voltage(self.params.temperature)

    def with_embedding(self, embedding: float) -> "KernelData":
        return replace(self, embedding=float(embedding))

    def with_params(self, params: ParameterStore) -> "KernelData":
        return replace(self, params=params)
