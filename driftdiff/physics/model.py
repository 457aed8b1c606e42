# driftdiff/physics/model.py
"""
Callback bundle handed to the assembly engine.

DevicePhysics picks the flux scheme and routes boundary nodes either to the
ohmic penalty contact or to the insulating boundary. All callbacks keep the
engine contract `kernel(f, u, context, data) -> None`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ..boundaries.contacts import insulating, ohmic_contact
from ..discretization.fluxes import FluxScheme
from .context import BoundaryNode, Edge, KernelData, Node
from .reaction import reaction, storage

__all__ = ["DevicePhysics"]


@dataclass(frozen=True, slots=True)
class DevicePhysics:
    flux_scheme: FluxScheme = FluxScheme.SCHARFETTER_GUMMEL
    contacts: Tuple[int, ...] = (0, 1)

    def __post_init__(self) -> None:
        object.__setattr__(self, "flux_scheme", FluxScheme(self.flux_scheme))
        object.__setattr__(self, "contacts", tuple(int(b) for b in self.contacts))

    def flux(self, f: np.ndarray, u: np.ndarray, edge: Edge, data: KernelData) -> None:
        self.flux_scheme.kernel(f, u, edge, data)

    def reaction(self, f: np.ndarray, u: np.ndarray, node: Node, data: KernelData) -> None:
        reaction(f, u, node, data)

    def storage(self, f: np.ndarray, u: np.ndarray, node: Node, data: KernelData) -> None:
        storage(f, u, node, data)

    def breaction(self, f: np.ndarray, u: np.ndarray, bnode: BoundaryNode, data: KernelData) -> None:
        if bnode.region in self.contacts:
            ohmic_contact(f, u, bnode, data)
        else:
            insulating(f, u, bnode, data)
