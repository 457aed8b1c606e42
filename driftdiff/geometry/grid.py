# driftdiff/geometry/grid.py
"""
Minimal node-centered grid for the reference finite-volume engine.

- SI units throughout.
- A grid is a list of cells (= edges between two nodes) with a region id per
  cell, a geometric edge factor (area / length) and a cell measure (area ·
  length) split equally between the two end nodes.
- Boundary nodes carry a boundary-region id.
- Only 1D layered stacks are built here; the cell list itself is agnostic of
  dimension.

Public API (stable):
    Grid
    glue(a, b, tol=...)
    Grid.from_layers(thicknesses, nodes_per_layer, area=1.0)
    Grid.from_coordinates(coord, interfaces, area=1.0)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

__all__ = ["Grid", "glue"]


def _c64(x) -> np.ndarray:
    return np.ascontiguousarray(np.asarray(x, dtype=np.float64))


def glue(a: Sequence[float], b: Sequence[float], tol: float = 1e-14) -> np.ndarray:
    """Concatenate two increasing coordinate arrays, merging a shared end point."""
    a = _c64(a)
    b = _c64(b)
    if a.size and b.size and abs(a[-1] - b[0]) <= tol * max(1.0, abs(a[-1])):
        b = b[1:]
    out = np.concatenate([a, b])
    if np.any(np.diff(out) <= 0.0):
        raise ValueError("glue: coordinates must be strictly increasing.")
    return out


@dataclass(slots=True)
class Grid:
    """
    Node-centered grid.

    coord        : (N,) node coordinates [m]
    cells        : (M, 2) node index pairs (k, l)
    cell_regions : (M,) region id per cell (0-based)
    edge_factors : (M,) area / length [m]
    cell_volumes : (M,) area * length [m^3]
    bnodes       : (B,) boundary node indices
    bregions     : (B,) boundary-region id per boundary node (0-based)
    bareas       : (B,) boundary measure [m^2]
    """
    coord: np.ndarray
    cells: np.ndarray
    cell_regions: np.ndarray
    edge_factors: np.ndarray
    cell_volumes: np.ndarray
    bnodes: np.ndarray
    bregions: np.ndarray
    bareas: np.ndarray

    @property
    def n_nodes(self) -> int:
        return int(self.coord.size)

    @property
    def n_regions(self) -> int:
        return int(self.cell_regions.max()) + 1

    @property
    def length(self) -> float:
        return float(self.coord[-1] - self.coord[0])

    def node_volumes(self) -> np.ndarray:
        V = np.zeros(self.n_nodes)
        np.add.at(V, self.cells[:, 0], 0.5 * self.cell_volumes)
        np.add.at(V, self.cells[:, 1], 0.5 * self.cell_volumes)
        return V

    def node_regions(self) -> np.ndarray:
        """Region of the first cell touching each node (interface nodes take the left one)."""
        out = np.full(self.n_nodes, -1, dtype=np.int64)
        for (k, l), r in zip(self.cells[::-1], self.cell_regions[::-1]):
            out[k] = r
            out[l] = r
        return out

    def boundary_nodes(self, bregion: int) -> np.ndarray:
        return self.bnodes[self.bregions == int(bregion)]

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------
    @classmethod
    def from_coordinates(
        cls,
        coord: Sequence[float],
        interfaces: Sequence[float],
        *,
        area: float = 1.0,
    ) -> "Grid":
        """
        1D grid; `interfaces` = [x0, x1, ..., xR] are the region limits, the
        cell whose midpoint lies in [x_r, x_{r+1}] gets region r. Boundary
        region 0 is the left end node, boundary region 1 the right one.
        """
        z = _c64(coord)
        if z.size < 2 or np.any(np.diff(z) <= 0.0):
            raise ValueError("Grid: need >= 2 strictly increasing coordinates.")
        limits = _c64(interfaces)
        if limits.size < 2 or np.any(np.diff(limits) <= 0.0):
            raise ValueError("Grid: interfaces must be >= 2 strictly increasing values.")

        h = np.diff(z)
        mid = 0.5 * (z[1:] + z[:-1])
        regions = np.clip(np.searchsorted(limits, mid) - 1, 0, limits.size - 2)

        n = z.size
        cells = np.column_stack([np.arange(n - 1), np.arange(1, n)]).astype(np.int64)
        return cls(
            coord=z,
            cells=cells,
            cell_regions=regions.astype(np.int64),
            edge_factors=float(area) / h,
            cell_volumes=float(area) * h,
            bnodes=np.array([0, n - 1], dtype=np.int64),
            bregions=np.array([0, 1], dtype=np.int64),
            bareas=np.array([float(area), float(area)]),
        )

    @classmethod
    def from_layers(
        cls,
        thicknesses: Sequence[float],
        nodes_per_layer: int | Sequence[int],
        *,
        area: float = 1.0,
    ) -> "Grid":
        """Uniformly meshed layer stack; layer i becomes region i."""
        t = _c64(thicknesses)
        if t.size < 1 or np.any(t <= 0.0):
            raise ValueError("Grid: layer thicknesses must be > 0.")
        if np.ndim(nodes_per_layer) == 0:
            per_layer = [int(nodes_per_layer)] * t.size
        else:
            per_layer = [int(v) for v in nodes_per_layer]
        if len(per_layer) != t.size or min(per_layer) < 2:
            raise ValueError("Grid: need >= 2 nodes for every layer.")

        limits = np.concatenate([[0.0], np.cumsum(t)])
        coord = np.linspace(limits[0], limits[1], per_layer[0])
        for i in range(1, t.size):
            coord = glue(coord, np.linspace(limits[i], limits[i + 1], per_layer[i]))
        return cls.from_coordinates(coord, limits, area=area)
