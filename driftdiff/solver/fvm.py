# driftdiff/solver/fvm.py
"""
Reference node-centered finite-volume system.

Residual of species s at node i (steady state):

    Σ_{cells ∋ i} ± ε_kl · flux_s(u_k, u_l)           (+ at k, − at l)
  + Σ_{cells ∋ i} ½|cell| · reaction_s(u_i; region of the cell)
  + Σ_{boundary}  |face| · breaction_s(u_i)
  + Σ_{cells ∋ i} ½|cell| · (storage_s(u_i) − storage_s(u_i^old)) / Δt   (finite Δt)

Dirichlet values (ohmic contacts: every carrier = contact voltage) replace the
residual row by u_s,i − value. Local Jacobians come from central differences
of the kernels, evaluated in one batched call per edge/node.

Unknown layout: u.shape == (n_species, n_nodes), flattened species-major.

Public API (stable):
    FVSystem(grid, physics, n_species)
    FVSystem.set_ohmic_contact(bregion, voltage)
    FVSystem.unknowns(value=0.0)
    FVSystem.residual(u, data, u_old=None, tstep=inf, boundary_values=None)
    FVSystem.assemble(u, data, u_old=None, tstep=inf, boundary_values=None)
    FVSystem.solve(initial_guess, data, control=None, tstep=inf, boundary_values=None)
    FVSystem.testfunction(bc0, bc1)
    FVSystem.integrate(tf, u, data, u_old=None, tstep=inf)
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

import numpy as np

from ..geometry.grid import Grid
from ..physics.context import BoundaryNode, Edge, KernelData, Node
from ..physics.model import DevicePhysics
from .newton import NewtonControl, SolveResult, newton_solve

__all__ = ["FVSystem"]


def _perturbations(x: np.ndarray, h: np.ndarray) -> np.ndarray:
    """Columns: x, x + h_j e_j (j = 0..n-1), x − h_j e_j (j = 0..n-1)."""
    n = x.size
    X = np.repeat(x[:, None], 2 * n + 1, axis=1)
    idx = np.arange(n)
    X[idx, 1 + idx] += h
    X[idx, 1 + n + idx] -= h
    return X


class FVSystem:
    """Finite-volume discretization of one DevicePhysics bundle on a Grid."""

    def __init__(
        self,
        grid: Grid,
        physics: DevicePhysics,
        n_species: int,
        *,
        fd_step: float = 1.0e-7,
    ) -> None:
        self.grid = grid
        self.physics = physics
        self.n_species = int(n_species)
        self.fd_step = float(fd_step)
        n_bregions = int(grid.bregions.max()) + 1 if grid.bregions.size else 0
        self._dirichlet = np.full((self.n_species, n_bregions), np.nan)

    # ------------------------------------------------------------------
    # Boundary values
    # ------------------------------------------------------------------
    @property
    def n_nodes(self) -> int:
        return self.grid.n_nodes

    @property
    def boundary_values(self) -> np.ndarray:
        """(n_species, n_bregions) Dirichlet table; NaN = no Dirichlet value."""
        return self._dirichlet.copy()

    def set_ohmic_contact(self, bregion: int, voltage: float) -> None:
        """Every carrier quasi-Fermi potential at `bregion` equals `voltage`."""
        self._dirichlet[: self.n_species - 1, int(bregion)] = float(voltage)

    def unknowns(self, value: float = 0.0) -> np.ndarray:
        return np.full((self.n_species, self.n_nodes), float(value))

    def _apply_dirichlet(
        self,
        u: np.ndarray,
        F: np.ndarray,
        J: Optional[np.ndarray],
        values: np.ndarray,
    ) -> None:
        N = self.n_nodes
        for i, b in zip(self.grid.bnodes, self.grid.bregions):
            for s in range(self.n_species):
                val = values[s, b]
                if np.isnan(val):
                    continue
                F[s, i] = u[s, i] - val
                if J is not None:
                    row = s * N + i
                    J[row, :] = 0.0
                    J[row, row] = 1.0

    def _project(self, u: np.ndarray, values: np.ndarray) -> None:
        for i, b in zip(self.grid.bnodes, self.grid.bregions):
            mask = ~np.isnan(values[:, b])
            u[mask, i] = values[mask, b]

    # ------------------------------------------------------------------
    # Local evaluation
    # ------------------------------------------------------------------
    def _local(self, kernel, u_loc: np.ndarray, ctx, data: KernelData, jacobian: bool):
        ns = self.n_species
        if not jacobian:
            f = np.zeros(ns)
            kernel(f, u_loc, ctx, data)
            return f, None
        x = u_loc.ravel()
        h = self.fd_step * (1.0 + np.abs(x))
        X = _perturbations(x, h)
        m = X.shape[1]
        f = np.zeros((ns, m))
        kernel(f, X.reshape(u_loc.shape + (m,)), ctx, data)
        n = x.size
        return f[:, 0], (f[:, 1 : 1 + n] - f[:, 1 + n :]) / (2.0 * h)

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------
    def _assemble(
        self,
        u: np.ndarray,
        data: KernelData,
        u_old: Optional[np.ndarray],
        tstep: float,
        boundary_values: Optional[np.ndarray],
        jacobian: bool,
    ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        g = self.grid
        ns, N = self.n_species, self.n_nodes
        u = np.asarray(u, dtype=np.float64).reshape(ns, N)
        transient = np.isfinite(tstep)
        if transient and u_old is None:
            raise ValueError("transient assembly needs u_old.")

        F = np.zeros((ns, N))
        J = np.zeros((ns * N, ns * N)) if jacobian else None
        species_rows = np.arange(ns) * N
        ph = self.physics

        for c, (k, l) in enumerate(g.cells):
            r = int(g.cell_regions[c])
            ef = float(g.edge_factors[c])
            half = 0.5 * float(g.cell_volumes[c])

            fe, Je = self._local(ph.flux, u[:, [k, l]], Edge(int(k), int(l), r), data, jacobian)
            F[:, k] += ef * fe
            F[:, l] -= ef * fe
            if jacobian:
                cols = (species_rows[:, None] + np.array([k, l])[None, :]).ravel()
                J[np.ix_(species_rows + k, cols)] += ef * Je
                J[np.ix_(species_rows + l, cols)] -= ef * Je

            for i in (int(k), int(l)):
                node = Node(i, r)
                rows = species_rows + i
                fr, Jr = self._local(ph.reaction, u[:, i], node, data, jacobian)
                F[:, i] += half * fr
                if jacobian:
                    J[np.ix_(rows, rows)] += half * Jr
                if transient:
                    fs, Js = self._local(ph.storage, u[:, i], node, data, jacobian)
                    fs_old = np.zeros(ns)
                    ph.storage(fs_old, np.asarray(u_old, dtype=np.float64).reshape(ns, N)[:, i], node, data)
                    F[:, i] += half * (fs - fs_old) / tstep
                    if jacobian:
                        J[np.ix_(rows, rows)] += half * Js / tstep

        for i, b, area in zip(g.bnodes, g.bregions, g.bareas):
            rows = species_rows + i
            fb, Jb = self._local(ph.breaction, u[:, i], BoundaryNode(int(i), int(b)), data, jacobian)
            F[:, i] += area * fb
            if jacobian:
                J[np.ix_(rows, rows)] += area * Jb

        values = self._dirichlet if boundary_values is None else np.asarray(boundary_values)
        self._apply_dirichlet(u, F, J, values)
        return F, J

    def residual(
        self,
        u: np.ndarray,
        data: KernelData,
        *,
        u_old: Optional[np.ndarray] = None,
        tstep: float = np.inf,
        boundary_values: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """(n_species, n_nodes) residual."""
        F, _ = self._assemble(u, data, u_old, tstep, boundary_values, jacobian=False)
        return F

    def assemble(
        self,
        u: np.ndarray,
        data: KernelData,
        *,
        u_old: Optional[np.ndarray] = None,
        tstep: float = np.inf,
        boundary_values: Optional[np.ndarray] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Flat residual (n_species * n_nodes,) and dense Jacobian."""
        F, J = self._assemble(u, data, u_old, tstep, boundary_values, jacobian=True)
        return F.ravel(), J

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------
    def solve(
        self,
        initial_guess: np.ndarray,
        data: KernelData,
        *,
        control: NewtonControl | None = None,
        tstep: float = np.inf,
        boundary_values: Optional[np.ndarray] = None,
    ) -> SolveResult:
        """
        Newton solve starting from `initial_guess` (not modified). For finite
        `tstep` the initial guess doubles as the previous time level.
        """
        ns, N = self.n_species, self.n_nodes
        u_old = np.array(initial_guess, dtype=np.float64).reshape(ns, N)
        values = self._dirichlet if boundary_values is None else np.asarray(boundary_values)
        x0 = u_old.copy()
        self._project(x0, values)

        def _fj(x: np.ndarray):
            return self.assemble(
                x.reshape(ns, N), data,
                u_old=u_old, tstep=tstep, boundary_values=values,
            )

        return newton_solve(_fj, x0, control)

    # ------------------------------------------------------------------
    # Terminal currents
    # ------------------------------------------------------------------
    def testfunction(self, bc0: Iterable[int], bc1: Iterable[int]) -> np.ndarray:
        """
        Node weights solving the discrete Laplace equation with value 0 on the
        boundary regions `bc0` and 1 on `bc1`.
        """
        g = self.grid
        N = self.n_nodes
        A = np.zeros((N, N))
        for (k, l), ef in zip(g.cells, g.edge_factors):
            A[k, k] += ef
            A[l, l] += ef
            A[k, l] -= ef
            A[l, k] -= ef
        rhs = np.zeros(N)
        for bregions, value in ((set(map(int, bc0)), 0.0), (set(map(int, bc1)), 1.0)):
            for i, b in zip(g.bnodes, g.bregions):
                if int(b) in bregions:
                    A[i, :] = 0.0
                    A[i, i] = 1.0
                    rhs[i] = value
        return np.linalg.solve(A, rhs)

    def integrate(
        self,
        tf: np.ndarray,
        u: np.ndarray,
        data: KernelData,
        u_old: Optional[np.ndarray] = None,
        tstep: float = np.inf,
    ) -> np.ndarray:
        """Per-species test-function integral of flux, reaction and storage."""
        g = self.grid
        ns, N = self.n_species, self.n_nodes
        u = np.asarray(u, dtype=np.float64).reshape(ns, N)
        tf = np.asarray(tf, dtype=np.float64)
        transient = np.isfinite(tstep)
        if transient:
            if u_old is None:
                raise ValueError("transient integral needs u_old.")
            u_old = np.asarray(u_old, dtype=np.float64).reshape(ns, N)

        ph = self.physics
        out = np.zeros(ns)
        f = np.zeros(ns)
        f_old = np.zeros(ns)
        for c, (k, l) in enumerate(g.cells):
            r = int(g.cell_regions[c])
            ph.flux(f, u[:, [k, l]], Edge(int(k), int(l), r), data)
            out += g.edge_factors[c] * f * (tf[k] - tf[l])

            half = 0.5 * float(g.cell_volumes[c])
            for i in (int(k), int(l)):
                node = Node(i, r)
                ph.reaction(f, u[:, i], node, data)
                out += half * f * tf[i]
                if transient:
                    ph.storage(f, u[:, i], node, data)
                    ph.storage(f_old, u_old[:, i], node, data)
                    out += half * (f - f_old) / tstep * tf[i]
        return out
