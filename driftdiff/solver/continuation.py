"""
driftdiff/solver/continuation.py

Continuation strategy for the drift-diffusion system:

1) Homotopy ramp. The fixed charge (doping) is switched on through the
   embedding λ following `homotopy_schedule()`, with every contact at 0 V.
   Each λ is solved from the previous converged state.
2) Bias ramp. The contact voltage of one boundary region walks through a
   voltage list (uniform) or a scan-rate schedule (time steps). The carrier
   Dirichlet values follow the contact voltage; the other contacts return to
   their configured voltages. Each converged step can be recorded by an
   IVAccumulator.

Divergence ends a ramp and is reported through `RampResult` (no exceptions).
The last converged state is always returned so callers can inspect or resume.

Typical loop:
    cont = ContinuationSolver(system, data, contacts=(0, 1))
    hom = cont.homotopy(cont.initial_state(grid))
    ramp = cont.bias_ramp(hom.solution, bias_schedule(0.0, 1.0, 11), bregion=0,
                          accumulator=iv)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np

from ..geometry.grid import Grid
from ..physics.context import KernelData
from ..physics.reaction import electroneutral_potential
from ..utils import diagnostics as diag
from ..utils import logger as log
from .newton import NewtonControl, SolveResult

__all__ = [
    "NonlinearSolver",
    "RampResult",
    "ContinuationSolver",
    "homotopy_schedule",
    "bias_schedule",
    "scan_schedule",
]


class NonlinearSolver(Protocol):
    def solve(
        self,
        initial_guess: np.ndarray,
        data: KernelData,
        *,
        control: NewtonControl | None = None,
        tstep: float = np.inf,
        boundary_values: Optional[np.ndarray] = None,
    ) -> SolveResult:
        ...


# -----------------------------------------------------------------------------
# Schedules
# -----------------------------------------------------------------------------
def homotopy_schedule(decades: int = 20) -> np.ndarray:
    """[0, 1e-20, 1e-19, ..., 1e-1, 1]: strictly increasing, ends at 1."""
    return np.array([0.0] + [10.0 ** (-i) for i in range(int(decades), -1, -1)])


def bias_schedule(v_start: float, v_end: float, n_steps: int) -> np.ndarray:
    if int(n_steps) < 1:
        raise ValueError("bias_schedule: n_steps must be >= 1.")
    return np.linspace(float(v_start), float(v_end), int(n_steps))


def scan_schedule(
    scan_rate: float,
    v_end: float,
    n_steps: int,
    v_start: float = 0.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Times t_i = linspace(0, (v_end − v_start)/scan_rate, n_steps) and voltages
    v_start + t_i · scan_rate. The first entry is the starting state.
    """
    rate = float(scan_rate)
    if rate == 0.0 or not np.isfinite(rate):
        raise ValueError("scan_schedule: scan_rate must be finite and nonzero.")
    t_end = (float(v_end) - float(v_start)) / rate
    if t_end <= 0.0:
        raise ValueError("scan_schedule: scan direction does not reach v_end.")
    if int(n_steps) < 2:
        raise ValueError("scan_schedule: n_steps must be >= 2.")
    t = np.linspace(0.0, t_end, int(n_steps))
    return t, float(v_start) + t * rate


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------
@dataclass(slots=True)
class RampResult:
    """
    Outcome of one ramp.

    converged : every step of the ramp converged
    solution  : last converged state (the initial state if no step converged)
    data      : KernelData of that state
    values    : parameter values (λ or V) that converged, in order
    failed_at : parameter value of the first failing step (None on success)
    iterations: Newton iterations per converged step
    """
    stage: str
    converged: bool
    solution: np.ndarray
    data: KernelData
    values: List[float] = field(default_factory=list)
    failed_at: Optional[float] = None
    iterations: List[int] = field(default_factory=list)

    @property
    def last_value(self) -> Optional[float]:
        return self.values[-1] if self.values else None


# -----------------------------------------------------------------------------
# Driver
# -----------------------------------------------------------------------------
class ContinuationSolver:
    """Sequence nonlinear solves: homotopy first, then bias or scan ramps."""

    def __init__(
        self,
        solver: NonlinearSolver,
        data: KernelData,
        *,
        contacts: Sequence[int] = (0, 1),
        homotopy_control: NewtonControl | None = None,
        bias_control: NewtonControl | None = None,
        verbose: bool = False,
    ) -> None:
        self.solver = solver
        self.data = data
        # contact voltages as configured; the homotopy runs at 0 V
        self.held_voltages = np.array(data.params.contact_voltage, dtype=np.float64)
        self.contacts = tuple(int(b) for b in contacts)
        self.homotopy_control = homotopy_control or NewtonControl()
        self.bias_control = bias_control or self.homotopy_control
        self.verbose = bool(verbose)

    # -- helpers ---------------------------------------------------------------
    def boundary_values(self, data: KernelData) -> np.ndarray:
        """Dirichlet table: every carrier at an ohmic contact = its contact voltage."""
        p = data.params
        table = np.full((p.n_species, p.n_boundary_regions), np.nan)
        for b in self.contacts:
            table[: p.n_carriers, b] = p.contact_voltage[b]
        return table

    def initial_state(self, grid: Grid, embedding: float = 0.0) -> np.ndarray:
        """Carriers at 0 V, ψ at the local electroneutral potential of each node."""
        p = self.data.params
        data = self.data.with_embedding(embedding)
        regions = grid.node_regions()
        psi_of_region = {
            int(r): electroneutral_potential(0.0, int(r), data) for r in np.unique(regions)
        }
        u = np.zeros((p.n_species, grid.n_nodes))
        u[p.ipsi] = [psi_of_region[int(r)] for r in regions]
        return u

    # -- ramps -----------------------------------------------------------------
    def homotopy(
        self,
        initial_guess: np.ndarray,
        schedule: Sequence[float] | None = None,
    ) -> RampResult:
        """Walk λ through `schedule` at equilibrium (all contacts at 0 V)."""
        lambdas = homotopy_schedule() if schedule is None else np.asarray(schedule, dtype=np.float64)
        if lambdas.size == 0:
            raise ValueError("homotopy: empty schedule.")
        p0 = self.data.params.with_contact_voltages(np.zeros(self.data.params.n_boundary_regions))
        base = self.data.with_params(p0)
        bvals = self.boundary_values(base)

        guess = np.array(initial_guess, dtype=np.float64)
        out = RampResult(stage="homotopy", converged=True, solution=guess, data=base.with_embedding(lambdas[0]))
        for step, lam in enumerate(lambdas):
            data = base.with_embedding(float(lam))
            res = self.solver.solve(guess, data, control=self.homotopy_control, boundary_values=bvals)
            if self.verbose:
                diag.log_homotopy_step(
                    step=step, embedding=float(lam), converged=res.converged,
                    iters=res.iterations, update_norm=res.update_norm,
                )
            if not res.converged:
                log.warn(f"homotopy diverged at λ={lam:.1e} (last converged: {out.last_value})")
                out.converged = False
                out.failed_at = float(lam)
                return out
            guess = res.solution.copy()
            out.solution = guess
            out.data = data
            out.values.append(float(lam))
            out.iterations.append(int(res.iterations))

        self.data = out.data
        return out

    def _ramp(
        self,
        stage: str,
        initial_guess: np.ndarray,
        voltages: Sequence[float],
        tsteps: Sequence[float],
        bregion: int,
        accumulator,
    ) -> RampResult:
        guess = np.array(initial_guess, dtype=np.float64)
        out = RampResult(stage=stage, converged=True, solution=guess, data=self.data)
        held = self.data.params.with_contact_voltages(self.held_voltages.copy())
        for step, (v, dt) in enumerate(zip(voltages, tsteps)):
            data = self.data.with_params(held.with_contact_voltage(bregion, float(v)))
            res = self.solver.solve(
                guess, data,
                control=self.bias_control, tstep=float(dt),
                boundary_values=self.boundary_values(data),
            )
            if not res.converged:
                if self.verbose:
                    diag.log_bias_step(
                        step=step, voltage=float(v), converged=False,
                        iters=res.iterations, tstep=float(dt),
                    )
                log.warn(f"{stage} diverged at V={v:+.4f} V (last converged: {out.last_value})")
                out.converged = False
                out.failed_at = float(v)
                return out

            current = None
            if accumulator is not None:
                current = accumulator.record(float(v), res.solution, data, u_old=guess, tstep=float(dt))
            if self.verbose:
                diag.log_bias_step(
                    step=step, voltage=float(v), converged=True,
                    iters=res.iterations, current=current, tstep=float(dt),
                )
            guess = res.solution.copy()
            out.solution = guess
            out.data = data
            out.values.append(float(v))
            out.iterations.append(int(res.iterations))
            self.data = data
        return out

    def bias_ramp(
        self,
        initial_guess: np.ndarray,
        voltages: Sequence[float],
        *,
        bregion: int,
        accumulator=None,
    ) -> RampResult:
        """Stationary solves at each contact voltage of `voltages`."""
        if int(bregion) not in self.contacts:
            raise ValueError(f"bias_ramp: boundary region {bregion} is not an ohmic contact.")
        v = [float(x) for x in voltages]
        return self._ramp("bias", initial_guess, v, [np.inf] * len(v), int(bregion), accumulator)

    def scan_ramp(
        self,
        initial_guess: np.ndarray,
        scan_rate: float,
        v_end: float,
        n_steps: int,
        *,
        bregion: int,
        v_start: float = 0.0,
        accumulator=None,
    ) -> RampResult:
        """Transient voltage scan; the first (t = 0) entry is the starting state."""
        if int(bregion) not in self.contacts:
            raise ValueError(f"scan_ramp: boundary region {bregion} is not an ohmic contact.")
        t, v = scan_schedule(scan_rate, v_end, n_steps, v_start=v_start)
        dt = np.diff(t)
        return self._ramp("scan", initial_guess, v[1:], dt, int(bregion), accumulator)
