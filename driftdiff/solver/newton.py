# driftdiff/solver/newton.py
# Damped Newton iteration on a dense Jacobian, used by the reference FV system.
# Convergence is judged on the size of the Newton update, never on the residual
# (penalty contact rows dominate any residual norm).

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from ..utils import diagnostics as diag

__all__ = ["NewtonControl", "SolveResult", "newton_solve"]


@dataclass(slots=True)
class NewtonControl:
    """
    Knobs of the damped Newton iteration.

    damp_initial  : damping of the first update (0 < d <= 1)
    damp_growth   : damping multiplier per iteration (capped at 1)
    max_iterations: iteration limit
    tol_absolute  : converged when ||Δu||_inf < tol_absolute
    tol_relative  : converged when ||Δu||_inf / ||Δu_1||_inf < tol_relative
    tol_round     : update size below which round-off stagnation is tolerated
    max_round     : stagnating iterations accepted as converged
    max_step      : largest update component in volts (None = unlimited);
                    longer updates are scaled down along their direction
    verbose       : print one line per iteration
    """
    damp_initial: float = 1.0
    damp_growth: float = 1.2
    max_iterations: int = 100
    tol_absolute: float = 1.0e-10
    tol_relative: float = 1.0e-10
    tol_round: float = 1.0e-8
    max_round: int = 3
    max_step: Optional[float] = 1.0
    verbose: bool = False

    def __post_init__(self) -> None:
        if not 0.0 < float(self.damp_initial) <= 1.0:
            raise ValueError(f"damp_initial must lie in (0, 1] (got {self.damp_initial}).")
        if float(self.damp_growth) < 1.0:
            raise ValueError(f"damp_growth must be >= 1 (got {self.damp_growth}).")
        if int(self.max_iterations) < 1:
            raise ValueError("max_iterations must be >= 1.")
        if self.max_step is not None and not float(self.max_step) > 0.0:
            raise ValueError(f"max_step must be > 0 (got {self.max_step}).")


@dataclass(slots=True)
class SolveResult:
    solution: np.ndarray    # (n_species, n_nodes) on success, last iterate otherwise
    converged: bool
    iterations: int
    update_norm: float


# ---- numerics ---------------------------------------------------------------


def _inf_norm(x: np.ndarray) -> float:
    return float(np.linalg.norm(x, ord=np.inf)) if x.size else 0.0


def _equilibrated_solve(J: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """Solve J x = rhs after scaling every row to unit max-norm.

    Rows mix Poisson, penalty and continuity equations whose magnitudes differ
    by tens of orders; row scaling keeps the LU pivoting meaningful.
    """
    s = np.max(np.abs(J), axis=1)
    s[s == 0.0] = 1.0
    return np.linalg.solve(J / s[:, None], rhs / s)


# ---- solver -----------------------------------------------------------------


def newton_solve(
    assemble: Callable[[np.ndarray], Tuple[np.ndarray, np.ndarray]],
    x0: np.ndarray,
    control: NewtonControl | None = None,
    *,
    name: str = "Newton",
) -> SolveResult:
    """Damped Newton for F(x) = 0.

    Parameters
    ----------
    assemble : x -> (F, J) with F of shape (n,) and dense J of shape (n, n)
    x0       : initial guess, any shape; it is flattened and never modified
    control  : NewtonControl (defaults if None)

    Non-finite residuals, a singular Jacobian or hitting the iteration limit
    give `converged=False`; nothing is raised.
    """
    ctl = control or NewtonControl()
    shape = np.shape(x0)
    x = np.array(x0, dtype=np.float64).ravel()

    damp = float(ctl.damp_initial)
    norm = np.inf
    norm0 = None
    nround = 0
    converged = False
    reason = "max_iterations"
    it = 0

    for it in range(1, int(ctl.max_iterations) + 1):
        F, J = assemble(x)
        if not (np.all(np.isfinite(F)) and np.all(np.isfinite(J))):
            reason = "non-finite residual"
            break
        if it == 1 and ctl.verbose:
            diag.log_solver_start(solver=name, res_inf=_inf_norm(F), damping=damp)

        try:
            delta = _equilibrated_solve(J, -F)
        except np.linalg.LinAlgError:
            reason = "singular Jacobian"
            break
        if not np.all(np.isfinite(delta)):
            reason = "non-finite update"
            break

        old = norm
        norm = _inf_norm(delta)

        # Scale long updates along their direction
        if ctl.max_step is not None and norm > float(ctl.max_step):
            delta = delta * (float(ctl.max_step) / norm)

        x = x + damp * delta

        if ctl.verbose:
            diag.log_solver_iter(
                solver=name, it=it, update_norm=norm, damping=damp, res_inf=_inf_norm(F),
            )

        if norm0 is None:
            norm0 = norm if norm > 0.0 else 1.0
        if norm < float(ctl.tol_absolute) or norm / norm0 < float(ctl.tol_relative):
            converged = True
            reason = "update below tolerance"
            break

        # Round-off stagnation: tiny updates that stopped contracting
        if norm < float(ctl.tol_round) and norm > 0.5 * old:
            nround += 1
        else:
            nround = 0
        if nround > int(ctl.max_round):
            converged = True
            reason = "round-off limited"
            break

        damp = min(1.0, damp * float(ctl.damp_growth))

    if ctl.verbose:
        diag.log_convergence_summary(
            solver=name, converged=converged, iters=it, update_norm=norm, reason=reason,
        )
    return SolveResult(solution=x.reshape(shape), converged=converged, iterations=it, update_norm=norm)
