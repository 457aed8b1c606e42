"""
driftdiff/utils/diagnostics.py

Targeted, low-noise diagnostics for the continuation ramps and the Newton
iteration. Solvers call these only when their verbose/debug flag is set.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np


def _fmt_range(x: np.ndarray, name: str) -> str:
    if x.size == 0:
        return f"{name}: (empty)"
    return f"{name}∈[{np.min(x):+.3e},{np.max(x):+.3e}]"


def log_state_summary(
    *,
    u: np.ndarray,
    species_names: Optional[Sequence[str]] = None,
    prefix: str = "[diag]",
) -> None:
    """Print compact ranges for every species row of an unknown array."""
    u = np.atleast_2d(np.asarray(u, dtype=np.float64))
    nspec = u.shape[0]
    if species_names is None:
        species_names = [f"φ{i}" for i in range(nspec - 1)] + ["ψ"]
    msg = [prefix] + [_fmt_range(u[i], name) for i, name in enumerate(species_names)]
    print(" | ".join(msg))


def log_homotopy_step(
    *,
    step: int,
    embedding: float,
    converged: bool,
    iters: int,
    update_norm: float,
    prefix: str = "[hom]",
) -> None:
    """One line per homotopy step. Called by solver/continuation.py."""
    print(
        f"{prefix} step {step:02d} λ={embedding:.1e} | conv={converged} | "
        f"iters={iters} | ||Δu||_inf={update_norm:.3e}"
    )


def log_bias_step(
    *,
    step: int,
    voltage: float,
    converged: bool,
    iters: int,
    current: Optional[float] = None,
    tstep: float = np.inf,
    prefix: str = "[bias]",
) -> None:
    cur_txt = f" | I={current:.4e} A" if current is not None else ""
    dt_txt = f" Δt={tstep:.3e}s" if np.isfinite(tstep) else ""
    print(
        f"{prefix} step {step:02d} V={voltage:+.4f} V{dt_txt} | conv={converged} | "
        f"iters={iters}{cur_txt}"
    )


def log_solver_start(
    *,
    solver: str,
    res_inf: float,
    damping: float,
    prefix: str = "[sol]",
) -> None:
    print(f"{prefix} {solver} start | ||res||_inf={res_inf:.3e} | damping={damping:.2e}")


def log_solver_iter(
    *,
    solver: str,
    it: int,
    update_norm: float,
    damping: float,
    res_inf: float,
    prefix: str = "[sol]",
) -> None:
    print(
        f"{prefix} {solver} iter {it:03d} | ||Δu||_inf={update_norm:.3e} | "
        f"damping={damping:.2e} | ||res||_inf={res_inf:.3e}"
    )


def log_convergence_summary(
    *,
    solver: str,
    converged: bool,
    iters: int,
    update_norm: float,
    reason: str = "",
    prefix: str = "[sol]",
) -> None:
    why = f" | {reason}" if reason else ""
    print(
        f"{prefix} {solver} done | converged={converged} | iters={iters} | "
        f"||Δu||_inf={update_norm:.3e}{why}"
    )
