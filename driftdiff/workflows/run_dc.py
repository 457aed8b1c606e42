# -*- coding: utf-8 -*-
"""
Single-run workflow wiring config → physics → continuation → IV → results.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import numpy as np
import pandas as pd

from ..geometry.grid import Grid
from ..io.config import (
    SweepSpec,
    build_control,
    build_grid,
    build_kernel_data,
    build_parameters,
    build_physics,
    build_sweep,
    load_config,
)
from ..io.results import save_fields_npz, write_iv_table, write_metrics
from ..models.parameters import ParameterStore
from ..physics.context import KernelData
from ..physics.model import DevicePhysics
from ..postprocess.extract_iv import IVAccumulator, ron, turn_on_voltage
from ..solver.continuation import ContinuationSolver, RampResult, bias_schedule
from ..solver.fvm import FVSystem
from ..solver.newton import NewtonControl
from ..utils import diagnostics as diag
from ..utils import logger as log


@dataclass
class DCResult:
    grid: Grid
    homotopy: RampResult
    sweep: Optional[RampResult]
    iv: pd.DataFrame
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        return self.homotopy.converged and (self.sweep is None or self.sweep.converged)

    @property
    def solution(self) -> np.ndarray:
        return (self.sweep or self.homotopy).solution


def run_device(
    params: ParameterStore,
    grid: Grid,
    physics: DevicePhysics,
    sweep: SweepSpec,
    *,
    data: Optional[KernelData] = None,
    homotopy_control: NewtonControl | None = None,
    bias_control: NewtonControl | None = None,
    verbose: bool = False,
) -> DCResult:
    """Equilibrium by homotopy, then the bias or scan ramp of `sweep`."""
    params.validate_ohmic_contacts(physics.contacts)
    data = KernelData(params=params) if data is None else data.with_params(params)
    system = FVSystem(grid, physics, params.n_species)
    cont = ContinuationSolver(
        system, data,
        contacts=physics.contacts,
        homotopy_control=homotopy_control,
        bias_control=bias_control,
        verbose=verbose,
    )

    hom = cont.homotopy(cont.initial_state(grid))
    if verbose:
        diag.log_state_summary(u=hom.solution)
    if not hom.converged:
        log.error(f"equilibrium not reached (failed at λ={hom.failed_at:.1e})")
        return DCResult(grid=grid, homotopy=hom, sweep=None, iv=pd.DataFrame({"V": [], "I": []}),
                        metrics=_metrics(hom, None, None))

    if sweep.mode == "none":
        return DCResult(grid=grid, homotopy=hom, sweep=None, iv=pd.DataFrame({"V": [], "I": []}),
                        metrics=_metrics(hom, None, None))

    others = [b for b in physics.contacts if b != sweep.bregion]
    tf = system.testfunction(bc0=[sweep.bregion], bc1=others)
    iv = IVAccumulator(system, tf, area=sweep.area_m2, include_displacement=sweep.include_displacement)

    if sweep.mode == "scan":
        ramp = cont.scan_ramp(
            hom.solution, sweep.scan_rate, sweep.v_end, sweep.n_steps,
            bregion=sweep.bregion, v_start=sweep.v_start, accumulator=iv,
        )
    else:
        ramp = cont.bias_ramp(
            hom.solution, bias_schedule(sweep.v_start, sweep.v_end, sweep.n_steps),
            bregion=sweep.bregion, accumulator=iv,
        )
    if verbose:
        diag.log_state_summary(u=ramp.solution)
    return DCResult(grid=grid, homotopy=hom, sweep=ramp, iv=iv.to_frame(), metrics=_metrics(hom, ramp, iv))


def _metrics(hom: RampResult, ramp: Optional[RampResult], iv: Optional[IVAccumulator]) -> Dict[str, Any]:
    m: Dict[str, Any] = {
        "homotopy_converged": bool(hom.converged),
        "homotopy_steps": len(hom.values),
        "homotopy_iterations": int(sum(hom.iterations)),
    }
    if ramp is not None:
        m["sweep_converged"] = bool(ramp.converged)
        m["sweep_steps"] = len(ramp.values)
        m["sweep_failed_at_V"] = ramp.failed_at
        m["last_voltage_V"] = ramp.last_value
    if iv is not None and len(iv) >= 2:
        v, i = iv.as_arrays()
        half = v.size // 2
        m["I_max_A"] = float(np.max(i))
        m["V_on_V"] = turn_on_voltage(v, i, 0.01 * m["I_max_A"])
        m["Ron_ohm"] = float(ron(v[half:], i[half:])) if v.size - half >= 2 else None
    return m


def run_from_config(
    cfg_path: Path,
    overrides: Iterable[str] = (),
    *,
    out_dir: Optional[Path] = None,
    verbose: bool = False,
) -> DCResult:
    cfg = load_config(Path(cfg_path), overrides)
    params = build_parameters(cfg)
    grid = build_grid(cfg)
    physics = build_physics(cfg)
    log.debug(f"device: {params.n_regions} regions, {grid.n_nodes} nodes, flux={physics.flux_scheme.value}",
              enabled=verbose)
    log.debug(params.summary(), enabled=verbose)

    res = run_device(
        params, grid, physics, build_sweep(cfg),
        data=build_kernel_data(cfg, params),
        homotopy_control=build_control(cfg, "homotopy"),
        bias_control=build_control(cfg, "bias"),
        verbose=verbose,
    )

    if out_dir is None:
        out_dir = Path((cfg.raw.get("output") or {}).get("dir", Path("runs") / Path(cfg_path).stem))
    write_results(Path(out_dir), res)
    log.info(f"[run] wrote results to: {out_dir}")
    return res


def write_results(out_dir: Path, res: DCResult) -> None:
    write_metrics(out_dir, res.metrics)
    if len(res.iv):
        write_iv_table(out_dir, res.iv)
    save_fields_npz(out_dir, x=res.grid.coord, u=res.solution,
                    V=res.iv["V"].to_numpy(), I=res.iv["I"].to_numpy())
