# driftdiff/main.py
"""
driftdiff main entrypoint.

Default subcommand: pin
Usage examples:
    python -m driftdiff
    python -m driftdiff pin --v-end 1.2 --steps 13 --flux sedan
    python -m driftdiff psc --scan-rate 0.04 --steps 41
    python -m driftdiff run --config deck.yaml --set sweep.v_end=0.8
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .discretization.fluxes import FluxScheme
from .io.config import SweepSpec
from .models.parameters import ConfigurationError
from .models.pin_diode import (
    PINDiodeParams,
    PSCParams,
    build_pin_grid,
    build_pin_parameters,
    build_psc_grid,
    build_psc_parameters,
)
from .physics.context import KernelData
from .physics.model import DevicePhysics
from .physics.statistics import distribution_from_name
from .solver.newton import NewtonControl
from .utils import logger as log
from .workflows.run_dc import run_device, run_from_config, write_results

__all__ = ["main"]


# ------------------------------ subcommands ----------------------------------


def _add_common(p: argparse.ArgumentParser, out_default: str) -> None:
    p.add_argument("--flux", choices=[s.value for s in FluxScheme], default="scharfetter_gummel",
                   help="Edge flux scheme")
    p.add_argument("--out", default=out_default, help="Output directory")
    p.add_argument("--debug", action="store_true", help="Verbose solver prints")


def _add_pin_subparser(sub: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = sub.add_parser("pin", help="GaAs p-i-n diode: equilibrium + forward bias IV")
    p.add_argument("--v-end", type=float, default=1.5, help="Final acceptor-contact voltage [V]")
    p.add_argument("--steps", type=int, default=16, help="Number of bias steps")
    p.add_argument("--nodes", type=int, default=11, help="Nodes per layer (>=2)")
    p.add_argument("--stats", default="boltzmann", help="Carrier statistics (boltzmann, blakemore, fd, ...)")
    p.add_argument("--no-recombination", action="store_true", help="Switch recombination off")
    _add_common(p, "runs/pin")
    p.set_defaults(cmd="pin")
    return p


def _add_psc_subparser(sub: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = sub.add_parser("psc", help="Three-layer perovskite cell: equilibrium (+ optional scan)")
    p.add_argument("--scan-rate", type=float, default=None, help="Scan rate [V/s]; omit for equilibrium only")
    p.add_argument("--steps", type=int, default=41, help="Time steps of the scan")
    _add_common(p, "runs/psc")
    p.set_defaults(cmd="psc")
    return p


def _add_run_subparser(sub: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = sub.add_parser("run", help="Run a YAML device deck")
    p.add_argument("--config", required=True, help="YAML deck")
    p.add_argument("--set", dest="overrides", action="append", default=[],
                   metavar="KEY=VALUE", help="Override a config entry (repeatable)")
    p.add_argument("--out", default=None, help="Output directory (default: output.dir)")
    p.add_argument("--debug", action="store_true", help="Verbose solver prints")
    p.set_defaults(cmd="run")
    return p


def _run_pin(ns: argparse.Namespace) -> int:
    par = PINDiodeParams(nodes_per_layer=ns.nodes, distribution=distribution_from_name(ns.stats))
    params = build_pin_parameters(par)
    physics = DevicePhysics(flux_scheme=FluxScheme(ns.flux), contacts=(0, 1))
    sweep = SweepSpec(mode="bias", bregion=0, v_start=0.0, v_end=ns.v_end,
                      n_steps=ns.steps, area_m2=par.area_m2)
    res = run_device(
        params, build_pin_grid(par), physics, sweep,
        data=KernelData(params=params, recombination=not ns.no_recombination),
        homotopy_control=NewtonControl(damp_initial=0.5, damp_growth=1.2, max_iterations=100, max_round=3),
        bias_control=NewtonControl(damp_initial=0.5, damp_growth=1.2, max_iterations=30),
        verbose=ns.debug,
    )
    write_results(Path(ns.out), res)
    log.info(f"[ok] wrote {ns.out}  (converged={res.converged}, IV points={len(res.iv)})")
    return 0 if res.converged else 1


def _run_psc(ns: argparse.Namespace) -> int:
    par = PSCParams()
    params = build_psc_parameters(par)
    physics = DevicePhysics(flux_scheme=FluxScheme(ns.flux), contacts=(0, 1))
    if ns.scan_rate is None:
        sweep = SweepSpec(mode="none", bregion=1)
    else:
        sweep = SweepSpec(mode="scan", bregion=1, v_end=par.v_acceptor,
                          n_steps=ns.steps, scan_rate=ns.scan_rate)
    res = run_device(
        params, build_psc_grid(par), physics, sweep,
        data=KernelData(params=params, recombination=False),
        homotopy_control=NewtonControl(damp_initial=0.1, damp_growth=1.61, max_iterations=300, max_round=5),
        verbose=ns.debug,
    )
    write_results(Path(ns.out), res)
    log.info(f"[ok] wrote {ns.out}  (converged={res.converged})")
    return 0 if res.converged else 1


def _run_config(ns: argparse.Namespace) -> int:
    res = run_from_config(
        Path(ns.config), ns.overrides,
        out_dir=None if ns.out is None else Path(ns.out),
        verbose=ns.debug,
    )
    return 0 if res.converged else 1


# --------------------------------- main() ------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="driftdiff: drift-diffusion device simulations")
    sub = parser.add_subparsers(dest="cmd")
    pin_parser = _add_pin_subparser(sub)
    _add_psc_subparser(sub)
    _add_run_subparser(sub)

    argv = sys.argv[1:] if argv is None else list(argv)
    # If no subcommand given, default to 'pin' with defaults
    ns = pin_parser.parse_args([]) if not argv else parser.parse_args(argv)

    try:
        if ns.cmd == "pin":
            return _run_pin(ns)
        if ns.cmd == "psc":
            return _run_psc(ns)
        if ns.cmd == "run":
            return _run_config(ns)
    except ConfigurationError as exc:
        log.error(f"configuration: {exc}")
        return 2
    parser.error("Unknown command (try: pin, psc, run)")
    return 2


if __name__ == "__main__":
    sys.exit(main())
