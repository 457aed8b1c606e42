# driftdiff/io/config.py
# -*- coding: utf-8 -*-
"""
YAML → ParameterStore, Grid, solver controls and sweep settings.

Schema (minimal, example; per-carrier lists follow the `carriers` order):

device:
  temperature_K: 300
  carriers:
    - { name: electrons, charge: -1, distribution: boltzmann }
    - { name: holes,     charge: +1, distribution: boltzmann }
  layers:
    - name: p
      thickness_um: 2.0
      nodes: 11
      dielectric_constant: 12.9
      radiative_cm3_s: 1.0e-10
      density_of_states_cm3: [4.35e17, 9.14e18]
      band_edge_energy_eV:   [1.424, 0.0]
      mobility_cm2_Vs:       [8500, 400]
      doping_cm3:            [0.0, 4.2e18]
  contacts:
    - { boundary: 0, region: 0, voltage: 0.0, doping_cm3: [0.0, 4.2e18] }
    - { boundary: 1, region: 2, voltage: 0.0, doping_cm3: [4.35e17, 0.0] }

physics:
  flux: scharfetter_gummel        # or sedan
  recombination: true
  recombination_scope: node_region
  penalty: 1.0e30

solver:
  homotopy: { damp_initial: 0.5, damp_growth: 1.2, max_iterations: 100 }
  bias:     { damp_initial: 0.5, damp_growth: 1.2, max_iterations: 30 }

sweep:
  mode: bias                      # bias | scan | none
  bregion: 0
  v_start: 0.0
  v_end: 1.0
  n_steps: 11
  scan_rate: 0.04                 # scan mode only [V/s]
  area_m2: 5.0e-11
  include_displacement: false

output:
  dir: runs/pin

Optional per-layer keys: intrinsic_doping_cm3, srh_lifetime_s,
srh_trap_density_cm3, auger_cm6_s. Optional per-contact keys:
density_of_states_cm3, band_edge_energy_eV (default: copied from `region`).
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from ..discretization.fluxes import FluxScheme
from ..geometry.grid import Grid
from ..models.parameters import ConfigurationError, ParameterBuilder, ParameterStore
from ..physics.context import DIRICHLET_PENALTY, KernelData, RecombinationScope
from ..physics.model import DevicePhysics
from ..solver.newton import NewtonControl
from ..utils.constants import CM, EV, UM

__all__ = [
    "RunConfig",
    "SweepSpec",
    "load_config",
    "config_from_dict",
    "apply_overrides",
    "build_parameters",
    "build_grid",
    "build_physics",
    "build_kernel_data",
    "build_control",
    "build_sweep",
    "contact_regions",
]

_PER_CM3 = 1.0 / CM ** 3

# yaml key → (builder keyword, SI multiplier)
_LAYER_CARRIER_KEYS = {
    "density_of_states_cm3": ("density_of_states", _PER_CM3),
    "band_edge_energy_eV": ("band_edge_energy", EV),
    "mobility_cm2_Vs": ("mobility", CM ** 2),
    "doping_cm3": ("doping", _PER_CM3),
    "srh_lifetime_s": ("srh_lifetime", 1.0),
    "srh_trap_density_cm3": ("srh_trap_density", _PER_CM3),
    "auger_cm6_s": ("auger", CM ** 6),
}
_LAYER_KEYS = {
    "dielectric_constant": ("dielectric_constant", 1.0),
    "radiative_cm3_s": ("radiative", CM ** 3),
    "intrinsic_doping_cm3": ("intrinsic_doping", _PER_CM3),
}
_CONTACT_CARRIER_KEYS = {
    "density_of_states_cm3": ("density_of_states", _PER_CM3),
    "band_edge_energy_eV": ("band_edge_energy", EV),
    "doping_cm3": ("doping", _PER_CM3),
}


@dataclass
class RunConfig:
    raw: dict
    path: Optional[Path] = None


@dataclass
class SweepSpec:
    mode: str = "bias"
    bregion: int = 0
    v_start: float = 0.0
    v_end: float = 1.0
    n_steps: int = 11
    scan_rate: float = 0.04
    area_m2: float = 1.0
    include_displacement: bool = False


def load_config(path: Path, overrides: Iterable[str] = ()) -> RunConfig:
    try:
        data = yaml.safe_load(Path(path).read_text())
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{path}: invalid YAML ({exc})") from None
    if not isinstance(data, dict):
        raise ConfigurationError("Top-level YAML must be a mapping")
    data = apply_overrides(data, overrides)
    _validate_minimum(data)
    return RunConfig(raw=data, path=Path(path))


def config_from_dict(data: Dict[str, Any]) -> RunConfig:
    if not isinstance(data, dict):
        raise ConfigurationError("configuration must be a mapping")
    _validate_minimum(data)
    return RunConfig(raw=copy.deepcopy(data))


def apply_overrides(raw: Dict[str, Any], overrides: Iterable[str]) -> Dict[str, Any]:
    """
    Return a copy of `raw` with `a.b.c=value` overrides applied. Values are
    parsed as YAML scalars, list indices are allowed (`device.layers.0.nodes=5`).
    """
    out = copy.deepcopy(raw)
    for item in overrides:
        if "=" not in item:
            raise ConfigurationError(f"override {item!r}: expected key=value")
        key, text = item.split("=", 1)
        parts = [p for p in key.strip().split(".") if p]
        if not parts:
            raise ConfigurationError(f"override {item!r}: empty key")
        value = yaml.safe_load(text)

        node: Any = out
        for p in parts[:-1]:
            if isinstance(node, list):
                node = node[_list_index(node, p, item)]
            else:
                node = node.setdefault(p, {})
        last = parts[-1]
        if isinstance(node, list):
            node[_list_index(node, last, item)] = value
        elif isinstance(node, dict):
            node[last] = value
        else:
            raise ConfigurationError(f"override {item!r}: {'.'.join(parts[:-1])} is not a mapping")
    return out


def _list_index(node: list, p: str, item: str) -> int:
    try:
        i = int(p)
        node[i]
    except (ValueError, IndexError):
        raise ConfigurationError(f"override {item!r}: bad list index {p!r}") from None
    return i


def _validate_minimum(cfg: dict) -> None:
    if "device" not in cfg:
        raise ConfigurationError("Missing top-level key: device")
    dev = cfg["device"]
    for key in ("carriers", "layers", "contacts"):
        if not dev.get(key):
            raise ConfigurationError(f"device.{key} is missing or empty")


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------

def _per_carrier(row: dict, key: str, nc: int, where: str) -> List[float]:
    vals = row[key]
    if not isinstance(vals, (list, tuple)) or len(vals) != nc:
        raise ConfigurationError(f"{where}.{key}: expected a list of {nc} values (one per carrier)")
    return [float(v) for v in vals]


def build_parameters(cfg: RunConfig) -> ParameterStore:
    dev = cfg.raw["device"]
    carriers = dev["carriers"]
    layers = dev["layers"]
    contacts = dev["contacts"]
    nc = len(carriers)

    try:
        charges = [int(c["charge"]) for c in carriers]
    except (KeyError, TypeError, ValueError):
        raise ConfigurationError("device.carriers: every carrier needs an integer 'charge'") from None

    n_bregions = 1 + max(int(c.get("boundary", i)) for i, c in enumerate(contacts))
    b = ParameterBuilder(len(layers), n_bregions, charges, temperature=float(dev.get("temperature_K", 300.0)))
    for icc, c in enumerate(carriers):
        b.set_distribution(icc, c.get("distribution", "boltzmann"))

    for r, row in enumerate(layers):
        where = f"device.layers[{r}]"
        b.set_region(r, **{kw: float(row[k]) * mult for k, (kw, mult) in _LAYER_KEYS.items() if k in row})
        for key, (kw, mult) in _LAYER_CARRIER_KEYS.items():
            if key not in row:
                continue
            for icc, v in enumerate(_per_carrier(row, key, nc, where)):
                b.set_carrier(r, icc, **{kw: v * mult})

    for i, row in enumerate(contacts):
        where = f"device.contacts[{i}]"
        bregion = int(row.get("boundary", i))
        if "region" in row:
            region = int(row["region"])
            if not 0 <= region < len(layers):
                raise ConfigurationError(f"{where}.region: {region} is not a layer index")
            b.set_boundary_from_region(bregion, region)
        for key, (kw, mult) in _CONTACT_CARRIER_KEYS.items():
            if key not in row:
                continue
            for icc, v in enumerate(_per_carrier(row, key, nc, where)):
                b.set_boundary_carrier(bregion, icc, **{kw: v * mult})
        b.set_contact_voltage(bregion, float(row.get("voltage", 0.0)))

    store = b.build()
    store.validate_ohmic_contacts(contact_regions(cfg))
    return store


def contact_regions(cfg: RunConfig) -> List[int]:
    return [int(row.get("boundary", i)) for i, row in enumerate(cfg.raw["device"]["contacts"])]


def build_grid(cfg: RunConfig) -> Grid:
    layers = cfg.raw["device"]["layers"]
    try:
        t = [float(row["thickness_um"]) * UM for row in layers]
    except KeyError:
        raise ConfigurationError("device.layers: every layer needs 'thickness_um'") from None
    nodes = [int(row.get("nodes", 11)) for row in layers]
    try:
        return Grid.from_layers(t, nodes)
    except ValueError as exc:
        raise ConfigurationError(f"device.layers: {exc}") from None


def build_physics(cfg: RunConfig) -> DevicePhysics:
    ph = cfg.raw.get("physics", {}) or {}
    try:
        scheme = FluxScheme(str(ph.get("flux", "scharfetter_gummel")).lower())
    except ValueError:
        raise ConfigurationError(f"physics.flux: unknown scheme {ph.get('flux')!r}") from None
    return DevicePhysics(flux_scheme=scheme, contacts=tuple(contact_regions(cfg)))


def build_kernel_data(cfg: RunConfig, params: ParameterStore) -> KernelData:
    ph = cfg.raw.get("physics", {}) or {}
    try:
        return KernelData(
            params=params,
            penalty=float(ph.get("penalty", DIRICHLET_PENALTY)),
            recombination=bool(ph.get("recombination", True)),
            recombination_scope=RecombinationScope(str(ph.get("recombination_scope", "node_region")).lower()),
        )
    except ValueError as exc:
        raise ConfigurationError(f"physics: {exc}") from None


def build_control(cfg: RunConfig, stage: str = "homotopy") -> NewtonControl:
    """NewtonControl from `solver.<stage>`; the bias stage falls back to homotopy settings."""
    sol = cfg.raw.get("solver", {}) or {}
    opts = sol.get(stage)
    if opts is None and stage != "homotopy":
        opts = sol.get("homotopy")
    opts = dict(opts or {})
    known = {f.name for f in fields(NewtonControl)}
    unknown = sorted(set(opts) - known)
    if unknown:
        raise ConfigurationError(f"solver.{stage}: unknown keys {unknown}")
    try:
        return NewtonControl(**opts)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"solver.{stage}: {exc}") from None


def build_sweep(cfg: RunConfig) -> SweepSpec:
    sw = dict(cfg.raw.get("sweep", {}) or {})
    known = {f.name for f in fields(SweepSpec)}
    unknown = sorted(set(sw) - known)
    if unknown:
        raise ConfigurationError(f"sweep: unknown keys {unknown}")
    sweep = SweepSpec(**sw)
    sweep.mode = str(sweep.mode).lower()
    if sweep.mode not in ("bias", "scan", "none"):
        raise ConfigurationError(f"sweep.mode: expected bias | scan | none (got {sweep.mode!r})")
    if sweep.bregion not in contact_regions(cfg):
        raise ConfigurationError(f"sweep.bregion: {sweep.bregion} is not a declared contact")
    return sweep
