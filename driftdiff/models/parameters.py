# driftdiff/models/parameters.py
"""
Material parameter store for the drift–diffusion kernels (SI units).

Layout
------
Carrier species come first, the electrostatic potential is the last species:
    n_species = n_carriers + 1,   ipsi = n_carriers.

Arrays (rows = region / boundary region, columns = carrier):
    region × carrier:   doping, density_of_states, band_edge_energy, mobility,
                        srh_lifetime, srh_trap_density, auger
    region:             dielectric_constant, radiative, intrinsic_doping
    boundary × carrier: b_density_of_states, b_band_edge_energy, b_doping
    boundary:           contact_voltage
    carrier:            charge_numbers, distributions

Units: doping and densities [1/m^3], energies [J], mobility [m^2/(V s)],
lifetime [s], radiative [m^3/s], auger [m^6/s], voltages [V], T [K].
Doping is a signed concentration: charge_number * doping is the fixed charge
(in units of q) that a carrier's dopants compensate.

The store is frozen and its arrays are read-only; new contact voltages are
obtained with `with_contact_voltage(...)`, which returns a new store.

Public API (stable):
    ConfigurationError
    ParameterStore
    ParameterBuilder
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..physics.statistics import Distribution, distribution_from_name

__all__ = ["ConfigurationError", "ParameterStore", "ParameterBuilder"]


class ConfigurationError(ValueError):
    """Malformed or unphysical device configuration (raised at setup)."""


_REGION_CARRIER = (
    "doping", "density_of_states", "band_edge_energy", "mobility",
    "srh_lifetime", "srh_trap_density", "auger",
)
_REGION = ("dielectric_constant", "radiative", "intrinsic_doping")
_BOUNDARY_CARRIER = ("b_density_of_states", "b_band_edge_energy", "b_doping")
_BOUNDARY = ("contact_voltage",)
_NON_NEGATIVE = (
    "density_of_states", "mobility", "dielectric_constant", "b_density_of_states",
    "srh_lifetime", "srh_trap_density", "auger", "radiative",
)


def _frozen_f64(name: str, a) -> np.ndarray:
    try:
        arr = np.array(a, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name}: not convertible to a float array ({exc}).") from None
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, slots=True, eq=False)
class ParameterStore:
    """Validated, read-only device parameters consumed by every kernel call."""

    charge_numbers: np.ndarray
    temperature: float

    # region × carrier
    doping: np.ndarray
    density_of_states: np.ndarray
    band_edge_energy: np.ndarray
    mobility: np.ndarray
    srh_lifetime: np.ndarray
    srh_trap_density: np.ndarray
    auger: np.ndarray

    # region
    dielectric_constant: np.ndarray
    radiative: np.ndarray
    intrinsic_doping: np.ndarray

    # boundary × carrier
    b_density_of_states: np.ndarray
    b_band_edge_energy: np.ndarray
    b_doping: np.ndarray

    # boundary
    contact_voltage: np.ndarray

    # carrier
    distributions: Tuple[Distribution, ...] = field(default=())

    def __post_init__(self) -> None:
        z = _frozen_f64("charge_numbers", self.charge_numbers)
        if z.ndim != 1 or z.size < 1:
            raise ConfigurationError("charge_numbers must be a non-empty 1-D sequence.")
        if np.any(z == 0.0) or np.any(z != np.round(z)):
            raise ConfigurationError(f"charge_numbers must be nonzero integers (got {z.tolist()}).")
        object.__setattr__(self, "charge_numbers", z)
        nc = z.size

        T = float(self.temperature)
        if not np.isfinite(T) or T <= 0.0:
            raise ConfigurationError(f"temperature must be > 0 K (got {T}).")
        object.__setattr__(self, "temperature", T)

        dists = tuple(self.distributions) or (Distribution.BOLTZMANN,) * nc
        try:
            dists = tuple(distribution_from_name(d) for d in dists)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from None
        if len(dists) != nc:
            raise ConfigurationError(
                f"distributions: expected {nc} entries (one per carrier), got {len(dists)}."
            )
        object.__setattr__(self, "distributions", dists)

        arrays: Dict[str, np.ndarray] = {}
        for name in _REGION_CARRIER + _REGION + _BOUNDARY_CARRIER + _BOUNDARY:
            arrays[name] = _frozen_f64(name, getattr(self, name))

        n_reg = arrays["dielectric_constant"].shape[0] if arrays["dielectric_constant"].ndim == 1 else -1
        n_breg = arrays["contact_voltage"].shape[0] if arrays["contact_voltage"].ndim == 1 else -1
        if n_reg < 1:
            raise ConfigurationError("dielectric_constant must be 1-D with one entry per region.")
        if n_breg < 1:
            raise ConfigurationError("contact_voltage must be 1-D with one entry per boundary region.")

        expected = {}
        expected.update({k: (n_reg, nc) for k in _REGION_CARRIER})
        expected.update({k: (n_reg,) for k in _REGION})
        expected.update({k: (n_breg, nc) for k in _BOUNDARY_CARRIER})
        expected.update({k: (n_breg,) for k in _BOUNDARY})

        for name, shape in expected.items():
            a = arrays[name]
            if a.shape != shape:
                raise ConfigurationError(f"{name}: expected shape {shape}, got {a.shape}.")
            if not np.all(np.isfinite(a)):
                idx = np.argwhere(~np.isfinite(a))[:5].tolist()
                raise ConfigurationError(f"{name} has non-finite values at indices {idx}.")
            object.__setattr__(self, name, a)

        for name in _NON_NEGATIVE:
            a = arrays[name]
            if np.any(a < 0.0):
                idx = np.argwhere(a < 0.0)[:5].tolist()
                raise ConfigurationError(
                    f"{name} must be >= 0 everywhere (min {float(np.min(a)):g}); bad indices {idx}."
                )

    # ------------------------------------------------------------------
    # Sizes
    # ------------------------------------------------------------------
    @property
    def n_carriers(self) -> int:
        return int(self.charge_numbers.size)

    @property
    def n_species(self) -> int:
        return self.n_carriers + 1

    @property
    def ipsi(self) -> int:
        """Index of the electrostatic potential (always the last species)."""
        return self.n_carriers

    @property
    def n_regions(self) -> int:
        return int(self.dielectric_constant.size)

    @property
    def n_boundary_regions(self) -> int:
        return int(self.contact_voltage.size)

    # ------------------------------------------------------------------
    # Updates between ramp steps
    # ------------------------------------------------------------------
    def with_contact_voltage(self, bregion: int, value: float) -> "ParameterStore":
        cv = np.array(self.contact_voltage, dtype=np.float64)
        cv[int(bregion)] = float(value)
        return replace(self, contact_voltage=cv)

    def with_contact_voltages(self, values: Sequence[float]) -> "ParameterStore":
        return replace(self, contact_voltage=np.asarray(values, dtype=np.float64))

    # ------------------------------------------------------------------
    # Contact checks
    # ------------------------------------------------------------------
    def validate_ohmic(self, bregion: int) -> None:
        """Fail fast when boundary region `bregion` cannot act as an ohmic contact."""
        b = int(bregion)
        if not 0 <= b < self.n_boundary_regions:
            raise ConfigurationError(
                f"ohmic contact {b}: boundary region out of range 0..{self.n_boundary_regions - 1}."
            )
        if not np.any(self.b_doping[b] != 0.0):
            raise ConfigurationError(
                f"ohmic contact {b}: no boundary doping set for any carrier."
            )
        if np.any(self.b_density_of_states[b] <= 0.0):
            raise ConfigurationError(
                f"ohmic contact {b}: boundary density of states must be > 0 for every carrier."
            )

    def validate_ohmic_contacts(self, bregions: Iterable[int]) -> None:
        """Check every contact and that the contacts dope at least two carriers."""
        bregions = [int(b) for b in bregions]
        doped = set()
        for b in bregions:
            self.validate_ohmic(b)
            doped.update(np.flatnonzero(self.b_doping[b] != 0.0).tolist())
        if self.n_carriers >= 2 and len(doped) < 2:
            raise ConfigurationError(
                f"ohmic contacts {bregions}: boundary doping covers carriers {sorted(doped)}; "
                "the majority carriers of at least two species must be doped."
            )

    def summary(self) -> str:
        """Multi-line table of all parameters (for verbose runs)."""
        lines = [f"{'temperature':>24s} = {self.temperature:g}",
                 f"{'charge_numbers':>24s} = {self.charge_numbers.tolist()}",
                 f"{'distributions':>24s} = {[d.name for d in self.distributions]}"]
        for name in _REGION_CARRIER + _REGION + _BOUNDARY_CARRIER + _BOUNDARY:
            arr = np.asarray(getattr(self, name))
            lines.append(f"{name:>24s} = {np.array2string(arr, precision=4, separator=', ')}")
        return "\n".join(lines)


# ---------------------------------------------------------------------
# Builder: every slot is set explicitly or has a physical default.
# ---------------------------------------------------------------------

_DEFAULT_ZERO = {
    "doping", "srh_lifetime", "srh_trap_density", "auger",
    "radiative", "intrinsic_doping", "b_doping", "contact_voltage",
}


class ParameterBuilder:
    """
    Incrementally fill a ParameterStore.

    Slots without a physical default (dielectric constant, densities of state,
    band-edge energies, mobilities) start unset; `build()` lists every unset
    slot in one ConfigurationError instead of handing NaN to the solver.
    """

    def __init__(
        self,
        n_regions: int,
        n_boundary_regions: int,
        charge_numbers: Sequence[int],
        *,
        temperature: float = 300.0,
    ) -> None:
        if int(n_regions) < 1 or int(n_boundary_regions) < 1:
            raise ConfigurationError("need at least one region and one boundary region.")
        self.charge_numbers = [int(zc) for zc in charge_numbers]
        self.temperature = float(temperature)
        nc = len(self.charge_numbers)
        self.distributions: List[Distribution] = [Distribution.BOLTZMANN] * nc

        shapes = {}
        shapes.update({k: (int(n_regions), nc) for k in _REGION_CARRIER})
        shapes.update({k: (int(n_regions),) for k in _REGION})
        shapes.update({k: (int(n_boundary_regions), nc) for k in _BOUNDARY_CARRIER})
        shapes.update({k: (int(n_boundary_regions),) for k in _BOUNDARY})
        self._arrays: Dict[str, np.ndarray] = {
            k: (np.zeros(s) if k in _DEFAULT_ZERO else np.full(s, np.nan))
            for k, s in shapes.items()
        }

    # -- generic ---------------------------------------------------------
    def _set(self, name: str, index, value) -> "ParameterBuilder":
        if value is None:
            return self
        try:
            self._arrays[name][index] = float(value)
        except IndexError:
            raise ConfigurationError(
                f"{name}: index {index} out of range for shape {self._arrays[name].shape}."
            ) from None
        return self

    # -- setters ---------------------------------------------------------
    def set_temperature(self, T: float) -> "ParameterBuilder":
        self.temperature = float(T)
        return self

    def set_distribution(self, carrier: int, dist) -> "ParameterBuilder":
        try:
            self.distributions[int(carrier)] = distribution_from_name(dist)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from None
        return self

    def set_region(
        self,
        region: int,
        *,
        dielectric_constant: Optional[float] = None,
        radiative: Optional[float] = None,
        intrinsic_doping: Optional[float] = None,
    ) -> "ParameterBuilder":
        r = int(region)
        self._set("dielectric_constant", r, dielectric_constant)
        self._set("radiative", r, radiative)
        return self._set("intrinsic_doping", r, intrinsic_doping)

    def set_carrier(
        self,
        region: int,
        carrier: int,
        *,
        density_of_states: Optional[float] = None,
        band_edge_energy: Optional[float] = None,
        mobility: Optional[float] = None,
        doping: Optional[float] = None,
        srh_lifetime: Optional[float] = None,
        srh_trap_density: Optional[float] = None,
        auger: Optional[float] = None,
    ) -> "ParameterBuilder":
        idx = (int(region), int(carrier))
        self._set("density_of_states", idx, density_of_states)
        self._set("band_edge_energy", idx, band_edge_energy)
        self._set("mobility", idx, mobility)
        self._set("doping", idx, doping)
        self._set("srh_lifetime", idx, srh_lifetime)
        self._set("srh_trap_density", idx, srh_trap_density)
        return self._set("auger", idx, auger)

    def set_contact_voltage(self, bregion: int, voltage: float) -> "ParameterBuilder":
        return self._set("contact_voltage", int(bregion), voltage)

    def set_boundary_carrier(
        self,
        bregion: int,
        carrier: int,
        *,
        density_of_states: Optional[float] = None,
        band_edge_energy: Optional[float] = None,
        doping: Optional[float] = None,
    ) -> "ParameterBuilder":
        idx = (int(bregion), int(carrier))
        self._set("b_density_of_states", idx, density_of_states)
        self._set("b_band_edge_energy", idx, band_edge_energy)
        return self._set("b_doping", idx, doping)

    def set_boundary_from_region(self, bregion: int, region: int) -> "ParameterBuilder":
        """Copy densities of state and band edges of `region` onto `bregion`."""
        b, r = int(bregion), int(region)
        self._arrays["b_density_of_states"][b] = self._arrays["density_of_states"][r]
        self._arrays["b_band_edge_energy"][b] = self._arrays["band_edge_energy"][r]
        return self

    # -- finish ----------------------------------------------------------
    def missing(self) -> List[str]:
        out = []
        for name, arr in self._arrays.items():
            for idx in np.argwhere(np.isnan(arr)):
                out.append(f"{name}{list(map(int, idx))}")
        return out

    def build(self) -> ParameterStore:
        missing = self.missing()
        if missing:
            raise ConfigurationError(f"unset parameter slots: {', '.join(missing)}")
        return ParameterStore(
            charge_numbers=self.charge_numbers,
            temperature=self.temperature,
            distributions=tuple(self.distributions),
            **{k: v.copy() for k, v in self._arrays.items()},
        )
