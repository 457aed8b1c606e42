# -*- coding: utf-8 -*-
"""
Terminal current bookkeeping for bias and scan ramps.

For every converged step the per-species test-function integrals are combined
into an electric current, scaled by the device area and stored as |I|.

The carrier slots of the flux kernel carry q times the particle flux of their
carrier, so electrons and holes drifting in opposite directions integrate to
opposite signs. The terminal current weights them by their charge numbers:

    I = area * sum_c z_c * I_c        (+ I_psi with include_displacement)

Only |I| is recorded, so the orientation of the test function does not matter.
"""
from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np
import pandas as pd

from ..physics.context import KernelData


class FluxIntegrator(Protocol):
    def integrate(
        self,
        tf: np.ndarray,
        u: np.ndarray,
        data: KernelData,
        u_old: Optional[np.ndarray] = None,
        tstep: float = np.inf,
    ) -> np.ndarray:
        ...


class IVAccumulator:
    """
    Collects (voltage, |current|) pairs.

    system : anything with `integrate(tf, u, data, u_old, tstep)`
    tf     : test function (0 on one contact set, 1 on the other)
    area   : cross-section multiplying the 1D/2D integral [m^2 or m]
    """

    def __init__(
        self,
        system: FluxIntegrator,
        tf: np.ndarray,
        *,
        area: float = 1.0,
        include_displacement: bool = False,
    ) -> None:
        self.system = system
        self.tf = np.asarray(tf, dtype=np.float64)
        self.area = float(area)
        self.include_displacement = bool(include_displacement)
        self.voltages: List[float] = []
        self.currents: List[float] = []

    def current(
        self,
        u: np.ndarray,
        data: KernelData,
        *,
        u_old: Optional[np.ndarray] = None,
        tstep: float = np.inf,
    ) -> float:
        """Signed terminal current of state `u`."""
        I = np.asarray(self.system.integrate(self.tf, u, data, u_old, tstep), dtype=np.float64)
        p = data.params
        total = float(np.dot(p.charge_numbers, I[: p.n_carriers]))
        if self.include_displacement:
            total += float(I[p.ipsi])
        return self.area * total

    def record(
        self,
        voltage: float,
        u: np.ndarray,
        data: KernelData,
        *,
        u_old: Optional[np.ndarray] = None,
        tstep: float = np.inf,
    ) -> float:
        I = abs(self.current(u, data, u_old=u_old, tstep=tstep))
        self.voltages.append(float(voltage))
        self.currents.append(I)
        return I

    def __len__(self) -> int:
        return len(self.voltages)

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        return np.asarray(self.voltages, dtype=np.float64), np.asarray(self.currents, dtype=np.float64)

    def to_frame(self) -> pd.DataFrame:
        v, i = self.as_arrays()
        return pd.DataFrame({"V": v, "I": i})


def ron(v: np.ndarray, i: np.ndarray, v_window: tuple[float, float] | None = None) -> float:
    """
    Extract R_on as the inverse slope around a window (or entire range).
    """
    v = np.asarray(v, dtype=np.float64)
    i = np.asarray(i, dtype=np.float64)
    if v_window:
        mask = (v >= v_window[0]) & (v <= v_window[1])
        v, i = v[mask], i[mask]
    p = np.polyfit(v, i, 1)
    slope = p[0]
    return 1.0 / max(slope, 1e-30)


def turn_on_voltage(v: Sequence[float], i: Sequence[float], threshold: float) -> Optional[float]:
    """First voltage where |I| reaches `threshold` (linear interpolation), None if never."""
    v = np.asarray(v, dtype=np.float64)
    i = np.abs(np.asarray(i, dtype=np.float64))
    above = np.nonzero(i >= float(threshold))[0]
    if above.size == 0:
        return None
    j = int(above[0])
    if j == 0:
        return float(v[0])
    return float(np.interp(threshold, [i[j - 1], i[j]], [v[j - 1], v[j]]))
