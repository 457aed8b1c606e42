# -*- coding: utf-8 -*-
"""
Run directory layout:

  metrics.json   homotopy / sweep status and IV figures of merit
  iv.csv         V, I table of the bias or scan ramp (pandas)
  fields.npz     grid coordinates, final unknowns (species x nodes), V, I
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import numpy as np
import pandas as pd


def write_metrics(run_dir: Path, metrics: Dict[str, Any]) -> Path:
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / "metrics.json"
    with open(out, "w") as f:
        json.dump(metrics, f, indent=2, sort_keys=True)
    return out


def write_iv_table(run_dir: Path, frame: pd.DataFrame, name: str = "iv.csv") -> Path:
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / name
    frame.to_csv(out, index=False)
    return out


def read_iv_table(path: Path) -> pd.DataFrame:
    df = pd.read_csv(path)
    missing = {"V", "I"} - set(df.columns)
    if missing:
        raise ValueError(f"{path}: missing columns {sorted(missing)}")
    return df


def save_fields_npz(run_dir: Path, **arrays) -> Path:
    """
    Save arrays for post-processing (e.g., x, u, psi, phi_n, phi_p, V, I).
    """
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / "fields.npz"
    np.savez_compressed(out, **arrays)
    return out
