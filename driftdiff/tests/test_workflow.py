# -*- coding: utf-8 -*-
"""
YAML deck → run → files on disk, through the workflow and the CLI.
"""
from __future__ import annotations

import json

import numpy as np
import pandas as pd
import pytest
import yaml

from driftdiff.io.results import read_iv_table, save_fields_npz, write_iv_table, write_metrics
from driftdiff.main import main
from driftdiff.workflows.run_dc import run_from_config


def _deck(tmp_path, **sweep):
    layer = {
        "thickness_um": 1.0,
        "nodes": 21,
        "dielectric_constant": 11.7,
        "density_of_states_cm3": [1.0e19, 1.0e19],
        "band_edge_energy_eV": [1.0, 0.0],
        "mobility_cm2_Vs": [1000.0, 1000.0],
    }
    raw = {
        "device": {
            "carriers": [
                {"name": "electrons", "charge": -1},
                {"name": "holes", "charge": 1},
            ],
            "layers": [
                dict(layer, name="p", doping_cm3=[0.0, 1.0e16]),
                dict(layer, name="n", doping_cm3=[1.0e16, 0.0]),
            ],
            "contacts": [
                {"boundary": 0, "region": 0, "doping_cm3": [0.0, 1.0e16]},
                {"boundary": 1, "region": 1, "doping_cm3": [1.0e16, 0.0]},
            ],
        },
        "physics": {"recombination": False},
        "solver": {"homotopy": {"damp_initial": 0.5, "damp_growth": 1.5}},
        "sweep": dict({"mode": "bias", "bregion": 0, "v_start": 0.0, "v_end": 0.2, "n_steps": 3}, **sweep),
        "output": {"dir": str(tmp_path / "from_deck")},
    }
    path = tmp_path / "pn.yaml"
    path.write_text(yaml.safe_dump(raw))
    return path


def test_results_files(tmp_path):
    m = write_metrics(tmp_path, {"a": 1, "b": None})
    assert json.loads(m.read_text()) == {"a": 1, "b": None}

    frame = pd.DataFrame({"V": [0.0, 0.1], "I": [1e-9, 2e-6]})
    path = write_iv_table(tmp_path / "sub", frame)
    back = read_iv_table(path)
    np.testing.assert_allclose(back["I"], frame["I"])

    bad = tmp_path / "bad.csv"
    pd.DataFrame({"V": [0.0]}).to_csv(bad, index=False)
    with pytest.raises(ValueError):
        read_iv_table(bad)

    npz = save_fields_npz(tmp_path, x=np.arange(3.0))
    with np.load(npz) as f:
        assert f["x"].tolist() == [0.0, 1.0, 2.0]


def test_run_from_config_writes_outputs(tmp_path):
    res = run_from_config(_deck(tmp_path), ["sweep.n_steps=2"])
    assert res.converged
    assert len(res.iv) == 2
    out = tmp_path / "from_deck"
    metrics = json.loads((out / "metrics.json").read_text())
    assert metrics["sweep_converged"] is True
    assert metrics["last_voltage_V"] == pytest.approx(0.2)
    iv = read_iv_table(out / "iv.csv")
    assert iv["I"].iloc[-1] > iv["I"].iloc[0]
    with np.load(out / "fields.npz") as f:
        assert f["u"].shape == (3, 41)


def test_equilibrium_only_run(tmp_path):
    res = run_from_config(_deck(tmp_path, mode="none"), out_dir=tmp_path / "eq")
    assert res.converged and res.sweep is None
    assert len(res.iv) == 0
    assert (tmp_path / "eq" / "fields.npz").exists()
    assert not (tmp_path / "eq" / "iv.csv").exists()


def test_cli_run_and_configuration_errors(tmp_path):
    deck = _deck(tmp_path)
    out = tmp_path / "cli"
    assert main(["run", "--config", str(deck), "--out", str(out)]) == 0
    assert (out / "iv.csv").exists()

    assert main(["run", "--config", str(deck), "--set", "sweep.bregion=4"]) == 2
    assert main(["run", "--config", str(deck), "--set", "solver.homotopy.speed=2"]) == 2
