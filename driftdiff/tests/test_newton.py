# -*- coding: utf-8 -*-
"""
Damped Newton iteration: convergence criteria and failure reporting.
"""
from __future__ import annotations

import numpy as np
import pytest

from driftdiff.solver.newton import NewtonControl, newton_solve


def _sqrt2(x):
    return np.array([x[0] ** 2 - 2.0]), np.array([[2.0 * x[0]]])


def test_scalar_root():
    res = newton_solve(_sqrt2, np.array([1.0]))
    assert res.converged
    assert res.solution[0] == pytest.approx(np.sqrt(2.0), rel=1e-12)
    assert res.iterations < 10


def test_coupled_system_keeps_shape():
    def fj(x):
        a, b = x
        F = np.array([a + b - 3.0, a * b - 2.0])
        J = np.array([[1.0, 1.0], [b, a]])
        return F, J

    x0 = np.array([[0.0], [3.5]])
    res = newton_solve(fj, x0)
    assert res.converged
    assert res.solution.shape == (2, 1)
    assert sorted(res.solution.ravel().tolist()) == pytest.approx([1.0, 2.0])
    assert x0.ravel().tolist() == [0.0, 3.5]


def test_rows_of_very_different_scale():
    # a penalty-like row next to an O(1) row
    def fj(x):
        F = np.array([1e30 * (x[0] - 0.25), x[1] ** 3 - 8.0])
        J = np.array([[1e30, 0.0], [0.0, 3.0 * x[1] ** 2]])
        return F, J

    res = newton_solve(fj, np.array([0.0, 1.0]), NewtonControl(max_step=None))
    assert res.converged
    np.testing.assert_allclose(res.solution, [0.25, 2.0], rtol=1e-10)


def test_damping_and_step_limit_slow_the_first_steps():
    seen = []

    def fj(x):
        seen.append(x.copy())
        return np.array([x[0] - 10.0]), np.array([[1.0]])

    ctl = NewtonControl(damp_initial=0.5, damp_growth=2.0, max_step=1.0)
    res = newton_solve(fj, np.array([0.0]), ctl)
    assert res.converged
    assert res.solution[0] == pytest.approx(10.0)
    # first update: clipped to 1 and halved
    assert seen[1][0] == pytest.approx(0.5)


def test_singular_jacobian_is_reported():
    res = newton_solve(lambda x: (np.array([1.0, 1.0]), np.zeros((2, 2))), np.zeros(2))
    assert not res.converged
    assert res.iterations == 1


def test_non_finite_residual_is_reported():
    res = newton_solve(lambda x: (np.array([np.nan]), np.eye(1)), np.zeros(1))
    assert not res.converged


def test_iteration_limit():
    # x^2 + 1 has no real root
    res = newton_solve(
        lambda x: (np.array([x[0] ** 2 + 1.0]), np.array([[2.0 * x[0]]])),
        np.array([0.5]),
        NewtonControl(max_iterations=7),
    )
    assert not res.converged
    assert res.iterations == 7


@pytest.mark.parametrize(
    "kwargs",
    [
        {"damp_initial": 0.0},
        {"damp_initial": 1.5},
        {"damp_growth": 0.9},
        {"max_iterations": 0},
        {"max_step": -1.0},
    ],
)
def test_control_validation(kwargs):
    with pytest.raises(ValueError):
        NewtonControl(**kwargs)
