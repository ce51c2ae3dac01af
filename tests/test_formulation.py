"""
Tests for the NLP building blocks: layout, kinematic model, cost,
dynamics residuals and bounds.
"""

import math

import casadi as ca
import numpy as np
import pytest

from polympc.bounds import build_bounds, initial_guess
from polympc.config import MPCConfig, ConfigurationError
from polympc.constraints import build_constraints
from polympc.cost import build_cost
from polympc.kinematics import kinematic_step, rollout
from polympc.layout import VariableLayout
from polympc.state import STATE_NAMES, ReferencePath, VehicleState


def _pack(layout, states, deltas, accs):
    """Flatten a (N, 6) state array and actuation sequences into a decision vector."""
    z = np.zeros(layout.n_vars)
    for j, name in enumerate(STATE_NAMES):
        z[layout.slice(name)] = states[:, j]
    z[layout.slice('delta')] = deltas
    z[layout.slice('a')] = accs
    return z


def _residuals(layout, config, path, z):
    sym = ca.SX.sym('z', layout.n_vars)
    g = ca.vertcat(*build_constraints(sym, layout, config, path))
    return np.array(ca.Function('g', [sym], [g])(z)).ravel()


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def test_layout_sizes():
    layout = VariableLayout(12)

    assert layout.n_vars == 6 * 12 + 2 * 11
    assert layout.n_constraints == 6 * 12
    assert [layout.start(n) for n in layout.names] == [0, 12, 24, 36, 48, 60, 72, 83]
    assert layout.length('x') == 12
    assert layout.length('a') == 11


def test_layout_index_and_slice_agree():
    layout = VariableLayout(5)
    for name in layout.names:
        s = layout.slice(name)
        assert [layout.index(name, t) for t in range(layout.length(name))] == list(range(s.start, s.stop))


def test_layout_slices_cover_vector_once():
    layout = VariableLayout(7)
    covered = np.zeros(layout.n_vars, dtype=int)
    for name in layout.names:
        covered[layout.slice(name)] += 1
    assert np.all(covered == 1)


def test_layout_rejects_out_of_range():
    layout = VariableLayout(4)
    with pytest.raises(IndexError):
        layout.index('delta', 3)
    with pytest.raises(IndexError):
        layout.index('x', -1)
    with pytest.raises(KeyError):
        layout.index('throttle', 0)
    with pytest.raises(ConfigurationError):
        VariableLayout(1)


def test_layout_extract_copies():
    layout = VariableLayout(3)
    z = np.arange(layout.n_vars, dtype=float)
    y = layout.extract(z, 'y')
    y[0] = -1.0

    np.testing.assert_array_equal(layout.extract(z, 'y'), [3.0, 4.0, 5.0])


# ---------------------------------------------------------------------------
# Kinematic model
# ---------------------------------------------------------------------------

def test_kinematic_step_straight_line():
    path = ReferencePath([0.0, 0.0])
    state = (0.0, 0.0, 0.0, 10.0, 0.0, 0.0)

    x1, y1, psi1, v1, cte1, epsi1 = (float(s) for s in kinematic_step(state, 0.0, 0.0, path, 0.1, 2.67))

    assert x1 == pytest.approx(1.0)
    assert y1 == pytest.approx(0.0)
    assert psi1 == pytest.approx(0.0)
    assert v1 == pytest.approx(10.0)
    assert cte1 == pytest.approx(0.0)
    assert epsi1 == pytest.approx(0.0)


def test_kinematic_step_equations():
    path = ReferencePath([0.5, 0.2, 0.01])
    lf, dt = 2.67, 0.1
    x0, y0, psi0, v0, epsi0 = 1.0, -0.3, 0.1, 8.0, 0.05
    delta, a = -0.2, 0.7

    x1, y1, psi1, v1, cte1, epsi1 = (float(s) for s in kinematic_step(
        (x0, y0, psi0, v0, 123.0, epsi0), delta, a, path, dt, lf))

    yaw = v0 * delta / lf * dt
    assert x1 == pytest.approx(x0 + v0 * math.cos(psi0) * dt)
    assert y1 == pytest.approx(y0 + v0 * math.sin(psi0) * dt)
    assert psi1 == pytest.approx(psi0 + yaw)
    assert v1 == pytest.approx(v0 + a * dt)
    desired_y0 = 0.5 + 0.2 * x0 + 0.01 * x0 ** 2
    assert cte1 == pytest.approx(desired_y0 - y0 + v0 * math.sin(epsi0) * dt)
    assert epsi1 == pytest.approx(psi0 - math.atan(0.2) + yaw)


def test_kinematic_step_is_symbolic():
    """The same step builds a differentiable CasADi expression."""
    path = ReferencePath([0.0, 0.1])
    s = ca.SX.sym('s', 6)
    u = ca.SX.sym('u', 2)
    nxt = ca.vertcat(*kinematic_step(tuple(s[i] for i in range(6)), u[0], u[1], path, 0.1, 2.67))
    jac = ca.Function('j', [s, u], [ca.jacobian(nxt, u)])

    J = np.array(jac([0, 0, 0, 10, 0, 0], [0, 0]))
    # d(psi1)/d(delta) = v * dt / Lf, d(v1)/d(a) = dt
    assert J[2, 0] == pytest.approx(10 * 0.1 / 2.67)
    assert J[3, 1] == pytest.approx(0.1)
    assert J[0, 0] == 0.0


def test_rollout_shape_and_start():
    state = VehicleState(0.0, 0.0, 0.0, 5.0, 0.0, 0.0)
    path = ReferencePath([0.0, 0.0])
    states = rollout(state, [0.1, 0.1, 0.0], [1.0, 0.0, -1.0], path, 0.1, 2.67)

    assert states.shape == (4, 6)
    np.testing.assert_allclose(states[0], state.as_array())
    np.testing.assert_allclose(states[:, 3], [5.0, 5.1, 5.1, 5.0])
    with pytest.raises(ValueError):
        rollout(state, [0.1], [], path, 0.1, 2.67)


# ---------------------------------------------------------------------------
# Cost
# ---------------------------------------------------------------------------

def test_cost_zero_at_equilibrium():
    config = MPCConfig()
    layout = VariableLayout(config.horizon)
    z = np.zeros(layout.n_vars)
    z[layout.slice('v')] = config.speed_limit

    assert build_cost(z, layout, config) == pytest.approx(0.0)


def test_cost_weights_near_term_cte_more():
    config = MPCConfig()
    layout = VariableLayout(config.horizon)
    base = np.zeros(layout.n_vars)
    base[layout.slice('v')] = config.speed_limit

    early, late = base.copy(), base.copy()
    early[layout.index('cte', 0)] = 1.0
    late[layout.index('cte', config.horizon - 1)] = 1.0

    N = config.horizon
    assert build_cost(early, layout, config) == pytest.approx(config.w_cte * N / config.std_cte ** 2)
    assert build_cost(late, layout, config) == pytest.approx(config.w_cte * 1 / config.std_cte ** 2)


def test_cost_normalised_terms():
    config = MPCConfig()
    layout = VariableLayout(config.horizon)
    z = np.zeros(layout.n_vars)
    z[layout.slice('v')] = config.speed_limit

    # A single steering value at t=0: magnitude term plus one smoothness term
    z[layout.index('delta', 0)] = config.max_delta
    expected = config.w_delta + config.w_ddelta * (config.max_delta / config.std_ddelta) ** 2
    assert build_cost(z, layout, config) == pytest.approx(expected)

    # Stopped vehicle pays the full speed term at every step
    stopped = np.zeros(layout.n_vars)
    assert build_cost(stopped, layout, config) == pytest.approx(config.w_speed * config.horizon)


def test_cost_steering_speed_coupling_is_opt_in():
    layout = VariableLayout(4)
    off = MPCConfig(horizon=4)
    on = MPCConfig(horizon=4, w_delta_speed=1.0)

    z = np.zeros(layout.n_vars)
    z[layout.slice('v')] = off.speed_limit
    z[layout.slice('delta')] = off.max_delta

    extra = (layout.length('delta')) * on.speed_importance ** 2
    assert build_cost(z, layout, on) - build_cost(z, layout, off) == pytest.approx(extra)


def test_cost_builds_symbolically():
    config = MPCConfig(horizon=5)
    layout = VariableLayout(5)
    z = ca.MX.sym('z', layout.n_vars)
    f = ca.Function('f', [z], [build_cost(z, layout, config)])

    num = np.linspace(-1, 1, layout.n_vars)
    assert float(f(num)) == pytest.approx(build_cost(num, layout, config))


# ---------------------------------------------------------------------------
# Dynamics residuals
# ---------------------------------------------------------------------------

def test_residuals_vanish_on_model_rollout():
    config = MPCConfig(horizon=8)
    layout = VariableLayout(config.horizon)
    path = ReferencePath([0.3, -0.1, 0.02])
    state = VehicleState(0.0, 0.2, 0.05, 12.0, 0.1, -0.15)
    deltas = np.linspace(-0.2, 0.3, config.horizon - 1)
    accs = np.linspace(0.5, -0.5, config.horizon - 1)

    states = rollout(state, deltas, accs, path, config.dt, config.lf)
    z = _pack(layout, states, deltas, accs)
    g = _residuals(layout, config, path, z)

    assert len(g) == layout.n_constraints
    for j, name in enumerate(STATE_NAMES):
        assert g[layout.index(name, 0)] == pytest.approx(state.as_tuple()[j])
        np.testing.assert_allclose(g[layout.index(name, 1):layout.slice(name).stop], 0.0, atol=1e-9)


def test_residuals_detect_inconsistent_trajectory():
    config = MPCConfig(horizon=4)
    layout = VariableLayout(config.horizon)
    path = ReferencePath([0.0, 0.0])
    state = VehicleState(0.0, 0.0, 0.0, 10.0, 0.0, 0.0)

    states = rollout(state, [0.0] * 3, [0.0] * 3, path, config.dt, config.lf)
    z = _pack(layout, states, [0.0] * 3, [0.0] * 3)
    z[layout.index('x', 2)] += 0.5
    g = _residuals(layout, config, path, z)

    assert g[layout.index('x', 2)] == pytest.approx(0.5)
    # x at t=2 feeds the prediction for t=3
    assert g[layout.index('x', 3)] == pytest.approx(-0.5)


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------

def test_bounds_structure():
    config = MPCConfig()
    layout = VariableLayout(config.horizon)
    state = VehicleState(1.0, -2.0, 0.3, 15.0, 0.4, -0.1)
    b = build_bounds(layout, config, state)

    for name in ('x', 'y', 'psi', 'cte', 'epsi'):
        assert np.all(b.lbx[layout.slice(name)] == -config.unbounded)
        assert np.all(b.ubx[layout.slice(name)] == config.unbounded)
    np.testing.assert_allclose(b.lbx[layout.slice('v')], -config.speed_limit)
    np.testing.assert_allclose(b.ubx[layout.slice('v')], config.speed_limit)
    np.testing.assert_allclose(b.lbx[layout.slice('delta')], -config.max_delta)
    np.testing.assert_allclose(b.ubx[layout.slice('delta')], config.max_delta)
    np.testing.assert_allclose(b.lbx[layout.slice('a')], -config.max_acc)
    np.testing.assert_allclose(b.ubx[layout.slice('a')], config.max_acc)


def test_bounds_pin_initial_state_only():
    config = MPCConfig(horizon=6)
    layout = VariableLayout(config.horizon)
    state = VehicleState(1.0, -2.0, 0.3, 15.0, 0.4, -0.1)
    b = build_bounds(layout, config, state)

    np.testing.assert_array_equal(b.lbg, b.ubg)
    pinned = [layout.index(name, 0) for name in STATE_NAMES]
    np.testing.assert_allclose(b.lbg[pinned], state.as_array())
    mask = np.ones(layout.n_constraints, dtype=bool)
    mask[pinned] = False
    assert np.all(b.lbg[mask] == 0.0)


def test_initial_guess():
    layout = VariableLayout(5)
    state = VehicleState(1.0, 2.0, 3.0, 4.0, 5.0, 6.0)
    z0 = initial_guess(layout, state)

    assert z0.shape == (layout.n_vars,)
    np.testing.assert_allclose(z0[[layout.index(n, 0) for n in STATE_NAMES]], state.as_array())
    assert np.count_nonzero(z0) == 6
