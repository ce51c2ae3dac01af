"""Variable and constraint bounds.

Limits for the decision vector::

    ----- ... -----   x      no limit
    ----- ... -----   y      no limit
    ----- ... -----   psi    no limit
    vvvvv ... vvvvv   v      +/- speed limit
    ----- ... -----   cte    no limit
    ----- ... -----   epsi   no limit
    ddddd ... dddd    delta  +/- max steering
    aaaaa ... aaaa    a      +/- max acceleration

Every residual is bounded to [0, 0] except the t = 0 residuals, whose lower
and upper bounds both equal the observed state.
"""

from typing import NamedTuple

import numpy as np

from polympc.config import MPCConfig
from polympc.layout import VariableLayout
from polympc.state import STATE_NAMES, VehicleState


class Bounds(NamedTuple):
    lbx: np.ndarray
    ubx: np.ndarray
    lbg: np.ndarray
    ubg: np.ndarray


def build_bounds(layout: VariableLayout, config: MPCConfig,
                 state: VehicleState) -> Bounds:
    """Build variable and residual bounds for one solve."""
    lbx = np.full(layout.n_vars, -config.unbounded)
    ubx = np.full(layout.n_vars, config.unbounded)

    v = layout.slice('v')
    lbx[v] = -config.speed_limit  # reversing
    ubx[v] = config.speed_limit

    delta = layout.slice('delta')
    lbx[delta] = -config.max_delta
    ubx[delta] = config.max_delta

    a = layout.slice('a')
    lbx[a] = -config.max_acc
    ubx[a] = config.max_acc

    lbg = np.zeros(layout.n_constraints)
    ubg = np.zeros(layout.n_constraints)
    for name, value in zip(STATE_NAMES, state.as_tuple()):
        i = layout.index(name, 0)
        lbg[i] = ubg[i] = value

    return Bounds(lbx, ubx, lbg, ubg)


def initial_guess(layout: VariableLayout, state: VehicleState) -> np.ndarray:
    """Zero vector with the t = 0 state set to ``state``."""
    x0 = np.zeros(layout.n_vars)
    for name, value in zip(STATE_NAMES, state.as_tuple()):
        x0[layout.index(name, 0)] = value
    return x0
