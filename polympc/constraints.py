"""Dynamics constraints.

One residual per state channel per timestep.  At t = 0 the residual is the
raw state variable, which the bounds pin to the observed state.  For t >= 1
it is the gap between the decision state and the model's prediction from
t - 1; bounding these to zero makes any feasible point a rollout of the
kinematic model.
"""

from typing import List

from polympc.config import MPCConfig
from polympc.kinematics import kinematic_step
from polympc.layout import VariableLayout
from polympc.state import STATE_NAMES, ReferencePath


def build_constraints(vars, layout: VariableLayout, config: MPCConfig,
                      path: ReferencePath) -> List:
    """Return the ``layout.n_constraints`` residuals for ``vars``.

    Residuals are ordered like the state slices of the decision vector, so
    residual ``layout.index(name, t)`` belongs to state ``name`` at ``t``.
    """
    N = layout.horizon
    residuals = [None] * layout.n_constraints

    for name in STATE_NAMES:
        i = layout.index(name, 0)
        residuals[i] = vars[i]

    for t in range(1, N):
        state0 = tuple(vars[layout.index(name, t - 1)] for name in STATE_NAMES)
        delta0 = vars[layout.index('delta', t - 1)]
        a0 = vars[layout.index('a', t - 1)]

        predicted = kinematic_step(state0, delta0, a0, path, config.dt, config.lf)
        for name, value in zip(STATE_NAMES, predicted):
            i = layout.index(name, t)
            residuals[i] = vars[i] - value

    return residuals
