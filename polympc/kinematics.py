"""Kinematic bicycle model.

One Euler step of the model, relative to a reference polynomial:

    x_{t+1}    = x_t + v_t * cos(psi_t) * dt
    y_{t+1}    = y_t + v_t * sin(psi_t) * dt
    psi_{t+1}  = psi_t + v_t * delta_t / Lf * dt
    v_{t+1}    = v_t + a_t * dt
    cte_{t+1}  = (f(x_t) - y_t) + v_t * sin(epsi_t) * dt
    epsi_{t+1} = (psi_t - atan(c_1)) + v_t * delta_t / Lf * dt

The step is written with CasADi operations only, with no branching on its
inputs, so the same function builds the symbolic dynamics constraints and
re-simulates numeric trajectories.
"""

from typing import Sequence, Tuple

import numpy as np
import casadi as ca

from polympc.state import ReferencePath, VehicleState


def kinematic_step(state: Tuple, delta, a, path: ReferencePath,
                   dt: float, lf: float) -> Tuple:
    """Advance ``state`` by one timestep.

    Args:
        state: ``(x, y, psi, v, cte, epsi)``. ``cte`` is unused by the
            model but kept so that states chain through the function.
        delta: Steering angle applied over the step (rad).
        a: Acceleration applied over the step (m/s^2).
        path: Reference polynomial.
        dt: Timestep (s).
        lf: Front axle to centre of gravity distance (m).

    Returns:
        The next ``(x, y, psi, v, cte, epsi)``.
    """
    x0, y0, psi0, v0, _, epsi0 = state

    desired_y0 = path.evaluate(x0)
    desired_psi0 = path.heading()
    yaw_step = v0 * delta / lf * dt

    x1 = x0 + v0 * ca.cos(psi0) * dt
    y1 = y0 + v0 * ca.sin(psi0) * dt
    psi1 = psi0 + yaw_step
    v1 = v0 + a * dt
    cte1 = (desired_y0 - y0) + v0 * ca.sin(epsi0) * dt
    epsi1 = (psi0 - desired_psi0) + yaw_step
    return x1, y1, psi1, v1, cte1, epsi1


def rollout(state: VehicleState, deltas: Sequence[float], accs: Sequence[float],
            path: ReferencePath, dt: float, lf: float) -> np.ndarray:
    """Simulate the model numerically from ``state``.

    Returns:
        (len(deltas)+1, 6) array of states, starting with ``state``.
    """
    if len(deltas) != len(accs):
        raise ValueError(f"deltas and accs differ in length: {len(deltas)} != {len(accs)}")

    current = tuple(float(s) for s in state.as_tuple())
    states = [current]
    for delta, a in zip(deltas, accs):
        current = tuple(float(s) for s in kinematic_step(current, float(delta), float(a),
                                                         path, dt, lf))
        states.append(current)
    return np.array(states, dtype=float)
