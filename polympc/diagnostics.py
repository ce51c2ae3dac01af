"""Post-solve constraint analysis.

Used by the controller to explain an unsuccessful solve, and by callers to
check a returned trajectory against the actuator and speed limits.
"""

import logging
from typing import Dict, List

import numpy as np

from polympc.bounds import Bounds
from polympc.config import MPCConfig
from polympc.layout import VariableLayout

logger = logging.getLogger(__name__)


def _locate(layout: VariableLayout, i: int) -> str:
    for name in layout.names:
        s = layout.slice(name)
        if s.start <= i < s.stop:
            return f"{name}[{i - s.start}]"
    return f"[{i}]"


def find_violations(x: np.ndarray, g: np.ndarray, layout: VariableLayout,
                    bounds: Bounds, tol: float = 1e-3) -> List[str]:
    """Describe every variable or residual outside its bounds by more than ``tol``.

    Args:
        x: (n_vars,) decision vector.
        g: (n_constraints,) residual values at ``x``.
        layout: Decision vector layout.
        bounds: Bounds the problem was solved with.
        tol: Allowed violation.

    Returns:
        List of messages, variables first.
    """
    x = np.asarray(x, dtype=float).ravel()
    g = np.asarray(g, dtype=float).ravel()
    violations = []

    for i in np.flatnonzero((x < bounds.lbx - tol) | (x > bounds.ubx + tol)):
        violations.append(f"{_locate(layout, i)}={x[i]:.3f} outside "
                          f"[{bounds.lbx[i]:.3f}, {bounds.ubx[i]:.3f}]")

    for i in np.flatnonzero((g < bounds.lbg - tol) | (g > bounds.ubg + tol)):
        name = _locate(layout, i)
        if bounds.lbg[i] == bounds.ubg[i]:
            violations.append(f"Residual {name}={g[i]:.3f} != {bounds.lbg[i]:.3f}")
        else:
            violations.append(f"Residual {name}={g[i]:.3f} outside "
                              f"[{bounds.lbg[i]:.3f}, {bounds.ubg[i]:.3f}]")

    return violations


def log_violations(violations: List[str], limit: int = 10):
    if not violations:
        logger.debug("No obvious constraint violations found in solver output")
        return
    logger.debug("Violated constraints (%d total):", len(violations))
    for v in violations[:limit]:
        logger.debug("  - %s", v)
    if len(violations) > limit:
        logger.debug("  ... and %d more", len(violations) - limit)


def summarise(result, config: MPCConfig, tol: float = 1e-3) -> Dict:
    """Ranges and limit checks for a :class:`~polympc.controller.SolveResult`."""
    delta, a, v = result.delta, result.a, result.v

    steering_violated = bool(np.max(np.abs(delta)) > config.max_delta + tol)
    acceleration_violated = bool(np.max(np.abs(a)) > config.max_acc + tol)
    velocity_violated = bool(np.max(np.abs(v)) > config.speed_limit + tol)

    return {
        'success': result.success,
        'status': result.status,
        'cost': result.cost,
        'solve_time': result.solve_time,

        'steering_violated': steering_violated,
        'acceleration_violated': acceleration_violated,
        'velocity_violated': velocity_violated,
        'any_violated': (not result.success or steering_violated
                         or acceleration_violated or velocity_violated),

        'delta_range': (float(np.min(delta)), float(np.max(delta))),
        'a_range': (float(np.min(a)), float(np.max(a))),
        'v_range': (float(np.min(v)), float(np.max(v))),
    }
