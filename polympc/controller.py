"""Model predictive controller: NLP assembly and solve with CasADi + IPOPT.

Each call to :meth:`MPCController.solve` builds a fresh nonlinear program
over the kinematic bicycle model::

    minimise    cost(z)
    subject to  lbx <= z    <= ubx
                lbg <= g(z) <= ubg

where ``z`` is the flat decision vector described by
:class:`~polympc.layout.VariableLayout`, ``g`` the dynamics residuals and the
bounds encode the actuator limits, the speed limit and the pinned initial
state.  The first actuation of the solution is the command for this cycle.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import casadi as ca

from polympc.bounds import build_bounds, initial_guess
from polympc.config import MPCConfig
from polympc.constraints import build_constraints
from polympc.cost import build_cost
from polympc.diagnostics import find_violations, log_violations
from polympc.layout import VariableLayout
from polympc.state import ReferencePath, VehicleState

logger = logging.getLogger(__name__)


@dataclass
class SolveResult:
    """Outcome of one MPC solve.

    ``steering`` and ``acceleration`` are the commands for the current cycle.
    State sequences have N entries starting at the current timestep;
    actuation sequences have N-1.
    """
    steering: float
    acceleration: float
    x: np.ndarray
    y: np.ndarray

    psi: np.ndarray
    v: np.ndarray
    cte: np.ndarray
    epsi: np.ndarray
    delta: np.ndarray
    a: np.ndarray

    cost: float
    success: bool
    status: str
    solve_time: float

    def as_tuple(self) -> Tuple[float, float, np.ndarray, np.ndarray]:
        """``(steering, acceleration, x, y)``."""
        return self.steering, self.acceleration, self.x, self.y


class MPCController:
    """Kinematic bicycle MPC tracking a reference polynomial.

    The controller only holds its configuration and layout, both immutable,
    so it can be shared between threads as long as each caller passes its
    own inputs.

    Args:
        config: Controller configuration. Defaults to ``MPCConfig()``.
    """

    def __init__(self, config: Optional[MPCConfig] = None):
        self._config = config if config is not None else MPCConfig()
        self._layout = VariableLayout(self._config.horizon)

    @property
    def config(self) -> MPCConfig:
        return self._config

    @property
    def layout(self) -> VariableLayout:
        return self._layout

    def solver_options(self) -> dict:
        c = self._config
        return {
            'expand': c.expand,
            'print_time': False,
            'error_on_fail': False,
            'ipopt': {
                'print_level': c.print_level,
                'sb': 'yes',
                'max_cpu_time': c.max_cpu_time,
            },
        }

    def solve(self, state: Union[VehicleState, Sequence[float]],
              coeffs: Union[ReferencePath, Sequence[float]]) -> SolveResult:
        """Solve the MPC problem for one control cycle.

        Args:
            state: Current ``(x, y, psi, v, cte, epsi)``.
            coeffs: Reference polynomial, lowest degree first.

        Returns:
            The result at the solver's final iterate. If IPOPT did not
            succeed, a warning is logged and ``success`` is False; the
            caller decides whether to use the command.

        Raises:
            ConfigurationError: on malformed state or reference path.
        """
        if not isinstance(state, VehicleState):
            state = VehicleState.from_sequence(state)
        path = coeffs if isinstance(coeffs, ReferencePath) else ReferencePath(coeffs)

        layout = self._layout
        config = self._config

        bounds = build_bounds(layout, config, state)
        x0 = initial_guess(layout, state)

        z = ca.MX.sym('z', layout.n_vars)
        nlp = {
            'x': z,
            'f': build_cost(z, layout, config),
            'g': ca.vertcat(*build_constraints(z, layout, config, path)),
        }
        solver = ca.nlpsol('mpc', 'ipopt', nlp, self.solver_options())

        t_start = time.perf_counter()
        sol = solver(x0=x0, lbx=bounds.lbx, ubx=bounds.ubx,
                     lbg=bounds.lbg, ubg=bounds.ubg)
        solve_time = time.perf_counter() - t_start

        stats = solver.stats()
        success = bool(stats.get('success', False))
        status = str(stats.get('return_status', 'unknown'))

        z_opt = np.array(sol['x'], dtype=float).ravel()
        cost = float(sol['f'])

        if not success:
            logger.warning("MPC solver was not successful: %s", status)
            if logger.isEnabledFor(logging.DEBUG):
                g_opt = np.array(sol['g'], dtype=float).ravel()
                log_violations(find_violations(z_opt, g_opt, layout, bounds))
        logger.debug("MPC solve: status=%s cost=%.4f time=%.3fs",
                     status, cost, solve_time)

        extract = layout.extract
        return SolveResult(
            steering=float(z_opt[layout.index('delta', 0)]),
            acceleration=float(z_opt[layout.index('a', 0)]),
            x=extract(z_opt, 'x'),
            y=extract(z_opt, 'y'),
            psi=extract(z_opt, 'psi'),
            v=extract(z_opt, 'v'),
            cte=extract(z_opt, 'cte'),
            epsi=extract(z_opt, 'epsi'),
            delta=extract(z_opt, 'delta'),
            a=extract(z_opt, 'a'),
            cost=cost,
            success=success,
            status=status,
            solve_time=solve_time,
        )
