"""Decision vector layout.

The solver sees all states and actuations as one flat vector.  For a horizon
of N steps it holds N values of each state channel followed by N-1 values of
each actuation::

    x0 ... xN-1 | y | psi | v | cte | epsi | delta0 ... deltaN-2 | a

The residual vector shares the first ``6N`` indices, so the layout also
addresses the dynamics constraints.
"""

from typing import Dict

import numpy as np

from polympc.config import ConfigurationError
from polympc.state import STATE_NAMES

ACTUATION_NAMES = ('delta', 'a')


class VariableLayout:
    """Fixed bijection between the flat decision vector and named slices.

    Args:
        horizon: Number of predicted timesteps (N >= 2).
    """

    def __init__(self, horizon: int):
        if horizon < 2:
            raise ConfigurationError(f"horizon must be at least 2, got {horizon}")
        self._horizon = horizon

        self._starts: Dict[str, int] = {}
        self._lengths: Dict[str, int] = {}
        offset = 0
        for name in STATE_NAMES:
            self._starts[name] = offset
            self._lengths[name] = horizon
            offset += horizon
        self._n_constraints = offset
        for name in ACTUATION_NAMES:
            self._starts[name] = offset
            self._lengths[name] = horizon - 1
            offset += horizon - 1
        self._n_vars = offset

    @property
    def horizon(self) -> int:
        return self._horizon

    @property
    def n_vars(self) -> int:
        """Decision vector length, ``6N + 2(N-1)``."""
        return self._n_vars

    @property
    def n_constraints(self) -> int:
        """Residual vector length, ``6N``."""
        return self._n_constraints

    @property
    def names(self):
        return STATE_NAMES + ACTUATION_NAMES

    def start(self, name: str) -> int:
        try:
            return self._starts[name]
        except KeyError:
            raise KeyError(f"Unknown variable '{name}'") from None

    def length(self, name: str) -> int:
        self.start(name)
        return self._lengths[name]

    def index(self, name: str, t: int) -> int:
        """Flat index of variable ``name`` at timestep ``t``."""
        n = self.length(name)
        if not 0 <= t < n:
            raise IndexError(f"t={t} out of range for '{name}' (length {n})")
        return self._starts[name] + t

    def slice(self, name: str) -> slice:
        start = self.start(name)
        return slice(start, start + self._lengths[name])

    def extract(self, vector, name: str) -> np.ndarray:
        """Copy the ``name`` slice out of a flat numeric vector."""
        return np.asarray(vector, dtype=float).ravel()[self.slice(name)].copy()

    def __repr__(self):
        return f"VariableLayout(horizon={self._horizon}, n_vars={self._n_vars})"
