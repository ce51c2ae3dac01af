"""Vehicle state and reference path value types."""

import math
from dataclasses import dataclass, astuple
from typing import Sequence, Tuple

import numpy as np

from polympc.config import ConfigurationError

STATE_NAMES = ('x', 'y', 'psi', 'v', 'cte', 'epsi')


@dataclass(frozen=True)
class VehicleState:
    """Kinematic state in the local ego frame.

    Attributes:
        x, y: Position (m).
        psi: Heading (rad).
        v: Speed (m/s).
        cte: Signed cross-track error (m).
        epsi: Signed heading error (rad).
    """
    x: float
    y: float
    psi: float
    v: float
    cte: float
    epsi: float

    def __post_init__(self):
        for name, value in zip(STATE_NAMES, astuple(self)):
            if not math.isfinite(value):
                raise ConfigurationError(f"VehicleState.{name} must be finite, got {value!r}")

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> 'VehicleState':
        try:
            values = [float(v) for v in values]
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"VehicleState values must be numeric: {e}") from e
        if len(values) != len(STATE_NAMES):
            raise ConfigurationError(
                f"VehicleState needs {len(STATE_NAMES)} values, got {len(values)}")
        return cls(*values)

    def as_tuple(self) -> Tuple[float, ...]:
        return astuple(self)

    def as_array(self) -> np.ndarray:
        return np.array(astuple(self), dtype=float)


class ReferencePath:
    """Reference polynomial y = f(x), coefficients lowest degree first.

    The coefficients are copied on construction, so the caller's buffer may
    change after the path is built without affecting a solve in progress.

    Args:
        coeffs: Polynomial coefficients. At least two are required since the
            linear term defines the reference heading.
    """

    def __init__(self, coeffs: Sequence[float]):
        coeffs = np.array(coeffs, dtype=float).ravel()
        if len(coeffs) < 2:
            raise ConfigurationError(
                f"ReferencePath needs at least 2 coefficients, got {len(coeffs)}")
        if not np.all(np.isfinite(coeffs)):
            raise ConfigurationError("ReferencePath coefficients must be finite")
        coeffs.setflags(write=False)
        self._coeffs = coeffs

    @property
    def coeffs(self) -> np.ndarray:
        return self._coeffs

    @property
    def degree(self) -> int:
        return len(self._coeffs) - 1

    def evaluate(self, x):
        """Evaluate the polynomial at ``x``.

        Uses only addition and multiplication (Horner's scheme), so ``x`` may
        be a float, a numpy array or a CasADi symbol.
        """
        result = 0.0
        for c in self._coeffs[::-1]:
            result = result * x + float(c)
        return result

    def heading(self) -> float:
        """Reference heading at the origin of the local frame (rad)."""
        return math.atan(self._coeffs[1])

    def __len__(self):
        return len(self._coeffs)

    def __repr__(self):
        return f"ReferencePath({self._coeffs.tolist()})"
