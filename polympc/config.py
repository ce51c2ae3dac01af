"""Controller configuration.

All tunable constants of the MPC live in a single immutable
:class:`MPCConfig`, built once at start-up and handed to
:class:`~polympc.controller.MPCController`.  The defaults reproduce the
tuning the controller was developed with: a 12-step horizon of 0.1 s, a
70 mph speed limit and a steering limit of 25 degrees.
"""

import dataclasses
import logging
import math
import numbers
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)

MPS_TO_MPH = 2.23694


class ConfigurationError(ValueError):
    """Raised for invalid controller configuration or malformed inputs."""


@dataclass(frozen=True)
class MPCConfig:
    """Immutable MPC configuration.

    Costs are normalised before weighting (``std_*`` and the actuator
    limits), so a weight can be changed without re-deriving the natural
    scale of its term.

    Args:
        horizon: Number of predicted timesteps (N).
        dt: Timestep duration (s).
        lf: Distance from the front axle to the centre of gravity (m).
        max_delta: Steering angle magnitude limit (rad).
        max_acc: Acceleration magnitude limit (m/s^2).
        speed_limit_mph: Speed limit and target speed (mph).
        std_cte: Typical cross-track error magnitude (m).
        std_epsi: Typical heading error magnitude (rad).
        std_ddelta: Typical per-step steering change. Defaults to max_delta / 4.
        std_da: Typical per-step acceleration change. Defaults to max_acc / 2.
        max_cpu_time: Solver CPU time budget per solve (s).
    """

    # Horizon
    horizon: int = 12
    dt: float = 0.1

    # Vehicle model and actuator limits
    lf: float = 2.67
    max_delta: float = 0.436332
    max_acc: float = 1.0
    speed_limit_mph: float = 70.0

    # Normalisers: |value| < std about 95% of the time
    std_cte: float = 4.0
    std_epsi: float = math.pi / 5
    std_ddelta: Optional[float] = None
    std_da: Optional[float] = None

    # Cost weights
    w_cte: float = 50.0
    w_epsi: float = 2.0
    w_speed: float = 50.0
    w_delta: float = 5.0
    w_a: float = 1.0
    w_ddelta: float = 50.0
    w_da: float = 1.0
    # Steering/speed coupling, off by default
    w_delta_speed: float = 0.0
    speed_importance: float = 3.0

    # Solver
    max_cpu_time: float = 0.5
    print_level: int = 0
    expand: bool = True
    unbounded: float = 1.0e19

    speed_limit: float = field(init=False, repr=False)

    def __post_init__(self):
        if self.std_ddelta is None:
            object.__setattr__(self, 'std_ddelta', self.max_delta / 4)
        if self.std_da is None:
            object.__setattr__(self, 'std_da', self.max_acc / 2)
        object.__setattr__(self, 'speed_limit', self.speed_limit_mph / MPS_TO_MPH)
        self._validate()

    def _validate(self):
        if not isinstance(self.horizon, numbers.Integral) or isinstance(self.horizon, bool):
            raise ConfigurationError(f"horizon must be an int, got {self.horizon!r}")
        if self.horizon < 2:
            raise ConfigurationError(
                f"horizon must be at least 2 to hold one actuation, got {self.horizon}")

        positive = ['dt', 'lf', 'max_delta', 'max_acc', 'speed_limit_mph',
                    'std_cte', 'std_epsi', 'std_ddelta', 'std_da',
                    'speed_importance', 'max_cpu_time', 'unbounded']
        for name in positive:
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be positive and finite, got {value!r}")

        for name in self.weight_names():
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ConfigurationError(f"{name} must be non-negative, got {value!r}")

    @staticmethod
    def weight_names():
        return ('w_cte', 'w_epsi', 'w_speed', 'w_delta', 'w_a',
                'w_ddelta', 'w_da', 'w_delta_speed')

    @classmethod
    def from_dict(cls, params: Optional[Dict] = None) -> 'MPCConfig':
        """Overlay ``params`` on the default configuration.

        Raises:
            ConfigurationError: if ``params`` contains an unknown key.
        """
        params = dict(params or {})
        known = {f.name for f in dataclasses.fields(cls) if f.init}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ConfigurationError(f"Unknown MPC config keys: {', '.join(unknown)}")
        config = cls(**params)
        logger.debug("MPC config: N=%d dt=%.3f speed_limit=%.2fm/s",
                     config.horizon, config.dt, config.speed_limit)
        return config

    def to_dict(self) -> Dict:
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self) if f.init}
