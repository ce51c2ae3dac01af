from polympc.config import MPCConfig, ConfigurationError
from polympc.state import VehicleState, ReferencePath
from polympc.layout import VariableLayout
from polympc.kinematics import kinematic_step, rollout
from polympc.cost import build_cost
from polympc.constraints import build_constraints
from polympc.bounds import Bounds, build_bounds, initial_guess
from polympc.controller import MPCController, SolveResult
from polympc.diagnostics import find_violations, summarise
from polympc.util import setup_logging
