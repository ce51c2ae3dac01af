"""MPC objective.

Every term is normalised by a typical magnitude before it is squared and
weighted, so the weights compare terms on a common scale.
"""

from polympc.config import MPCConfig
from polympc.layout import VariableLayout


def build_cost(vars, layout: VariableLayout, config: MPCConfig):
    """Return the scalar objective for the decision vector ``vars``.

    Only arithmetic operators are used, so ``vars`` may be a CasADi symbol
    or a numeric array.

    Args:
        vars: Flat decision vector laid out by ``layout``.
        layout: Decision vector layout.
        config: Weights, normalisers and limits.
    """
    N = layout.horizon
    c = config
    cte, epsi, v = layout.start('cte'), layout.start('epsi'), layout.start('v')
    delta, a = layout.start('delta'), layout.start('a')

    cost = 0.0
    for t in range(N):
        # Near-term cross-track error costs more
        cost += c.w_cte * (N - t) * (vars[cte + t] / c.std_cte) ** 2
        cost += c.w_epsi * (vars[epsi + t] / c.std_epsi) ** 2
        # Track the speed limit, which also keeps the vehicle from stalling
        cost += c.w_speed * ((vars[v + t] - c.speed_limit) / c.speed_limit) ** 2

    for t in range(N - 1):
        cost += c.w_delta * (vars[delta + t] / c.max_delta) ** 2
        cost += c.w_a * (vars[a + t] / c.max_acc) ** 2
        if c.w_delta_speed > 0:
            cost += (c.w_delta_speed
                     * (vars[delta + t] / c.max_delta) ** 2
                     * (vars[v + t + 1] / c.speed_limit * c.speed_importance) ** 2)

    for t in range(N - 2):
        cost += c.w_ddelta * ((vars[delta + t + 1] - vars[delta + t]) / c.std_ddelta) ** 2
        cost += c.w_da * ((vars[a + t + 1] - vars[a + t]) / c.std_da) ** 2

    return cost
