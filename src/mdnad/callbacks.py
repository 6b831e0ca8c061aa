# %%
import numpy as np

from dataclasses import dataclass
from typing import Callable

@dataclass
class DiscreteCallback:
    """Checked synchronously after every accepted step: when `condition(integrator)`
    is true, `affect(integrator)` runs and may modify `integrator.u`.
    """
    condition: Callable
    affect: Callable

def terminate(integrator) -> None:
    integrator.terminated = True

def TerminatingCallback(condition: Callable) -> DiscreteCallback:
    """Stop the trajectory as soon as `condition(integrator)` holds."""
    return DiscreteCallback(condition, terminate)

def CellBoundaryCallback(lower, upper) -> DiscreteCallback:
    """Wrap the positions back into the periodic box [lower, upper) and refresh the
    electronic structure at the wrapped positions.
    """
    lower = np.asarray(lower, dtype=np.float64)
    upper = np.asarray(upper, dtype=np.float64)

    def outside_cell(integrator) -> bool:
        r = integrator.u.r
        return bool(np.any(r < lower) or np.any(r >= upper))

    def enforce_periodicity(integrator) -> None:
        u = integrator.u
        u.r = lower + np.mod(u.r - lower, upper - lower)
        integrator.sim.calculator.update_electronics(u.r)

    return DiscreteCallback(outside_cell, enforce_periodicity)
