# %%
import numpy as np
from numpy.typing import NDArray
from joblib import Parallel, delayed

from mdnad.simulation import DynamicsVariables
from mdnad.errors import ConfigurationError, IntegrationError

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

@dataclass
class Integrator:
    """Mutable state of one running trajectory, handed to the algorithm and the callbacks."""
    sim: object
    u: DynamicsVariables
    t: float
    dt: float
    rng: np.random.Generator
    last_step: float = 0.0
    terminated: bool = False

# ------ Output registry ------
def _adiabatic_population(sim, u, t):
    return np.asarray(sim.method.adiabatic_population(sim, u))

def _diabatic_population(sim, u, t):
    return np.asarray(sim.method.diabatic_population(sim, u))

def _quantum_subsystem(sim, u, t):
    if u.mapping_q is not None:
        return np.concatenate([np.ravel(u.mapping_q), np.ravel(u.mapping_p)])
    return np.copy(u.sigma)

def _state(sim, u, t):
    return np.copy(u.state)

OUTPUTS: Dict[str, Callable] = {
    "t": lambda sim, u, t: t,
    "position": lambda sim, u, t: np.copy(u.r),
    "velocity": lambda sim, u, t: np.copy(u.v),
    "kinetic_energy": lambda sim, u, t: sim.kinetic_energy(u.v),
    "potential_energy": lambda sim, u, t: sim.method.potential_energy(sim, u, t),
    "total_energy": lambda sim, u, t: sim.method.total_energy(sim, u, t),
    "adiabatic_population": _adiabatic_population,
    "diabatic_population": _diabatic_population,
    "quantum_subsystem": _quantum_subsystem,
    "state": _state,
    "n_degenerate": lambda sim, u, t: getattr(sim.calculator, "n_degenerate", 0),
}

def check_outputs(output: Sequence[str]) -> Tuple[str, ...]:
    if isinstance(output, str):
        output = (output,)
    unknown = [name for name in output if name not in OUTPUTS]
    if unknown:
        raise ConfigurationError(f"Unrecognised output(s): {', '.join(unknown)}. Use any of {', '.join(OUTPUTS)}")
    return tuple(output)

# ------ Single trajectory ------
def run_dynamics(
    sim,
    tspan: Tuple[float, float],
    u0: DynamicsVariables,
    dt: float,
    output: Sequence[str] = ("t",),
    algorithm=None,
    callbacks: Sequence = (),
    saveat: Optional[float] = None,
    rng: Optional[Union[int, np.random.Generator]] = None,
) -> Dict[str, NDArray]:
    """Integrate one trajectory from `u0` over `tspan` and return the requested outputs,
    sampled every `saveat` (default every `dt`), stacked along the first axis.

    The simulation and the initial variables are copied, so both can be reused.
    A trajectory stopped by a terminating callback returns the outputs saved so far.
    Non-finite variables raise IntegrationError.
    """
    output = check_outputs(output)
    if dt <= 0:
        raise ConfigurationError(f"Time step must be positive, got {dt}.")
    sim = deepcopy(sim)
    u = u0.copy()
    rng = np.random.default_rng(rng)
    algorithm = sim.method.default_algorithm(sim) if algorithm is None else deepcopy(algorithm)
    callbacks = tuple(sim.method.callbacks()) + tuple(callbacks)

    t0, tf = tspan
    saveat = dt if saveat is None else saveat
    n_save = int(np.floor((tf - t0) / saveat + 1e-8))
    save_times = t0 + saveat * np.arange(n_save + 1)
    eps = 1e-8 * min(dt, saveat)

    integrator = Integrator(sim=sim, u=u, t=t0, dt=dt, rng=rng)
    sim.calculator.update_electronics(u.r)
    algorithm.initialise(integrator)

    saved: Dict[str, List] = {name: [] for name in output}

    def save(t: float) -> None:
        for name in output:
            saved[name].append(OUTPUTS[name](sim, integrator.u, t))

    save(t0)
    isave = 1
    while isave < save_times.size and not integrator.terminated:
        t_stop = save_times[isave]
        algorithm.step(integrator, t_stop)
        if not integrator.u.is_finite():
            raise IntegrationError(f"Non-finite dynamics variables at t = {integrator.t}")
        for callback in callbacks:
            if callback.condition(integrator):
                callback.affect(integrator)
                algorithm.initialise(integrator)
            if integrator.terminated:
                break
        if integrator.terminated:
            break
        if integrator.t >= t_stop - eps:
            integrator.t = t_stop
            save(t_stop)
            isave += 1

    return {name: np.array(values) for name, values in saved.items()}

# ------ Ensembles ------
@dataclass
class EnsembleResult:
    mean: Dict[str, NDArray]
    n_success: int
    failed: List[Tuple[int, str]] = field(default_factory=list)

def _initial_variables(sim, distribution, index: int, rng: np.random.Generator) -> DynamicsVariables:
    if callable(distribution):
        return distribution(sim, index, rng)
    return distribution[index]

def _run_one(
    sim,
    tspan: Tuple[float, float],
    distribution,
    dt: float,
    output: Tuple[str, ...],
    index: int,
    seed: np.random.SeedSequence,
    kwargs: Dict,
):
    rng = np.random.default_rng(seed)
    sim = deepcopy(sim)
    try:
        u0 = _initial_variables(sim, distribution, index, rng)
        result = run_dynamics(sim, tspan, u0, dt, output=output, rng=rng, **kwargs)
    except (IntegrationError, np.linalg.LinAlgError, FloatingPointError) as err:
        return index, None, f"{type(err).__name__}: {err}"
    return index, result, None

def _pad(values: NDArray, length: int) -> NDArray:
    # an early terminated trajectory keeps its last value
    if values.shape[0] >= length:
        return values[:length]
    tail = np.repeat(values[-1:], length - values.shape[0], axis=0)
    return np.concatenate([values, tail], axis=0)

def run_ensemble(
    sim,
    tspan: Tuple[float, float],
    distribution: Union[Callable, Sequence[DynamicsVariables]],
    dt: float,
    output: Sequence[str] = ("t",),
    trajectories: int = 1,
    n_jobs: int = 1,
    seed: Optional[int] = None,
    verbose: int = 0,
    **kwargs,
) -> EnsembleResult:
    """Run `trajectories` independent trajectories and average their outputs.

    `distribution` is either a callable `(sim, index, rng) -> DynamicsVariables` or a
    sequence of initial variables. Every trajectory gets its own copy of `sim` and its own
    random generator spawned from `seed`, so results do not depend on `n_jobs` or on the
    order in which trajectories finish. Failing trajectories are logged, recorded in
    `failed` and left out of the mean.
    """
    output = check_outputs(output)
    if trajectories < 1:
        raise ConfigurationError(f"Need at least one trajectory, got {trajectories}.")
    if not callable(distribution) and len(distribution) < trajectories:
        raise ConfigurationError(f"Got {len(distribution)} initial conditions for {trajectories} trajectories.")
    seeds = np.random.SeedSequence(seed).spawn(trajectories)
    saveat = kwargs.get("saveat") or dt
    length = int(np.floor((tspan[1] - tspan[0]) / saveat + 1e-8)) + 1

    result = Parallel(n_jobs=n_jobs, verbose=verbose, return_as='generator')(
        delayed(_run_one)(sim, tspan, distribution, dt, output, itraj, seeds[itraj], kwargs)
        for itraj in range(trajectories)
    )

    # reduce the results generator to a running mean
    mean: Dict[str, NDArray] = {}
    n_success = 0
    failed: List[Tuple[int, str]] = []
    for index, item, error in result:
        if error is not None:
            logger.warning("trajectory %d failed: %s", index, error)
            failed.append((index, error))
            continue
        n_success += 1
        for name in output:
            values = _pad(np.asarray(item[name]), length)
            if name not in mean:
                mean[name] = values.astype(np.result_type(values, np.float64))
            else:
                mean[name] += (values - mean[name]) / n_success

    if n_success == 0:
        logger.error("all %d trajectories failed", trajectories)
    else:
        logger.info("ensemble finished: %d succeeded, %d failed", n_success, len(failed))
    failed.sort()
    return EnsembleResult(mean=mean, n_success=n_success, failed=failed)
