# %%
import numpy as np

from mdnad.models import NewnsAndersonHarmonic, Harmonic, FrictionHarmonic, TullyModelOne, TullyModelTwo, TullyModelThree
from mdnad.dynamics import (
    Classical, Langevin, ThermalLangevin, MDEF, DiabaticMDEF,
    Ehrenfest, EhrenfestNA, FSSH, IESH, SpinMappingW, NRPMD,
)
from mdnad.simulation import Atoms, Simulation, RingPolymerSimulation
from mdnad.initcond import boltzmann_sampling, wigner_sampling, SingleState
from mdnad.parse_inp import InputParameters, Method
from mdnad.run import run_ensemble
from mdnad.errors import ConfigurationError

import os
import argparse
import logging
from typing import Callable

logger = logging.getLogger(__name__)

def preprocess(argv=None) -> InputParameters:
    parser = argparse.ArgumentParser(description="Ensemble nonadiabatic molecular dynamics")
    # -i input file
    parser.add_argument("-i", "--input", help="input file")
    # -o output directory
    parser.add_argument("-o", "--output", help="output directory", default="./data")
    # -j number of parallel jobs, -1 uses every core
    parser.add_argument("-j", "--jobs", help="number of parallel jobs", type=int, default=-1)

    # parse the arguments
    args = parser.parse_args(argv)
    if args.input is None:
        raise ConfigurationError(r"Input file is required. use -h for help.")

    # parse the input file
    inp = InputParameters.from_file(args.input)

    # prepare the output directory if not exist
    if not os.path.exists(args.output):
        os.makedirs(args.output)

    inp.output_dir = args.output
    inp.n_jobs = args.jobs
    return inp

def build_model(inp: InputParameters):
    if inp.model == "newns-anderson":
        return NewnsAndersonHarmonic.initialize(
            nk=inp.nk, W=inp.W, Gamma=inp.Gamma, mass=inp.mass, omega_B=inp.omega_B, n_electrons=inp.ne,
        )
    elif inp.model == "harmonic":
        if inp.method == Method.MDEF:
            return FrictionHarmonic(mass=inp.mass, omega=inp.omega_B, eta=inp.gamma)
        return Harmonic(mass=inp.mass, omega=inp.omega_B)
    elif inp.model == "tully1":
        return TullyModelOne()
    elif inp.model == "tully2":
        return TullyModelTwo()
    elif inp.model == "tully3":
        return TullyModelThree()
    raise ConfigurationError(f"Invalid model: {inp.model}. Use newns-anderson, harmonic, tully1, tully2 or tully3")

def build_method(inp: InputParameters):
    method = inp.method
    if method == Method.CLASSICAL:
        return Classical()
    elif method == Method.LANGEVIN:
        return ThermalLangevin(inp.gamma) if inp.n_beads > 1 else Langevin(inp.gamma)
    elif method == Method.MDEF:
        return MDEF()
    elif method == Method.DIABATIC_MDEF:
        return DiabaticMDEF(kernel=inp.kernel)
    elif method == Method.EHRENFEST:
        return Ehrenfest()
    elif method == Method.EHRENFEST_NA:
        return EhrenfestNA()
    elif method == Method.FSSH:
        return FSSH(frustrated=inp.frustrated)
    elif method == Method.IESH:
        return IESH(frustrated=inp.frustrated)
    elif method == Method.SPIN_MAPPING:
        return SpinMappingW()
    elif method == Method.NRPMD:
        return NRPMD()
    raise ConfigurationError(f"method {method} not implemented")

def build_simulation(inp: InputParameters):
    model = build_model(inp)
    method = build_method(inp)
    atoms = Atoms(masses=[inp.mass])
    if inp.n_beads > 1 or inp.method == Method.NRPMD:
        return RingPolymerSimulation(atoms, model, method, n_beads=max(inp.n_beads, 1), temperature=inp.kT)
    return Simulation(atoms, model, method, temperature=inp.kT)

def initial_conditions(inp: InputParameters) -> Callable:
    """Sampler of the initial variables of trajectory `index`, drawing from its own `rng`."""
    scattering = inp.model.startswith("tully")
    if inp.method.is_independent_electron or inp.method.is_classical:
        electronic = None
    else:
        electronic = SingleState(inp.init_state, inp.basis)

    def distribution(sim, index, rng):
        # classical initial conditions
        if scattering:
            R0, V0 = inp.x0, inp.p0 / inp.mass
        elif inp.flag_boltzmann:
            R0, V0 = boltzmann_sampling(1, inp.kT, inp.mass, inp.omega_B, rng)
        else:
            R0, V0 = wigner_sampling(1, inp.kT, inp.mass, inp.omega_B, rng)
        r = np.full(sim.shape, np.ravel(R0)[0])
        v = np.full(sim.shape, np.ravel(V0)[0])
        return sim.method.dynamics_variables(sim, v, r, electronic, rng)

    return distribution

def outputs(inp: InputParameters):
    output = ["t", "position", "velocity", "kinetic_energy", "potential_energy", "total_energy"]
    if not inp.method.is_classical:
        output += ["adiabatic_population", "diabatic_population"]
    if inp.method.is_surface_hopping:
        output.append("state")
    return tuple(output)

def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    inp = preprocess(argv)
    sim = build_simulation(inp)
    logger.info("running %d %s trajectories on %s", inp.ntrajs, inp.method.value, type(sim.model).__name__)

    result = run_ensemble(
        sim, (0.0, inp.tf), initial_conditions(inp), inp.dt,
        output=outputs(inp), trajectories=inp.ntrajs, n_jobs=inp.n_jobs,
        seed=inp.seed, verbose=10, saveat=inp.saveat,
    )

    # save the results
    failed = np.array([index for index, _ in result.failed], dtype=np.int64)
    np.savez(
        os.path.join(inp.output_dir, "output.npz"),
        n_success=result.n_success, failed=failed, **result.mean,
    )
    logger.info("results written to %s", os.path.join(inp.output_dir, "output.npz"))


# %%
if __name__ == "__main__":
    main()
