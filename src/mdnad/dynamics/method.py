# %%
import numpy as np
from numpy.typing import NDArray

from mdnad.simulation import DynamicsVariables
from mdnad.initcond import initialise_adiabatic_density_matrix
from mdnad.ring_polymer import spring_energy

from typing import Dict, Tuple

class DynamicsMethod:
    """Common interface of the dynamics methods.

    A method is stateless apart from small scratch values and is owned by a single
    Simulation. The calculator handed over through `sim` is always synchronised with
    `u.r` when these functions are called.
    """
    model_requirement = None
    calculator_kwargs: Dict = {}

    def dynamics_variables(self, sim, v, r, electronic=None, rng=None) -> DynamicsVariables:
        return DynamicsVariables(
            v=np.array(v, dtype=np.float64).reshape(sim.shape),
            r=np.array(r, dtype=np.float64).reshape(sim.shape),
        )

    def acceleration(self, sim, u: DynamicsVariables, t: float) -> NDArray[np.float64]:
        raise NotImplementedError

    def potential_energy(self, sim, u: DynamicsVariables, t: float) -> float:
        raise NotImplementedError

    def total_energy(self, sim, u: DynamicsVariables, t: float) -> float:
        E = sim.kinetic_energy(u.v) + self.potential_energy(sim, u, t)
        if sim.is_ring_polymer:
            E += spring_energy(u.r, sim.atoms.masses, sim.omega_n(), sim.quantum)
        return E

    def propagate_electronics(self, sim, u: DynamicsVariables, dt: float) -> None:
        pass

    def electronic_derivative(self, sim, u: DynamicsVariables) -> Dict[str, NDArray]:
        return {}

    def adiabatic_population(self, sim, u: DynamicsVariables) -> NDArray[np.float64]:
        raise NotImplementedError(f"{type(self).__name__} has no electronic populations")

    def diabatic_population(self, sim, u: DynamicsVariables) -> NDArray[np.float64]:
        raise NotImplementedError(f"{type(self).__name__} has no electronic populations")

    def callbacks(self) -> Tuple:
        return ()

    def default_algorithm(self, sim):
        raise NotImplementedError

def divide_by_mass(sim, F: NDArray[np.float64]) -> NDArray[np.float64]:
    # frozen atoms never accelerate
    return F / sim.masses * sim.mobile

def bead_last(x: NDArray) -> NDArray:
    # stacked per-bead arrays carry the bead first, positions carry it last
    return np.moveaxis(x, 0, -1)

def initial_density_matrix(sim, r: NDArray[np.float64], electronic) -> NDArray[np.complex128]:
    sim.calculator.update_electronics(r)
    calc = sim.electronic_calculator
    return initialise_adiabatic_density_matrix(electronic, calc, calc.position)
