# %%
import numpy as np
from numpy.typing import NDArray

from mdnad.dynamics.method import DynamicsMethod, divide_by_mass
from mdnad.calculators.friction import FrictionKernel, fermi
from mdnad.integrators import MDEF_BAOAB
from mdnad.errors import ConfigurationError

from typing import Optional

class MDEF(DynamicsMethod):
    """Molecular dynamics with electronic friction read from the model.

    The bath temperature is the simulation temperature. Passing a callable of time as
    the temperature gives two-temperature model dynamics.
    """
    model_requirement = "friction"

    def acceleration(self, sim, u, t):
        return divide_by_mass(sim, -sim.calculator.derivative)
    def potential_energy(self, sim, u, t):
        return sim.calculator.potential

    def friction(self, sim, u, t) -> NDArray[np.float64]:
        sim.calculator.evaluate_friction(u.r, sim.temperature(t))
        return sim.calculator.friction

    def default_algorithm(self, sim):
        if sim.is_ring_polymer:
            raise ConfigurationError("MDEF is only available for classical nuclei.")
        return MDEF_BAOAB()

class DiabaticMDEF(MDEF):
    """MDEF on a many-orbital diabatic model.

    The nuclei move on the ground state of the independent electrons, with every
    adiabatic orbital filled according to the Fermi-Dirac distribution, and the friction
    tensor is built from the orbitals with one of the FrictionKernel approximations.
    """
    model_requirement = "diabatic"

    def __init__(
        self,
        kernel=FrictionKernel.GB,
        width: Optional[float] = None,
        fermi_level: Optional[float] = None,
    ):
        self.kernel = FrictionKernel.parse(kernel)
        self.width = width
        self.fermi_level = fermi_level

    @property
    def calculator_kwargs(self):
        return {"friction_kernel": self.kernel, "width": self.width, "fermi_level": self.fermi_level}

    def occupations(self, sim, kT: float) -> NDArray[np.float64]:
        calc = sim.calculator
        mu = calc.fermi_level(kT)
        return np.array([fermi(e, mu, kT) for e in calc.eigenvalues])

    def acceleration(self, sim, u, t):
        calc = sim.calculator
        f = self.occupations(sim, sim.temperature(t))
        F = -calc.state_independent_derivative - np.einsum("abii,i->ab", calc.adiabatic_derivative, f).real
        return divide_by_mass(sim, F)

    def potential_energy(self, sim, u, t):
        calc = sim.calculator
        f = self.occupations(sim, sim.temperature(t))
        return calc.state_independent_potential + np.dot(f, calc.eigenvalues)

    def friction(self, sim, u, t) -> NDArray[np.float64]:
        # the friction is wanted at a position the calculator has not seen yet
        sim.calculator.update_electronics(u.r)
        sim.calculator.evaluate_friction(u.r, sim.temperature(t))
        return sim.calculator.friction
