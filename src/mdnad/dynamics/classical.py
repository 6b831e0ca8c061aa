# %%
import numpy as np

from mdnad.dynamics.method import DynamicsMethod, divide_by_mass, bead_last
from mdnad.integrators import VelocityVerlet, BCB, BCOCB, MDEF_BAOAB
from mdnad.errors import ConfigurationError

class Classical(DynamicsMethod):
    """Newtonian dynamics on a single adiabatic surface."""
    model_requirement = "adiabatic"

    def acceleration(self, sim, u, t):
        dV = sim.calculator.derivative
        if sim.is_ring_polymer:
            dV = bead_last(dV)
        return divide_by_mass(sim, -dV)

    def potential_energy(self, sim, u, t):
        return float(np.sum(sim.calculator.potential))

    def default_algorithm(self, sim):
        return BCB() if sim.is_ring_polymer else VelocityVerlet()

class Langevin(Classical):
    """Classical dynamics coupled to a heat bath through a scalar friction `gamma`."""

    def __init__(self, gamma: float):
        self.gamma = gamma

    def friction(self, sim, u, t):
        return self.gamma

    def default_algorithm(self, sim):
        return BCOCB() if sim.is_ring_polymer else MDEF_BAOAB()

class ThermalLangevin(Langevin):
    """Thermostatted ring polymer: the centroid feels `gamma`, the internal modes are
    damped critically (PILE-L).
    """

    def default_algorithm(self, sim):
        if not sim.is_ring_polymer:
            raise ConfigurationError("ThermalLangevin needs a RingPolymerSimulation, use Langevin instead.")
        return BCOCB()
