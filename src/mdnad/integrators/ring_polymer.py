# %%
import numpy as np

from mdnad.integrators.steps import FixedStepAlgorithm, step_B, step_C, update_electronics
from mdnad.ring_polymer import pile_thermostat

class BCB(FixedStepAlgorithm):
    """Ring polymer velocity Verlet, the springs are integrated exactly (C).

    Reference:
        Ceriotti, Parrinello, Markland, Manolopoulos, J. Chem. Phys. 133, 124104 (2010)
    """

    def perform_step(self, sim, u, t, dt, rng):
        step_B(sim, u, t, dt / 2)
        step_C(sim, u, t, dt)
        update_electronics(sim, u)
        step_B(sim, u, t + dt, dt / 2)

class BCBwithElectronics(FixedStepAlgorithm):

    def perform_step(self, sim, u, t, dt, rng):
        method = sim.method
        step_B(sim, u, t, dt / 2)
        method.propagate_electronics(sim, u, dt / 2)
        step_C(sim, u, t, dt)
        update_electronics(sim, u)
        method.propagate_electronics(sim, u, dt / 2)
        step_B(sim, u, t + dt, dt / 2)

class BCOCB(FixedStepAlgorithm):
    """Thermostatted ring polymer step, O is the PILE-L thermostat with the centroid
    friction `sim.method.gamma`.
    """

    def perform_step(self, sim, u, t, dt, rng):
        step_B(sim, u, t, dt / 2)
        step_C(sim, u, t, dt / 2)
        v = u.v.copy()
        pile_thermostat(
            v, sim.atoms.masses, sim.temperature(t + dt / 2), sim.method.gamma,
            sim.omega_n(t + dt / 2), dt, sim.quantum, rng,
        )
        u.v = np.where(sim.mobile, v, u.v)
        step_C(sim, u, t + dt / 2, dt / 2)
        update_electronics(sim, u)
        step_B(sim, u, t + dt, dt / 2)
