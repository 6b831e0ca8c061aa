# %%
from mdnad.integrators.steps import FixedStepAlgorithm, step_A, step_B, update_electronics

class VelocityVerlet(FixedStepAlgorithm):
    """B(dt/2) A(dt) B(dt/2)"""

    def perform_step(self, sim, u, t, dt, rng):
        step_B(sim, u, t, dt / 2)
        step_A(sim, u, dt)
        update_electronics(sim, u)
        step_B(sim, u, t + dt, dt / 2)

class VerletwithElectronics(FixedStepAlgorithm):
    """Velocity Verlet for the nuclei with the electronic variables propagated exactly
    over the two half steps, each with the coupling at the current nuclear configuration.
    """

    def perform_step(self, sim, u, t, dt, rng):
        method = sim.method
        step_B(sim, u, t, dt / 2)
        method.propagate_electronics(sim, u, dt / 2)
        step_A(sim, u, dt)
        update_electronics(sim, u)
        method.propagate_electronics(sim, u, dt / 2)
        step_B(sim, u, t + dt, dt / 2)
