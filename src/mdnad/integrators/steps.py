# %%
import numpy as np

from mdnad.ring_polymer import free_ring_polymer_step

class FixedStepAlgorithm:
    """Base class of the fixed step integrators.

    `step` advances `integrator` by one step of `integrator.dt`, shortened when the next
    stop time comes first. Subclasses implement `perform_step(sim, u, t, dt, rng)`, which
    modifies `u` in place and leaves the calculator synchronised with `u.r`.
    """

    def initialise(self, integrator) -> None:
        pass

    def step(self, integrator, t_stop: float) -> None:
        h = min(integrator.dt, t_stop - integrator.t)
        self.perform_step(integrator.sim, integrator.u, integrator.t, h, integrator.rng)
        integrator.t += h
        integrator.last_step = h

    def perform_step(self, sim, u, t: float, dt: float, rng: np.random.Generator) -> None:
        raise NotImplementedError

# ------ Splitting steps ------
def step_B(sim, u, t: float, dt: float) -> None:
    # velocity kick
    u.v = u.v + dt * sim.method.acceleration(sim, u, t)

def step_A(sim, u, dt: float) -> None:
    # position drift, frozen atoms stay put
    u.r = u.r + dt * u.v * sim.mobile

def step_C(sim, u, t: float, dt: float) -> None:
    # free ring polymer evolution, frozen atoms stay put
    r_old = u.r.copy()
    r, v = u.r.copy(), u.v.copy()
    free_ring_polymer_step(r, v, sim.omega_n(t), dt, sim.quantum)
    u.r = np.where(sim.mobile, r, r_old)
    u.v = np.where(sim.mobile, v, u.v)

def update_electronics(sim, u) -> None:
    sim.calculator.update_electronics(u.r)
