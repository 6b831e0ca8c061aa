# %%
import numpy as np
from numpy.typing import NDArray

from mdnad.integrators.steps import FixedStepAlgorithm, step_A, step_B, update_electronics

class MDEF_BAOAB(FixedStepAlgorithm):
    """BAOAB Langevin integrator for scalar or tensorial friction.

    The friction is taken from `sim.method.friction(sim, u, t)` at the midpoint of the
    step: a float gives ordinary Langevin dynamics, an (N, N) matrix over the flattened
    (n_dofs, n_atoms) coordinates gives molecular dynamics with electronic friction.

    Reference:
        Leimkuhler, Matthews, Appl. Math. Res. Express 2013, 34 (2013)
    """

    def perform_step(self, sim, u, t, dt, rng):
        step_B(sim, u, t, dt / 2)
        step_A(sim, u, dt / 2)
        friction = sim.method.friction(sim, u, t + dt / 2)
        kT = sim.temperature(t + dt / 2)
        if np.ndim(friction) == 0:
            v = scalar_O_step(u.v, sim.masses, float(friction), kT, dt, rng)
        else:
            v = tensor_O_step(u.v, sim.masses, np.asarray(friction), kT, dt, rng)
        u.v = np.where(sim.mobile, v, u.v)
        step_A(sim, u, dt / 2)
        update_electronics(sim, u)
        step_B(sim, u, t + dt, dt / 2)

def scalar_O_step(
    v: NDArray[np.float64],
    masses: NDArray[np.float64],
    gamma: float,
    kT: float,
    dt: float,
    rng: np.random.Generator,
) -> NDArray[np.float64]:
    c1 = np.exp(-gamma * dt)
    c2 = np.sqrt(1 - c1**2)
    sigma = np.sqrt(kT / masses)
    return c1 * v + c2 * sigma * rng.standard_normal(v.shape)

def tensor_O_step(
    v: NDArray[np.float64],
    masses: NDArray[np.float64],
    friction: NDArray[np.float64],
    kT: float,
    dt: float,
    rng: np.random.Generator,
) -> NDArray[np.float64]:
    # exact Ornstein-Uhlenbeck step in the eigenbasis of M^-1/2 Λ M^-1/2
    sqrtm = np.sqrt(np.broadcast_to(masses, v.shape)).ravel()
    gamma = friction / np.outer(sqrtm, sqrtm)
    gamma_k, Q = np.linalg.eigh(0.5 * (gamma + gamma.T))
    gamma_k = np.clip(gamma_k, 0.0, None)

    c1 = np.exp(-gamma_k * dt)
    c2 = np.sqrt(1 - c1**2)
    mode = Q.T @ (sqrtm * v.ravel())
    mode = c1 * mode + c2 * np.sqrt(kT) * rng.standard_normal(mode.shape)
    return ((Q @ mode) / sqrtm).reshape(v.shape)
