# %%
import numpy as np
from numpy.typing import NDArray
from numba import njit

from mdnad.dynamics.ehrenfest import Ehrenfest
from mdnad.dynamics.method import divide_by_mass
from mdnad.dynamics.properties import surface_hopping_population
from mdnad.callbacks import DiscreteCallback
from mdnad.initcond import SingleState, Basis
from mdnad.errors import ConfigurationError

import math
from enum import Enum
from typing import Optional

class FrustratedHop(Enum):
    # leave the velocity untouched
    KEEP = "keep"
    # reverse the velocity component along the coupling vector
    REVERSE = "reverse"

    @classmethod
    def parse(cls, tag) -> "FrustratedHop":
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).lower())
        except ValueError:
            raise ConfigurationError(f"Unrecognised frustrated hop policy: {tag}. Use one of {', '.join([f.value for f in cls])}")

@njit
def hopping_probabilities(
    sigma: NDArray[np.complex128],
    active_state: int,
    v_dot_d: NDArray,
    dt: float,
) -> NDArray[np.float64]:
    # P(s -> m) = 2 Re(σ_ms v.d_sm) dt / σ_ss, clamped to [0, 1]
    nstates = sigma.shape[0]
    hopping_prob = np.zeros(nstates, dtype=np.float64)
    ss = active_state
    sigma_ss = sigma[ss, ss].real
    if sigma_ss <= 0.0:
        return hopping_prob
    for mm in range(nstates):
        if mm == ss:
            continue
        prob = 2.0 * (sigma[mm, ss] * v_dot_d[ss, mm]).real * dt / sigma_ss
        hopping_prob[mm] = min(max(prob, 0.0), 1.0)
    return hopping_prob

@njit
def select_hop(
    hopping_prob: NDArray[np.float64],
    active_state: int,
    random_number: float,
) -> int:
    # first target whose cumulative probability exceeds the draw
    cum_prob = 0.0
    for target_state in range(hopping_prob.size):
        if target_state == active_state:
            continue
        cum_prob += hopping_prob[target_state]
        if cum_prob > random_number:
            return target_state
    return active_state

def rescale_factor(
    v: NDArray[np.float64],
    d: NDArray[np.float64],
    masses: NDArray[np.float64],
    dE: float,
) -> Optional[float]:
    """Scale γ of the velocity change v -> v - γ d / m that absorbs the energy jump `dE`.

    Solves a γ²/2 - b γ + dE = 0 with a = Σ d²/m, b = Σ v.d and keeps the root of
    smallest magnitude. Returns None when no real root exists (frustrated hop).
    """
    a = np.sum(d**2 / masses)
    b = np.sum(v * d)
    if a <= 0.0:
        return None
    discriminant = b**2 - 2 * a * dE
    if discriminant < 0.0:
        return None
    return (b - math.copysign(math.sqrt(discriminant), b)) / a

def reverse_along(
    v: NDArray[np.float64],
    d: NDArray[np.float64],
) -> NDArray[np.float64]:
    dd = np.sum(d * d)
    if dd <= 0.0:
        return v.copy()
    return v - 2.0 * np.sum(v * d) / dd * d

class FSSH(Ehrenfest):
    """Fewest switches surface hopping (Tully, J. Chem. Phys. 93, 1061 (1990)).

    The nuclei move on the active adiabatic state `u.state` while the adiabatic density
    matrix is propagated exactly as in Ehrenfest dynamics. After every step one uniform
    number is drawn from the integrator's random generator to decide on a hop. Accepted
    hops rescale the velocity along the nonadiabatic coupling, frustrated hops follow
    `frustrated`. With ring polymer nuclei all decisions use the centroid and every bead
    receives the same velocity change.
    """

    def __init__(self, frustrated=FrustratedHop.KEEP):
        self.frustrated = FrustratedHop.parse(frustrated)
        self.new_state = None

    def dynamics_variables(self, sim, v, r, electronic=None, rng=None):
        u = super().dynamics_variables(sim, v, r, electronic)
        if isinstance(electronic, SingleState) and electronic.basis == Basis.ADIABATIC:
            u.state = int(electronic.state)
        else:
            rng = np.random.default_rng() if rng is None else rng
            populations = np.clip(np.diag(u.sigma).real, 0.0, None)
            u.state = int(rng.choice(sim.n_states, p=populations / populations.sum()))
        return u

    def acceleration(self, sim, u, t):
        s = u.state
        calc = sim.calculator
        if sim.is_ring_polymer:
            F = np.zeros(sim.shape)
            for ib, bead in enumerate(calc.beads):
                F[..., ib] = -bead.state_independent_derivative - bead.adiabatic_derivative[..., s, s].real
            return divide_by_mass(sim, F)
        F = -calc.state_independent_derivative - calc.adiabatic_derivative[..., s, s].real
        return divide_by_mass(sim, F)

    def potential_energy(self, sim, u, t):
        s = u.state
        calc = sim.calculator
        if sim.is_ring_polymer:
            return float(sum(bead.state_independent_potential + bead.eigenvalues[s] for bead in calc.beads))
        return calc.state_independent_potential + calc.eigenvalues[s]

    def adiabatic_population(self, sim, u):
        population = np.zeros(sim.n_states)
        population[u.state] = 1.0
        return population

    def diabatic_population(self, sim, u):
        U = sim.electronic_calculator.eigenvectors
        return surface_hopping_population(u.state, u.sigma, U)

    def callbacks(self):
        return (DiscreteCallback(self.check_hop, self.execute_hop),)

    def check_hop(self, integrator) -> bool:
        sim, u = integrator.sim, integrator.u
        calc = sim.electronic_calculator
        v_dot_d = calc.v_dot_d(sim.electronic_velocity(u.v))
        prob = hopping_probabilities(u.sigma, u.state, v_dot_d, integrator.last_step)
        self.new_state = select_hop(prob, u.state, integrator.rng.random())
        return self.new_state != u.state

    def execute_hop(self, integrator) -> None:
        sim, u = integrator.sim, integrator.u
        calc = sim.electronic_calculator
        old, new = u.state, self.new_state
        d = calc.nonadiabatic_coupling[..., old, new].real * sim.atoms.mobile[None, :]
        dE = calc.eigenvalues[new] - calc.eigenvalues[old]
        accepted = apply_hop(sim, u, d, dE, self.frustrated)
        if accepted:
            u.state = new

def apply_hop(sim, u, d, dE, frustrated) -> bool:
    """Rescale the velocities for a hop with energy change `dE` along `d`.

    Returns False for a frustrated hop, after applying the frustrated hop policy.
    """
    masses = sim.atoms.masses[None, :]
    v = sim.electronic_velocity(u.v)
    gamma = rescale_factor(v, d, masses, dE)
    if gamma is None:
        if frustrated == FrustratedHop.REVERSE:
            dv = reverse_along(v, d) - v
        else:
            return False
    else:
        dv = -gamma * d / masses
    if sim.is_ring_polymer:
        u.v = u.v + dv[..., None]
    else:
        u.v = u.v + dv
    return gamma is not None
