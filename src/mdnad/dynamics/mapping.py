# %%
import numpy as np
from numpy.typing import NDArray

from mdnad.dynamics.method import DynamicsMethod, divide_by_mass
from mdnad.initcond import SingleState, Basis
from mdnad.integrators import MInt, RingPolymerMInt
from mdnad.errors import ConfigurationError

from typing import Optional

def spin_mapping_zero_point(n_states: int) -> float:
    # γ = 2/N (sqrt(N+1) - 1)
    return 2 / n_states * (np.sqrt(n_states + 1) - 1)

def sample_mapping_variables(
    state: int,
    n_states: int,
    gamma: float,
    rng: np.random.Generator,
):
    """Mapping variables on the spin sphere of `state`: radius sqrt(2 + γ) for the
    occupied state, sqrt(γ) otherwise, with uniformly random phases.
    """
    radius = np.full(n_states, np.sqrt(gamma))
    radius[state] = np.sqrt(2 + gamma)
    theta = rng.uniform(0, 2 * np.pi, n_states)
    return radius * np.cos(theta), radius * np.sin(theta)

def mapping_force(
    q: NDArray[np.float64],
    p: NDArray[np.float64],
    derivative: NDArray[np.float64],
    state_independent_derivative: NDArray[np.float64],
    gamma: float,
) -> NDArray[np.float64]:
    F = -state_independent_derivative
    F = F - 0.5 * (np.einsum("n,abnm,m->ab", q, derivative, q) + np.einsum("n,abnm,m->ab", p, derivative, p))
    F = F + 0.5 * gamma * np.trace(derivative, axis1=-2, axis2=-1)
    return F

def mapping_energy(
    q: NDArray[np.float64],
    p: NDArray[np.float64],
    potential: NDArray[np.float64],
    state_independent_potential: float,
    gamma: float,
) -> float:
    return state_independent_potential + 0.5 * (q @ potential @ q + p @ potential @ p) - 0.5 * gamma * np.trace(potential)

class SpinMappingW(DynamicsMethod):
    """Spin mapping dynamics with the W-representation zero point energy γ.

    The electronic state is carried by the real diabatic mapping variables `u.mapping_q`
    and `u.mapping_p` and the nuclei feel the mapping Hamiltonian
    U0 + 1/2 Σ V_nm (q_n q_m + p_n p_m) - γ/2 Tr V.

    Reference:
        Runeson, Richardson, J. Chem. Phys. 152, 084110 (2020)
    """
    model_requirement = "diabatic"

    def __init__(self, gamma: Optional[float] = None):
        self.gamma = gamma

    def zero_point(self, sim) -> float:
        if self.gamma is not None:
            return self.gamma
        return spin_mapping_zero_point(sim.n_states)

    def dynamics_variables(self, sim, v, r, electronic=None, rng=None):
        if sim.is_ring_polymer:
            raise ConfigurationError(f"{type(self).__name__} is only available for classical nuclei, use NRPMD.")
        if not isinstance(electronic, SingleState):
            raise ConfigurationError(f"{type(self).__name__} needs a SingleState to sample the mapping variables, got {electronic!r}.")
        rng = np.random.default_rng() if rng is None else rng
        u = super().dynamics_variables(sim, v, r)
        q, p = sample_mapping_variables(electronic.state, sim.n_states, self.zero_point(sim), rng)
        if electronic.basis == Basis.ADIABATIC:
            sim.calculator.update_electronics(u.r)
            U = np.real(sim.calculator.eigenvectors)
            q, p = U @ q, U @ p
        u.mapping_q, u.mapping_p = q, p
        return u

    def acceleration(self, sim, u, t):
        calc = sim.calculator
        F = mapping_force(
            u.mapping_q, u.mapping_p, np.real(calc.derivative),
            calc.state_independent_derivative, self.zero_point(sim),
        )
        return divide_by_mass(sim, F)

    def potential_energy(self, sim, u, t):
        calc = sim.calculator
        return mapping_energy(
            u.mapping_q, u.mapping_p, np.real(calc.potential),
            calc.state_independent_potential, self.zero_point(sim),
        )

    def electronic_derivative(self, sim, u):
        V = np.real(sim.calculator.potential)
        return {"mapping_q": V @ u.mapping_p, "mapping_p": -V @ u.mapping_q}

    def diabatic_population(self, sim, u):
        return 0.5 * (u.mapping_q**2 + u.mapping_p**2 - self.zero_point(sim))

    def adiabatic_population(self, sim, u):
        U = np.real(sim.electronic_calculator.eigenvectors)
        zeta = U.T @ (u.mapping_q + 1j * u.mapping_p)
        return 0.5 * (np.abs(zeta)**2 - self.zero_point(sim))

    def default_algorithm(self, sim):
        return MInt()

class NRPMD(SpinMappingW):
    """Nonadiabatic ring polymer molecular dynamics with Meyer-Miller-Stock-Thoss
    mapping variables, one set per bead, shape (n_beads, n_states).

    Reference:
        Richardson, Thoss, J. Chem. Phys. 139, 031102 (2013)
    """

    def __init__(self):
        super().__init__(gamma=1.0)

    def dynamics_variables(self, sim, v, r, electronic=None, rng=None):
        if not sim.is_ring_polymer:
            raise ConfigurationError("NRPMD needs a RingPolymerSimulation, use SpinMappingW instead.")
        if not isinstance(electronic, SingleState):
            raise ConfigurationError(f"NRPMD needs a SingleState to sample the mapping variables, got {electronic!r}.")
        rng = np.random.default_rng() if rng is None else rng
        u = DynamicsMethod.dynamics_variables(self, sim, v, r)
        sim.calculator.update_electronics(u.r)
        q = np.zeros((sim.n_beads, sim.n_states))
        p = np.zeros((sim.n_beads, sim.n_states))
        for ib, bead in enumerate(sim.calculator.beads):
            q[ib], p[ib] = sample_mapping_variables(electronic.state, sim.n_states, self.zero_point(sim), rng)
            if electronic.basis == Basis.ADIABATIC:
                U = np.real(bead.eigenvectors)
                q[ib], p[ib] = U @ q[ib], U @ p[ib]
        u.mapping_q, u.mapping_p = q, p
        return u

    def acceleration(self, sim, u, t):
        gamma = self.zero_point(sim)
        F = np.zeros(sim.shape)
        for ib, bead in enumerate(sim.calculator.beads):
            F[..., ib] = mapping_force(
                u.mapping_q[ib], u.mapping_p[ib], np.real(bead.derivative),
                bead.state_independent_derivative, gamma,
            )
        return divide_by_mass(sim, F)

    def potential_energy(self, sim, u, t):
        gamma = self.zero_point(sim)
        return float(sum(
            mapping_energy(u.mapping_q[ib], u.mapping_p[ib], np.real(bead.potential), bead.state_independent_potential, gamma)
            for ib, bead in enumerate(sim.calculator.beads)
        ))

    def electronic_derivative(self, sim, u):
        V = np.real(sim.calculator.potential)   # (n_beads, n, n)
        return {
            "mapping_q": np.einsum("bnm,bm->bn", V, u.mapping_p),
            "mapping_p": -np.einsum("bnm,bm->bn", V, u.mapping_q),
        }

    def diabatic_population(self, sim, u):
        return np.mean(0.5 * (u.mapping_q**2 + u.mapping_p**2 - self.zero_point(sim)), axis=0)

    def adiabatic_population(self, sim, u):
        U = np.real(sim.electronic_calculator.eigenvectors)
        zeta = (u.mapping_q + 1j * u.mapping_p) @ U
        return np.mean(0.5 * (np.abs(zeta)**2 - self.zero_point(sim)), axis=0)

    def default_algorithm(self, sim):
        return RingPolymerMInt()
