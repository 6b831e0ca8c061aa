# %%
import numpy as np
from numpy.typing import NDArray

from mdnad.dynamics.method import DynamicsMethod, divide_by_mass, initial_density_matrix
from mdnad.utils import propagate_density_matrix, propagate_wavefunction, liouville_adiabatic, schrodinger_adiabatic
from mdnad.integrators import VerletwithElectronics, BCBwithElectronics
from mdnad.errors import ConfigurationError

from typing import Optional, Sequence

class Ehrenfest(DynamicsMethod):
    """Mean-field dynamics with an adiabatic density matrix.

    The nuclei feel the population weighted adiabatic force, -Tr(σ W)/m, and the density
    matrix follows dσ/dt = -i[V_eff, σ] with V_eff = diag(E) - i v.d. With ring polymer
    nuclei, σ lives in the centroid eigenbasis and moves with the centroid velocity while
    each bead feels the force of σ through its own diabatic derivative.
    """
    model_requirement = "diabatic"

    def dynamics_variables(self, sim, v, r, electronic=None, rng=None):
        if electronic is None:
            raise ConfigurationError(f"{type(self).__name__} needs an initial electronic distribution.")
        u = super().dynamics_variables(sim, v, r)
        u.sigma = initial_density_matrix(sim, u.r, electronic)
        return u

    def density(self, sim, u) -> NDArray[np.complex128]:
        return u.sigma

    def acceleration(self, sim, u, t):
        calc = sim.calculator
        rho = self.density(sim, u)
        if sim.is_ring_polymer:
            U = sim.electronic_calculator.eigenvectors
            rho_diabatic = U @ rho @ U.conj().T
            F = np.zeros(sim.shape)
            for ib, bead in enumerate(calc.beads):
                F[..., ib] = -bead.state_independent_derivative - np.einsum("nm,abmn->ab", rho_diabatic, bead.derivative).real
            return divide_by_mass(sim, F)
        F = -calc.state_independent_derivative - np.einsum("nm,abmn->ab", rho, calc.adiabatic_derivative).real
        return divide_by_mass(sim, F)

    def potential_energy(self, sim, u, t):
        calc = sim.calculator
        rho = self.density(sim, u)
        if sim.is_ring_polymer:
            U = sim.electronic_calculator.eigenvectors
            rho_diabatic = U @ rho @ U.conj().T
            return float(sum(
                bead.state_independent_potential + np.trace(rho_diabatic @ bead.potential).real
                for bead in calc.beads
            ))
        return calc.state_independent_potential + np.dot(np.diag(rho).real, calc.eigenvalues)

    def propagate_electronics(self, sim, u, dt):
        calc = sim.electronic_calculator
        V = calc.effective_hamiltonian(sim.electronic_velocity(u.v))
        u.sigma = propagate_density_matrix(u.sigma, V, dt)

    def electronic_derivative(self, sim, u):
        calc = sim.electronic_calculator
        v_dot_d = calc.v_dot_d(sim.electronic_velocity(u.v))
        return {"sigma": liouville_adiabatic(calc.eigenvalues, v_dot_d, u.sigma)}

    def adiabatic_population(self, sim, u):
        return np.diag(self.density(sim, u)).real.copy()

    def diabatic_population(self, sim, u):
        U = sim.electronic_calculator.eigenvectors
        return np.diag(U @ self.density(sim, u) @ U.conj().T).real.copy()

    def default_algorithm(self, sim):
        return BCBwithElectronics() if sim.is_ring_polymer else VerletwithElectronics()

class EhrenfestNA(Ehrenfest):
    """Ehrenfest dynamics of independent electrons for many-orbital models.

    `u.sigma` holds one adiabatic orbital wavefunction per electron, shape
    (n_states, n_electrons), and the mean-field density is ψψ†.
    """

    def dynamics_variables(self, sim, v, r, electronic: Optional[Sequence[int]] = None, rng=None):
        u = DynamicsMethod.dynamics_variables(self, sim, v, r)
        sim.calculator.update_electronics(u.r)
        ne = sim.model.n_electrons
        occupied = np.arange(ne) if electronic is None else np.asarray(electronic, dtype=np.int64)
        if occupied.size != ne:
            raise ConfigurationError(f"Got {occupied.size} occupied orbitals for {ne} electrons.")
        psi = np.zeros((sim.n_states, ne), dtype=np.complex128)
        psi[occupied, np.arange(ne)] = 1.0
        u.sigma = psi
        return u

    def density(self, sim, u):
        return u.sigma @ u.sigma.conj().T

    def propagate_electronics(self, sim, u, dt):
        calc = sim.electronic_calculator
        V = calc.effective_hamiltonian(sim.electronic_velocity(u.v))
        u.sigma = propagate_wavefunction(u.sigma, V, dt)

    def electronic_derivative(self, sim, u):
        calc = sim.electronic_calculator
        v_dot_d = calc.v_dot_d(sim.electronic_velocity(u.v))
        return {"sigma": schrodinger_adiabatic(calc.eigenvalues, v_dot_d, u.sigma)}
