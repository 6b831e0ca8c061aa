# %%
import numpy as np
from numpy.typing import NDArray

from mdnad.dynamics.method import DynamicsMethod, divide_by_mass
from mdnad.dynamics.fssh import FrustratedHop, apply_hop
from mdnad.dynamics.iesh_utils import iesh_hopping_probabilities, select_iesh_hop
from mdnad.dynamics.properties import iesh_population
from mdnad.callbacks import DiscreteCallback
from mdnad.initcond import occupation_vector, sample_occupations
from mdnad.utils import propagate_wavefunction, schrodinger_adiabatic
from mdnad.integrators import VerletwithElectronics, BCBwithElectronics
from mdnad.errors import ConfigurationError, IntegrationError

import logging
from typing import Optional, Sequence, Union

logger = logging.getLogger(__name__)

class IESH(DynamicsMethod):
    """Independent electron surface hopping for many-orbital models.

    `u.sigma` holds one adiabatic orbital wavefunction per electron, shape
    (n_orbitals, n_electrons), and `u.state` the 0/1 occupations of the active Slater
    determinant. Hops move a single electron at a time, the velocities are rescaled along
    the coupling of the two orbitals involved. Nuclear forces are those of the occupied
    orbitals plus the state independent part of the model.
    """
    model_requirement = "diabatic"

    def __init__(self, frustrated=FrustratedHop.KEEP):
        self.frustrated = FrustratedHop.parse(frustrated)
        self.hop = None

    def dynamics_variables(
        self,
        sim,
        v,
        r,
        electronic: Optional[Union[Sequence[int], NDArray[np.complex128]]] = None,
        rng=None,
    ):
        """`electronic` is either the list of occupied adiabatic orbitals (default: the
        lowest ones) or a diabatic (n_orbitals, n_electrons) block of orbital wavefunctions,
        in which case the occupations are sampled from the adiabatic amplitudes.
        """
        u = super().dynamics_variables(sim, v, r)
        ne = getattr(sim.model, "n_electrons", None)
        if ne is None:
            raise ConfigurationError(f"IESH needs a model with n_electrons, got {type(sim.model).__name__}.")
        sim.calculator.update_electronics(u.r)
        calc = sim.electronic_calculator
        no = sim.n_states

        if electronic is not None and np.ndim(electronic) == 2:
            psi = np.asarray(electronic, dtype=np.complex128)
            if psi.shape != (no, ne):
                raise ConfigurationError(f"Orbital wavefunctions must have shape {(no, ne)}, got {psi.shape}.")
            rng = np.random.default_rng() if rng is None else rng
            u.sigma = calc.eigenvectors.conj().T @ psi
            u.state = sample_occupations(u.sigma, rng)
            return u

        occupied = np.arange(ne) if electronic is None else np.asarray(electronic, dtype=np.int64)
        if occupied.size != ne:
            raise ConfigurationError(f"Got {occupied.size} occupied orbitals for {ne} electrons.")
        u.state = occupation_vector(no, occupied)
        psi = np.zeros((no, ne), dtype=np.complex128)
        psi[occupied, np.arange(ne)] = 1.0
        u.sigma = psi
        return u

    def acceleration(self, sim, u, t):
        calc = sim.calculator
        if sim.is_ring_polymer:
            F = np.zeros(sim.shape)
            for ib, bead in enumerate(calc.beads):
                W_diag = np.diagonal(bead.adiabatic_derivative, axis1=-2, axis2=-1).real
                F[..., ib] = -bead.state_independent_derivative - W_diag @ u.state
            return divide_by_mass(sim, F)
        W_diag = np.diagonal(calc.adiabatic_derivative, axis1=-2, axis2=-1).real
        F = -calc.state_independent_derivative - W_diag @ u.state
        return divide_by_mass(sim, F)

    def potential_energy(self, sim, u, t):
        calc = sim.calculator
        if sim.is_ring_polymer:
            return float(sum(bead.state_independent_potential + bead.eigenvalues @ u.state for bead in calc.beads))
        return calc.state_independent_potential + calc.eigenvalues @ u.state

    def propagate_electronics(self, sim, u, dt):
        calc = sim.electronic_calculator
        V = calc.effective_hamiltonian(sim.electronic_velocity(u.v))
        u.sigma = propagate_wavefunction(u.sigma, V, dt)

    def electronic_derivative(self, sim, u):
        calc = sim.electronic_calculator
        v_dot_d = calc.v_dot_d(sim.electronic_velocity(u.v))
        return {"sigma": schrodinger_adiabatic(calc.eigenvalues, v_dot_d, u.sigma)}

    def adiabatic_population(self, sim, u):
        return u.state.astype(np.float64)

    def diabatic_population(self, sim, u):
        U = sim.electronic_calculator.eigenvectors
        return iesh_population(u.sigma, U, np.flatnonzero(u.state))

    def callbacks(self):
        return (DiscreteCallback(self.check_hop, self.execute_hop),)

    def check_hop(self, integrator) -> bool:
        sim, u = integrator.sim, integrator.u
        calc = sim.electronic_calculator
        v_dot_d = calc.v_dot_d(sim.electronic_velocity(u.v))
        occupied = np.flatnonzero(u.state)
        prob = iesh_hopping_probabilities(u.sigma, occupied, v_dot_d, integrator.last_step)
        self.hop = select_iesh_hop(prob, u.state, integrator.rng.random())
        return self.hop[0] >= 0

    def execute_hop(self, integrator) -> None:
        sim, u = integrator.sim, integrator.u
        calc = sim.electronic_calculator
        l, m = self.hop
        d = calc.nonadiabatic_coupling[..., l, m].real * sim.atoms.mobile[None, :]
        dE = calc.eigenvalues[m] - calc.eigenvalues[l]
        if not apply_hop(sim, u, d, dE, self.frustrated):
            return
        new_state = u.state.copy()
        new_state[l] = 0
        new_state[m] = 1
        if new_state.sum() != u.sigma.shape[1]:
            raise IntegrationError(f"Hop {l} -> {m} changed the number of electrons to {new_state.sum()}.")
        logger.debug("t = %.2f: electron hops from orbital %d to %d", integrator.t, l, m)
        u.state = new_state

    def default_algorithm(self, sim):
        return BCBwithElectronics() if sim.is_ring_polymer else VerletwithElectronics()
