# %%
import numpy as np
from numpy.typing import NDArray

from mdnad.errors import ConfigurationError

from enum import Enum
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

# initial conditions for the classical dof

def boltzmann_sampling(
    n_samples: int,
    kT: float,
    mass: float,
    Omega_B: float,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    rng = np.random.default_rng() if rng is None else rng
    sigma_R = np.sqrt(kT / (mass * Omega_B**2))
    sigma_V = np.sqrt(kT / mass)
    R_list = rng.normal(0, sigma_R, n_samples)
    V_list = rng.normal(0, sigma_V, n_samples)
    return R_list, V_list

def wigner_sampling(
    n_samples: int,
    kT: float,
    mass: float,
    Omega_B: float,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    rng = np.random.default_rng() if rng is None else rng
    beta = 1 / kT

    sigma_dimless = np.sqrt(0.5 / np.tanh(0.5 * beta * Omega_B))
    dimless_to_V = np.sqrt(Omega_B / mass)
    dimless_to_R = np.sqrt(1.0 / (mass * Omega_B))

    sigma_V = sigma_dimless * dimless_to_V
    sigma_R = sigma_dimless * dimless_to_R
    R_list = rng.normal(0, sigma_R, n_samples)
    V_list = rng.normal(0, sigma_V, n_samples)
    return R_list, V_list

# initial conditions for the electronic dof

class Basis(Enum):
    DIABATIC = "diabatic"
    ADIABATIC = "adiabatic"

    @classmethod
    def parse(cls, tag) -> "Basis":
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).lower())
        except ValueError:
            raise ConfigurationError(f"Unrecognised basis: {tag}. Use one of {', '.join([b.value for b in cls])}")

@dataclass
class SingleState:
    state: int
    basis: Basis = Basis.DIABATIC

    def __post_init__(self):
        self.basis = Basis.parse(self.basis)

@dataclass
class ElectronicPopulation:
    populations: NDArray[np.float64]
    basis: Basis = Basis.DIABATIC

    def __post_init__(self):
        self.basis = Basis.parse(self.basis)
        self.populations = np.asarray(self.populations, dtype=np.float64)
        if np.any(self.populations < 0):
            raise ConfigurationError("Electronic populations must be non-negative.")

@dataclass
class DensityMatrix:
    matrix: NDArray[np.complex128]
    basis: Basis = Basis.DIABATIC

    def __post_init__(self):
        self.basis = Basis.parse(self.basis)
        self.matrix = np.asarray(self.matrix, dtype=np.complex128)
        if self.matrix.ndim != 2 or self.matrix.shape[0] != self.matrix.shape[1]:
            raise ConfigurationError(f"Density matrix must be square, got shape {self.matrix.shape}.")
        if not np.allclose(self.matrix, self.matrix.conj().T):
            raise ConfigurationError("Density matrix must be Hermitian.")

ElectronicDistribution = Union[SingleState, ElectronicPopulation, DensityMatrix]

def density_matrix(
    distribution: ElectronicDistribution,
    n_states: int,
) -> NDArray[np.complex128]:
    """Density matrix of `distribution`, in the distribution's own basis."""
    rho = np.zeros((n_states, n_states), dtype=np.complex128)
    if isinstance(distribution, SingleState):
        if not 0 <= distribution.state < n_states:
            raise ConfigurationError(f"State {distribution.state} out of range for a model with {n_states} states.")
        rho[distribution.state, distribution.state] = 1.0
    elif isinstance(distribution, ElectronicPopulation):
        if distribution.populations.size != n_states:
            raise ConfigurationError(f"Got {distribution.populations.size} populations for a model with {n_states} states.")
        rho[np.diag_indices(n_states)] = distribution.populations
    elif isinstance(distribution, DensityMatrix):
        if distribution.matrix.shape[0] != n_states:
            raise ConfigurationError(f"Got a {distribution.matrix.shape[0]}-state density matrix for a model with {n_states} states.")
        rho[:] = distribution.matrix
    else:
        raise ConfigurationError(f"Unrecognised electronic distribution: {distribution!r}")
    return rho

def transform_density(
    rho: NDArray[np.complex128],
    U: NDArray,
    direction: str,
) -> NDArray[np.complex128]:
    if direction == "to_adiabatic":
        return U.conj().T @ rho @ U
    elif direction == "to_diabatic":
        return U @ rho @ U.conj().T
    raise ConfigurationError(f"Unrecognised transformation direction: {direction}. Use 'to_adiabatic' or 'to_diabatic'.")

def initialise_adiabatic_density_matrix(
    distribution: ElectronicDistribution,
    calculator,
    r: NDArray[np.float64],
) -> NDArray[np.complex128]:
    rho = density_matrix(distribution, calculator.n_states)
    if distribution.basis == Basis.DIABATIC:
        calculator.update_electronics(r)
        rho = transform_density(rho, calculator.eigenvectors, "to_adiabatic")
    return rho

def occupation_vector(
    n_states: int,
    occupied: Sequence[int],
) -> NDArray[np.int64]:
    occupied = np.asarray(occupied, dtype=np.int64)
    if np.unique(occupied).size != occupied.size:
        raise ConfigurationError(f"An orbital can hold a single electron, got {occupied.tolist()}.")
    if np.any(occupied < 0) or np.any(occupied >= n_states):
        raise ConfigurationError(f"Occupied orbitals {occupied.tolist()} out of range for {n_states} orbitals.")
    state = np.zeros(n_states, dtype=np.int64)
    state[occupied] = 1
    return state

def sample_occupations(
    psi: NDArray[np.complex128],
    rng: np.random.Generator,
) -> NDArray[np.int64]:
    """Draw one orbital per electron from |psi|^2, never placing two electrons together."""
    no, ne = psi.shape
    occupied = np.full(ne, -1, dtype=np.int64)
    for ie in range(ne):
        prob_i = np.abs(psi[:, ie])**2
        prob_i[occupied[:ie]] = 0.0
        if prob_i.sum() <= 0.0:
            # the electron's amplitude sits on taken orbitals, fall back to any free one
            prob_i = np.ones(no)
            prob_i[occupied[:ie]] = 0.0
        occupied[ie] = rng.choice(no, p=prob_i / prob_i.sum())
    return occupation_vector(no, occupied)
