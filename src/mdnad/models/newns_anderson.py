# %%
import numpy as np
from numpy.typing import NDArray
from scipy.special import roots_legendre

from mdnad.models.base import DiabaticModel
from mdnad.models.potential import (
    U0, U1, grad_U0, grad_U1,
    one_electron_newns_anderson, one_electron_newns_anderson_grad,
)

import math
from dataclasses import dataclass, field
from itertools import combinations
import warnings
from typing import Optional

@dataclass
class NewnsAndersonHarmonic(DiabaticModel):
    """
    Newns-Anderson Hamiltonian with a harmonic classical degree of freedom.

    Orbital 0 is the molecular (impurity) level, orbitals 1..2*nk are the metal band
    discretised with Gauss-Legendre quadrature on [-W/2, W/2]. The nuclear coordinate is
    the position of a single atom along a single dof, `r[0, 0]`.
    """
    nk: int                   # gaussian quadrature points for the electronic bath (per half band)
    ek: NDArray[np.float64]   # electronic bath energies
    vk: NDArray[np.float64]   # system-electronic bath couplings
    mass: float = 2000.0      # harmonic oscillator mass
    omega_B: float = 2e-4     # harmonic oscillator frequency
    Gamma: float = 1e-4       # metal-molecule coupling (wide-band limit)
    Er: float = 0.00125       # reorganization energy
    dG: float = -0.0038       # electronic energy difference
    W: float = 2e-2           # electron bath bandwidth
    fermi_level: float = 0.0
    n_electrons: Optional[int] = None
    g: float = field(init=False)  # electron-vibration coupling
    V: float = field(init=False)  # system-electronic bath coupling
    n_states: int = field(init=False)

    def __post_init__(self):
        self.g = (2 * self.Er / self.mass / self.omega_B**2)**0.5
        self.V = np.sqrt(0.5 * self.Gamma / np.pi)
        self.n_states = self.ek.size + 1
        if self.n_electrons is None:
            # half filling of the band, impurity empty
            self.n_electrons = self.nk

    @classmethod
    def initialize(
        cls,
        nk: int,
        W: float = 2e-2,
        Gamma: float = 1e-4,
        mass: float = 2000.0,
        **kwargs,
    ) -> "NewnsAndersonHarmonic":
        gird_points, weights = cls.get_gauss_quad(nk)
        ek = W / 4 * (1 + gird_points)
        ek = np.concatenate((ek, -ek))
        vk = np.sqrt(W * weights) / 2
        vk = np.concatenate((vk, vk))

        argsort = np.argsort(ek)
        ek = ek[argsort]
        vk = vk[argsort]
        return cls(nk, ek, vk, mass=mass, W=W, Gamma=Gamma, **kwargs)

    @staticmethod
    def get_gauss_quad(nk: int):
        gird_points, weights = roots_legendre(nk)
        return gird_points, weights

    def states(self, n_electrons: Optional[int] = None) -> NDArray[np.int64]:
        """All occupation lists with `n_electrons` electrons in `n_states` orbitals."""
        ne = self.n_electrons if n_electrons is None else n_electrons
        if math.comb(self.n_states, ne) > 10000:
            warnings.warn("Number of many-electron states is large, consider reducing the number of electrons.")
        return np.array(list(combinations(range(self.n_states), ne)), dtype=np.int64)

    def impurity_level(self, r: NDArray[np.float64]) -> float:
        R = r[0, 0]
        return U1(R, self.g, self.mass, self.omega_B, self.dG) - U0(R, self.mass, self.omega_B)

    def state_independent_potential(self, r: NDArray[np.float64]) -> float:
        return U0(r[0, 0], self.mass, self.omega_B)

    def state_independent_derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        dU0 = np.zeros_like(r, dtype=np.float64)
        dU0[0, 0] = grad_U0(r[0, 0], self.mass, self.omega_B)
        return dU0

    def potential(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        R = r[0, 0]
        u0 = U0(R, self.mass, self.omega_B)
        u1 = U1(R, self.g, self.mass, self.omega_B, self.dG)
        return one_electron_newns_anderson(u0, u1, self.V, self.ek, self.vk)

    def derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        R = r[0, 0]
        dU0 = grad_U0(R, self.mass, self.omega_B)
        dU1 = grad_U1(R, self.g, self.mass, self.omega_B)
        D = np.zeros(r.shape + (self.n_states, self.n_states))
        D[0, 0] = one_electron_newns_anderson_grad(dU0, dU1, self.n_states)
        return D
