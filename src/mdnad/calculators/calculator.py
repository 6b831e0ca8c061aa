# %%
import numpy as np
from numpy.typing import NDArray
import scipy.linalg as LA

from mdnad.models.base import is_diabatic, has_friction
from mdnad.calculators.utils import align_phase, evaluate_nonadiabatic_couplings, transform_to_adiabatic
from mdnad.calculators.friction import (
    FrictionKernel, fermi_level,
    friction_gaussian_broadening, friction_off_diagonal_gaussian_broadening,
    friction_direct_quadrature, friction_wideband,
)
from mdnad.ring_polymer import centroid
from mdnad.errors import DegenerateStatesWarning

import warnings
from typing import List, Optional, Union

class AdiabaticCalculator:
    """Caches the energy and gradient of a single-surface model at the current position."""

    def __init__(self, model):
        self.model = model
        self.position: Optional[NDArray[np.float64]] = None
        self.potential: float = 0.0
        self.derivative: Optional[NDArray[np.float64]] = None

    @property
    def n_states(self) -> int:
        return 1

    def evaluate_potential(self, r: NDArray[np.float64]) -> None:
        self.potential = float(self.model.potential(r))

    def evaluate_derivative(self, r: NDArray[np.float64]) -> None:
        self.derivative = np.asarray(self.model.derivative(r), dtype=np.float64)

    def update_electronics(self, r: NDArray[np.float64]) -> None:
        self.position = np.array(r, dtype=np.float64)
        self.evaluate_potential(r)
        self.evaluate_derivative(r)

class DiabaticCalculator:
    """Electronic structure of a diabatic model at the current position.

    `update_electronics` is the only entry point used by the dynamics. It evaluates the
    diabatic potential and derivative, diagonalises the potential, carries the eigenvectors
    over continuously from the previous call, rotates the derivative into the adiabatic
    basis and finally builds the nonadiabatic couplings

        d_ij = <i|∇j> = W_ij / (E_j - E_i),   W = U' ∇V U,

    which are anti-Hermitian (antisymmetric for real models) with a zero diagonal.
    Energy gaps below `gap_floor` are clamped and reported with a DegenerateStatesWarning.
    """

    def __init__(self, model, gap_floor: float = 1e-8):
        self.model = model
        self.gap_floor = gap_floor
        n = model.n_states
        self.position: Optional[NDArray[np.float64]] = None
        self.potential: NDArray = np.zeros((n, n))
        self.derivative: Optional[NDArray] = None
        self.state_independent_potential: float = 0.0
        self.state_independent_derivative: Optional[NDArray[np.float64]] = None
        self.eigenvalues: NDArray[np.float64] = np.zeros(n)
        # the identity fixes the sign convention of the very first diagonalisation
        self.eigenvectors: NDArray = np.eye(n)
        self.adiabatic_derivative: Optional[NDArray] = None
        self.nonadiabatic_coupling: Optional[NDArray] = None
        self.n_degenerate: int = 0

    @property
    def n_states(self) -> int:
        return self.model.n_states

    def evaluate_potential(self, r: NDArray[np.float64]) -> None:
        self.potential = np.asarray(self.model.potential(r))
        self.state_independent_potential = float(self.model.state_independent_potential(r))

    def evaluate_derivative(self, r: NDArray[np.float64]) -> None:
        self.derivative = np.asarray(self.model.derivative(r))
        self.state_independent_derivative = np.asarray(self.model.state_independent_derivative(r), dtype=np.float64)

    def eigen(self) -> None:
        evals, evecs = LA.eigh(self.potential)
        self.eigenvectors = align_phase(self.eigenvectors, evecs)
        self.eigenvalues = evals

    def transform_derivative(self) -> None:
        self.adiabatic_derivative = transform_to_adiabatic(self.derivative, self.eigenvectors)

    def evaluate_nonadiabatic_coupling(self) -> None:
        d, n_degenerate = evaluate_nonadiabatic_couplings(
            np.ascontiguousarray(self.adiabatic_derivative), self.eigenvalues, self.gap_floor
        )
        self.nonadiabatic_coupling = d
        self.n_degenerate = n_degenerate
        if n_degenerate > 0:
            warnings.warn(
                f"{n_degenerate} nearly degenerate pair(s) of adiabatic states, gap clamped to {self.gap_floor:.1e}",
                DegenerateStatesWarning,
            )

    def update_electronics(self, r: NDArray[np.float64]) -> None:
        self.position = np.array(r, dtype=np.float64)
        self.evaluate_potential(r)
        self.evaluate_derivative(r)
        self.eigen()
        self.transform_derivative()
        self.evaluate_nonadiabatic_coupling()

    def v_dot_d(self, v: NDArray[np.float64]) -> NDArray:
        return np.tensordot(v, self.nonadiabatic_coupling, axes=v.ndim)

    def effective_hamiltonian(self, v: NDArray[np.float64]) -> NDArray[np.complex128]:
        # V_eff = diag(E) - i v.d, Hermitian since d is anti-Hermitian
        return np.diag(self.eigenvalues).astype(np.complex128) - 1.0j * self.v_dot_d(v)

class FrictionCalculator(AdiabaticCalculator):
    """Adiabatic calculator for models that supply their own friction tensor."""

    def __init__(self, model):
        super().__init__(model)
        self.friction: Optional[NDArray[np.float64]] = None

    def evaluate_friction(self, r: NDArray[np.float64], kT: float = 0.0) -> None:
        self.friction = np.asarray(self.model.friction(r), dtype=np.float64)

class DiabaticFrictionCalculator(DiabaticCalculator):
    """Diabatic calculator that also builds the electronic friction tensor of the
    Fermi-Dirac occupied adiabatic orbitals with one of the broadening kernels.
    Requires `update_electronics` to have been called at the current position.
    """

    def __init__(
        self,
        model,
        kernel: Union[FrictionKernel, str] = FrictionKernel.GB,
        width: Optional[float] = None,
        fermi_level: Optional[float] = None,
        gap_floor: float = 1e-8,
    ):
        super().__init__(model, gap_floor=gap_floor)
        self.kernel = FrictionKernel.parse(kernel)
        self.width = width
        self._fermi_level = fermi_level
        self.friction: Optional[NDArray[np.float64]] = None

    def fermi_level(self, kT: float) -> float:
        if self._fermi_level is not None:
            return self._fermi_level
        mu = getattr(self.model, "fermi_level", None)
        if mu is not None:
            return mu
        return fermi_level(self.eigenvalues, self.model.n_electrons, kT)

    def broadening(self) -> float:
        if self.width is not None:
            return self.width
        # two level spacings of the discretised band
        return 2.0 * np.ptp(self.eigenvalues) / (self.eigenvalues.size - 1)

    def density_of_states(self) -> NDArray[np.float64]:
        # local density of orbitals from the spacing of the sorted eigenvalues
        spacing = np.gradient(self.eigenvalues)
        return 1.0 / np.maximum(spacing, self.gap_floor)

    def evaluate_friction(self, r: NDArray[np.float64], kT: float = 0.0) -> None:
        mu = self.fermi_level(kT)
        N = self.derivative.shape[0] * self.derivative.shape[1]
        ns = self.n_states
        dH = np.ascontiguousarray(self.adiabatic_derivative.reshape(N, ns, ns))
        friction = np.zeros((N, N))

        if self.kernel == FrictionKernel.WB:
            friction[:] = self._wideband_friction(mu, kT)
        else:
            sigma = self.broadening()
            rho = self.density_of_states()
            for I in range(N):
                for J in range(N):
                    if self.kernel == FrictionKernel.GB:
                        friction[I, J] = friction_gaussian_broadening(dH[I], dH[J], self.eigenvalues, mu, kT, sigma)
                    elif self.kernel == FrictionKernel.ONGB:
                        friction[I, J] = friction_off_diagonal_gaussian_broadening(dH[I], dH[J], self.eigenvalues, mu, kT, sigma)
                    else:
                        friction[I, J] = friction_direct_quadrature(dH[I], dH[J], self.eigenvalues, mu, kT, rho)
        self.friction = friction

    def _wideband_friction(self, mu: float, kT: float) -> NDArray[np.float64]:
        # impurity level is the first diabatic state, the band couplings do not depend on r
        h = self.model.impurity_level(self.position)
        dh = self.derivative[..., 0, 0].real.reshape(-1)
        Gamma = self.model.Gamma
        half_band = 0.5 * getattr(self.model, "W", np.ptp(self.eigenvalues))
        prefactor = friction_wideband(h, 1.0, Gamma, 0.0, -half_band, half_band, mu, kT)
        return prefactor * np.outer(dh, dh)

class RingPolymerCalculator:
    """One calculator per bead plus a separate calculator at the centroid.

    Positions carry the bead index last, (n_dofs, n_atoms, n_beads). The stacked
    per-bead properties carry it first.
    """

    def __init__(self, model, n_beads: int, **kwargs):
        self.model = model
        self.n_beads = n_beads
        make = DiabaticCalculator if is_diabatic(model) else AdiabaticCalculator
        self.beads: List = [make(model, **kwargs) for _ in range(n_beads)]
        self.centroid = make(model, **kwargs)

    @property
    def n_states(self) -> int:
        return self.centroid.n_states

    def update_electronics(self, r: NDArray[np.float64]) -> None:
        for ib, calc in enumerate(self.beads):
            calc.update_electronics(r[..., ib])
        self.update_centroid_electronics(r)

    def update_centroid_electronics(self, r: NDArray[np.float64]) -> None:
        self.centroid.update_electronics(centroid(r))

    def _stack(self, name: str) -> NDArray:
        return np.array([getattr(calc, name) for calc in self.beads])

    @property
    def potential(self) -> NDArray:
        return self._stack("potential")

    @property
    def derivative(self) -> NDArray:
        return self._stack("derivative")

    @property
    def eigenvalues(self) -> NDArray[np.float64]:
        return self._stack("eigenvalues")

    @property
    def eigenvectors(self) -> NDArray:
        return self._stack("eigenvectors")

    @property
    def adiabatic_derivative(self) -> NDArray:
        return self._stack("adiabatic_derivative")

    @property
    def nonadiabatic_coupling(self) -> NDArray:
        return self._stack("nonadiabatic_coupling")

    @property
    def state_independent_potential(self) -> NDArray[np.float64]:
        return self._stack("state_independent_potential")

    @property
    def state_independent_derivative(self) -> NDArray[np.float64]:
        return self._stack("state_independent_derivative")

    @property
    def n_degenerate(self) -> int:
        return int(sum(getattr(calc, "n_degenerate", 0) for calc in self.beads))

def Calculator(
    model,
    n_beads: Optional[int] = None,
    friction_kernel: Optional[Union[FrictionKernel, str]] = None,
    **kwargs,
):
    """Pick the calculator matching the model and the representation of the nuclei."""
    if n_beads is not None:
        return RingPolymerCalculator(model, n_beads, **kwargs)
    if is_diabatic(model):
        if friction_kernel is not None:
            return DiabaticFrictionCalculator(model, kernel=friction_kernel, **kwargs)
        return DiabaticCalculator(model, **kwargs)
    if has_friction(model):
        return FrictionCalculator(model)
    return AdiabaticCalculator(model)
