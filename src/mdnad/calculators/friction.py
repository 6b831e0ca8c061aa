# %%
import numpy as np
from numpy.typing import NDArray
from numba import njit
from scipy.integrate import quad
from scipy.optimize import brentq

from mdnad.errors import ConfigurationError

import math
from enum import Enum

class FrictionKernel(Enum):
    # gaussian broadened golden rule
    GB = "GB"
    # off-diagonal gaussian broadening, finite difference of the occupations
    ONGB = "ONGB"
    # direct quadrature over the diagonal couplings
    DQ = "DQ"
    # wide-band limit of a single impurity level
    WB = "WB"

    @classmethod
    def parse(cls, tag) -> "FrictionKernel":
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).upper())
        except ValueError:
            raise ConfigurationError(f"Unrecognised friction kernel: {tag}. Available kernels are: {', '.join([k.value for k in cls])}")

@njit
def fermi(e: float, mu: float, kT: float) -> float:
    if kT <= 0.0:
        if e < mu:
            return 1.0
        return 0.5 if e == mu else 0.0
    x = (e - mu) / kT
    if x > 0:
        ex = math.exp(-x)
        return ex / (1.0 + ex)
    return 1.0 / (1.0 + math.exp(x))

@njit
def dfermi(e: float, mu: float, kT: float) -> float:
    # df/de, a (negative) nascent delta function of width kT
    if kT <= 0.0:
        return 0.0
    f = fermi(e, mu, kT)
    return -f * (1.0 - f) / kT

@njit
def gauss(x: float, sigma: float) -> float:
    return math.exp(-0.5 * x**2 / sigma**2) / (sigma * math.sqrt(2 * math.pi))

@njit
def friction_gaussian_broadening(
    dH_i: NDArray[np.float64],
    dH_j: NDArray[np.float64],
    evals: NDArray[np.float64],
    mu: float,
    kT: float,
    sigma: float,
) -> float:
    out = 0.0
    ns = evals.size
    for n in range(ns):
        df = dfermi(evals[n], mu, kT)
        if df == 0.0:
            continue
        for m in range(ns):
            de = evals[n] - evals[m]
            out += -np.pi * (dH_i[n, m] * dH_j[m, n]).real * gauss(de, sigma) * df
    return out

@njit
def friction_off_diagonal_gaussian_broadening(
    dH_i: NDArray[np.float64],
    dH_j: NDArray[np.float64],
    evals: NDArray[np.float64],
    mu: float,
    kT: float,
    sigma: float,
) -> float:
    out = 0.0
    ns = evals.size
    for n in range(ns):
        fn = fermi(evals[n], mu, kT)
        for m in range(n+1, ns):
            de = evals[n] - evals[m]
            if de == 0.0:
                continue
            fm = fermi(evals[m], mu, kT)
            out += 2 * np.pi * (dH_i[n, m] * dH_j[m, n]).real * gauss(de, sigma) * (fm - fn) / de
    return out

@njit
def friction_direct_quadrature(
    dH_i: NDArray[np.float64],
    dH_j: NDArray[np.float64],
    evals: NDArray[np.float64],
    mu: float,
    kT: float,
    rho: NDArray[np.float64],
) -> float:
    # rho[n] is the density of orbitals around evals[n]
    out = 0.0
    for n in range(evals.size):
        out += -np.pi * (dH_i[n, n] * dH_j[n, n]).real * rho[n] * dfermi(evals[n], mu, kT)
    return out

def friction_wideband(
    h: float,
    dh: float,
    Gamma: float,
    dGamma: float,
    emin: float,
    emax: float,
    mu: float,
    kT: float,
) -> float:
    """Friction of a single level `h` broadened by a wide, flat band.

        Λ = -π ∫ (∂h + (ε - h) ∂Γ/Γ)² A(ε)² ∂f(ε) dε

    with the Lorentzian spectral function A(ε) = (Γ/2π) / ((ε - h)² + (Γ/2)²).
    At zero temperature -∂f is a delta function at the Fermi level.
    """
    def A(e):
        return 1 / np.pi * 0.5 * Gamma / ((e - h)**2 + (0.5 * Gamma)**2)

    def kernel(e):
        return -np.pi * (dh + (e - h) * dGamma / Gamma)**2 * A(e)**2 * dfermi(e, mu, kT)

    if kT <= 0.0:
        return np.pi * (dh + (mu - h) * dGamma / Gamma)**2 * A(mu)**2

    points = sorted({p for p in (mu, h) if emin < p < emax})
    integral, _ = quad(kernel, emin, emax, points=points or None, limit=200)
    return integral

def fermi_level(
    evals: NDArray[np.float64],
    n_electrons: int,
    kT: float,
) -> float:
    """Chemical potential that places `n_electrons` in the orbitals `evals`."""
    evals = np.sort(evals)
    if n_electrons <= 0 or n_electrons >= evals.size:
        raise ConfigurationError(f"Cannot place {n_electrons} electrons in {evals.size} orbitals.")
    if kT <= 0.0:
        return 0.5 * (evals[n_electrons-1] + evals[n_electrons])

    def excess(mu):
        return sum(fermi(e, mu, kT) for e in evals) - n_electrons

    margin = 50 * kT
    return brentq(excess, evals[0] - margin, evals[-1] + margin)
