# %%
import numpy as np
from numpy.typing import NDArray
from numba import njit

@njit
def U0(
    R: float,
    mass: float,
    Omega_B: float,
) -> float:
    return 0.5 * mass * Omega_B**2 * R**2

@njit
def grad_U0(
    R: float,
    mass: float,
    Omega_B: float,
) -> float:
    return mass * Omega_B**2 * R

@njit
def U1(
    R: float,
    g: float,
    mass: float,
    Omega_B: float,
    dG: float,
) -> float:
    # impurity-occupied parabola, displaced by g and shifted by dG
    return 0.5 * mass * Omega_B**2 * (R - g)**2 + dG

@njit
def grad_U1(
    R: float,
    g: float,
    mass: float,
    Omega_B: float,
) -> float:
    return mass * Omega_B**2 * (R - g)

@njit
def one_electron_newns_anderson(
    U0: float,
    U1: float,
    V: float,
    ek: NDArray[np.float64],
    vk: NDArray[np.float64],
) -> NDArray[np.float64]:
    no = ek.size + 1
    H = np.zeros((no, no), dtype=np.float64)
    # the impurity level only carries the state dependent part U1 - U0
    H[0, 0] = U1 - U0
    for ii in range(1, no):
        H[ii, ii] = ek[ii-1]
        H[ii, 0] = H[0, ii] = V * vk[ii-1]
    return H

@njit
def one_electron_newns_anderson_grad(
    dU0: float,
    dU1: float,
    no: int,
) -> NDArray[np.float64]:
    grad_H = np.zeros((no, no), dtype=np.float64)
    grad_H[0, 0] = dU1 - dU0
    return grad_H
# %%
