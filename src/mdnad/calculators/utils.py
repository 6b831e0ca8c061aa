# %%
import numpy as np
from numpy.typing import NDArray
from numba import njit

from typing import Tuple

@njit
def get_phase_correction(
    prev_evecs: NDArray[np.float64],
    curr_evecs: NDArray[np.float64],
) -> NDArray[np.float64]:
    # +1/-1 per column, -1 when the column flipped relative to the previous step
    n = curr_evecs.shape[1]
    phase_correction = np.ones(n, dtype=np.float64)
    for ii in range(n):
        dotval = 0.0
        for kk in range(curr_evecs.shape[0]):
            dotval += (np.conj(prev_evecs[kk, ii]) * curr_evecs[kk, ii]).real
        if dotval < 0.0:
            phase_correction[ii] = -1.0
    return phase_correction

def align_phase(
    prev_evecs: NDArray,
    curr_evecs: NDArray,
) -> NDArray:
    """Flip the sign of every eigenvector whose overlap with its predecessor is negative.

    Args:
        prev_evecs (NDArray): eigenvectors (columns) at the previous position
        curr_evecs (NDArray): freshly diagonalised eigenvectors at the current position

    Returns:
        NDArray: the sign-corrected eigenvectors, continuous with `prev_evecs`
    """
    return curr_evecs * get_phase_correction(prev_evecs, curr_evecs)

@njit
def evaluate_nonadiabatic_couplings(
    adiabatic_derivative: NDArray[np.float64],
    evals: NDArray[np.float64],
    gap_floor: float,
) -> Tuple[NDArray[np.float64], int]:
    # d_ij = <i|dj> = W_ij / (E_j - E_i), evals sorted ascending so the gap is >= 0
    n_dofs, n_atoms, ns, _ = adiabatic_derivative.shape
    d = np.zeros(adiabatic_derivative.shape, dtype=adiabatic_derivative.dtype)
    n_degenerate = 0
    for ii in range(ns):
        for jj in range(ii+1, ns):
            gap = evals[jj] - evals[ii]
            if gap < gap_floor:
                gap = gap_floor
                n_degenerate += 1
            for kk in range(n_dofs):
                for ll in range(n_atoms):
                    d[kk, ll, ii, jj] = adiabatic_derivative[kk, ll, ii, jj] / gap
                    d[kk, ll, jj, ii] = -np.conj(d[kk, ll, ii, jj])
    return d, n_degenerate

def transform_to_adiabatic(
    derivative: NDArray,
    evecs: NDArray,
) -> NDArray:
    # U' D U for every (dof, atom) block, broadcast by matmul
    return evecs.conj().T @ derivative @ evecs
