# %%
import numpy as np
from numba import njit
from numpy.typing import NDArray

from typing import Tuple

@njit
def one_electron_overlap(
    c: NDArray[np.complex128],
    k: NDArray[np.int64],
) -> np.complex128:
    # <k|psi>: determinant of the occupied rows of the orbital wavefunctions
    ne = k.shape[0]
    S = np.zeros((ne, ne), dtype=np.complex128)
    for ii in range(ne):
        for jj in range(ne):
            S[ii, jj] = c[k[ii], jj]
    return np.linalg.det(S)

@njit
def evaluate_Akj(
    c: NDArray[np.complex128], # independent-electron wavefunctions (n_orbital, n_electron)
    state_k: NDArray[np.int64], # bra state, occupied orbitals
    state_j: NDArray[np.int64], # ket state, occupied orbitals
) -> np.complex128:
    j_psi = one_electron_overlap(c, state_j)
    psi_k = np.conj(one_electron_overlap(c, state_k))
    return j_psi * psi_k

@njit
def iesh_hopping_probabilities(
    c: NDArray[np.complex128],
    occupied: NDArray[np.int64],
    v_dot_d: NDArray,
    dt: float,
) -> NDArray[np.float64]:
    """One-electron hopping probabilities of the active Slater determinant.

    Element [l, m] is the probability of moving the electron in orbital l to the empty
    orbital m, 2 Re(A_jk v.d_lm) dt / A_kk, clamped to [0, 1], where j is the active
    determinant k with l replaced by m.

    Reference:
        Shenvi, Roy, Tully, J. Chem. Phys. 130, 174107 (2009)
    """
    no = c.shape[0]
    hopping_prob = np.zeros((no, no), dtype=np.float64)
    Akk = evaluate_Akj(c, occupied, occupied).real
    if Akk <= 0.0:
        return hopping_prob

    is_occupied = np.zeros(no, dtype=np.bool_)
    for l in occupied:
        is_occupied[l] = True

    target = occupied.copy()
    for ie in range(occupied.size):
        l = occupied[ie]
        for m in range(no):
            if is_occupied[m]:
                continue
            target[ie] = m
            Ajk = evaluate_Akj(c, occupied, target)
            prob = 2.0 * (Ajk * v_dot_d[l, m]).real * dt / Akk
            hopping_prob[l, m] = min(max(prob, 0.0), 1.0)
        target[ie] = l
    return hopping_prob

@njit
def select_iesh_hop(
    hopping_prob: NDArray[np.float64],
    state: NDArray[np.int64],
    random_number: float,
) -> Tuple[int, int]:
    # returns (-1, -1) when no hop is drawn
    cum_prob = 0.0
    no = state.size
    for l in range(no):
        if state[l] == 0:
            continue
        for m in range(no):
            if state[m] == 1:
                continue
            cum_prob += hopping_prob[l, m]
            if cum_prob > random_number:
                return l, m
    return -1, -1
