# %%
import numpy as np
from numpy.typing import NDArray
from numba import njit

@njit
def surface_hopping_population(
    active_state: int,
    sigma: NDArray[np.complex128],
    U: NDArray,
) -> NDArray[np.float64]:
    # Landry, Falk, Subotnik, J. Chem. Phys. 139, 211101 (2013), method 3:
    # active state populations plus the coherences of the density matrix
    ns = sigma.shape[0]
    populations = np.zeros(ns, dtype=np.float64)
    for istate in range(ns):
        populations[istate] += np.abs(U[istate, active_state])**2
        for jj in range(ns):
            for kk in range(jj+1, ns):
                populations[istate] += 2.0 * np.real(U[istate, jj] * np.conj(U[istate, kk]) * sigma[jj, kk])
    return populations

@njit
def iesh_population(
    psi: NDArray[np.complex128],
    U: NDArray,
    occupied: NDArray[np.int64],
) -> NDArray[np.float64]:
    # orbital resolved version of the estimator above, one term per electron
    no, ne = psi.shape
    populations = np.zeros(no, dtype=np.float64)
    rho_i = np.zeros((no, no), dtype=np.complex128)
    for ie in range(ne):
        active_orb_i = occupied[ie]
        rho_i[:] = np.outer(psi[:, ie], psi[:, ie].conj())
        for io in range(no):
            populations[io] += np.abs(U[io, active_orb_i])**2
            for jj in range(no):
                for kk in range(jj+1, no):
                    populations[io] += 2.0 * np.real(U[io, jj] * np.conj(U[io, kk]) * rho_i[jj, kk])
    return populations
