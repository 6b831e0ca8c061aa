# %%
import numpy as np
from numpy.typing import NDArray
import scipy.linalg as LA

# ------ Equations of motion ------
def schrodinger_adiabatic(
    E: NDArray[np.float64],
    v_dot_d: NDArray,
    psi: NDArray[np.complex128],
) -> NDArray[np.complex128]:
    # works column-wise for a (n_states, n_electrons) block of orbitals
    if psi.ndim == 2:
        return -1.j * E[:, None] * psi - np.dot(v_dot_d, psi)
    return -1.j * E * psi - np.dot(v_dot_d, psi)

def liouville_adiabatic(
    E: NDArray[np.float64],
    v_dot_d: NDArray,
    sigma: NDArray[np.complex128],
) -> NDArray[np.complex128]:
    # d(sigma)/dt = -i [V_eff, sigma],  V_eff = diag(E) - i v.d
    V = np.diag(E) - 1.j * v_dot_d
    return -1.j * (np.dot(V, sigma) - np.dot(sigma, V))

# ------ Exact short-time propagators ------
def electronic_propagator(
    V_eff: NDArray[np.complex128],
    dt: float,
) -> NDArray[np.complex128]:
    return LA.expm(-1.j * dt * V_eff)

def propagate_density_matrix(
    sigma: NDArray[np.complex128],
    V_eff: NDArray[np.complex128],
    dt: float,
) -> NDArray[np.complex128]:
    U = electronic_propagator(V_eff, dt)
    return U @ sigma @ U.conj().T

def propagate_wavefunction(
    psi: NDArray[np.complex128],
    V_eff: NDArray[np.complex128],
    dt: float,
) -> NDArray[np.complex128]:
    return electronic_propagator(V_eff, dt) @ psi
