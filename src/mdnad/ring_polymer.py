# %%
import numpy as np
from numpy.typing import NDArray

from functools import lru_cache

@lru_cache(maxsize=None)
def normal_mode_transformation(n_beads: int) -> NDArray[np.float64]:
    """Real orthogonal matrix C with the free ring polymer normal modes in its columns,
    q = x @ C for bead-last arrays x. Column 0 is the centroid mode.
    """
    C = np.zeros((n_beads, n_beads))
    j = np.arange(n_beads)
    for k in range(n_beads):
        if k == 0:
            C[:, k] = 1 / np.sqrt(n_beads)
        elif k < n_beads / 2:
            C[:, k] = np.sqrt(2 / n_beads) * np.cos(2 * np.pi * j * k / n_beads)
        elif k == n_beads / 2:
            C[:, k] = (-1)**j / np.sqrt(n_beads)
        else:
            C[:, k] = np.sqrt(2 / n_beads) * np.sin(2 * np.pi * j * k / n_beads)
    C.setflags(write=False)
    return C

def normal_mode_frequencies(n_beads: int, omega_n: float) -> NDArray[np.float64]:
    k = np.arange(n_beads)
    return 2 * omega_n * np.sin(k * np.pi / n_beads)

def centroid(x: NDArray) -> NDArray:
    return x.mean(axis=-1)

def spring_energy(
    r: NDArray[np.float64],
    masses: NDArray[np.float64],
    omega_n: float,
    quantum: NDArray[np.bool_],
) -> float:
    # masses and quantum are per atom, r is (n_dofs, n_atoms, n_beads)
    dr = r - np.roll(r, -1, axis=-1)
    E = 0.5 * omega_n**2 * masses[None, :, None] * dr**2
    return float(np.sum(E[:, quantum, :]))

def spring_force(
    r: NDArray[np.float64],
    masses: NDArray[np.float64],
    omega_n: float,
    quantum: NDArray[np.bool_],
) -> NDArray[np.float64]:
    F = -omega_n**2 * masses[None, :, None] * (2 * r - np.roll(r, 1, axis=-1) - np.roll(r, -1, axis=-1))
    F[:, ~quantum, :] = 0.0
    return F

def free_ring_polymer_step(
    r: NDArray[np.float64],
    v: NDArray[np.float64],
    omega_n: float,
    dt: float,
    quantum: NDArray[np.bool_],
) -> None:
    """Exact free evolution of the springs in place: normal modes of the quantum atoms
    rotate in phase space, everything else drifts.
    """
    n_beads = r.shape[-1]
    C = normal_mode_transformation(n_beads)
    w = normal_mode_frequencies(n_beads, omega_n)

    rq = r[:, quantum, :] @ C
    vq = v[:, quantum, :] @ C
    cos_wt = np.cos(w * dt)
    sin_wt = np.sin(w * dt)
    # the centroid mode (w = 0) drifts
    sinc = np.full(n_beads, dt)
    sinc[1:] = sin_wt[1:] / w[1:]
    rq_new = cos_wt * rq + sinc * vq
    vq_new = -w * sin_wt * rq + cos_wt * vq

    r[:, ~quantum, :] += dt * v[:, ~quantum, :]
    r[:, quantum, :] = rq_new @ C.T
    v[:, quantum, :] = vq_new @ C.T

def pile_thermostat(
    v: NDArray[np.float64],
    masses: NDArray[np.float64],
    kT: float,
    gamma: float,
    omega_n: float,
    dt: float,
    quantum: NDArray[np.bool_],
    rng: np.random.Generator,
) -> None:
    """PILE-L Ornstein-Uhlenbeck step in normal modes: the centroid is damped by `gamma`,
    internal modes critically (2 w_k). Classical atoms see `gamma` on every bead.
    """
    n_beads = v.shape[-1]
    C = normal_mode_transformation(n_beads)
    friction = 2 * normal_mode_frequencies(n_beads, omega_n)
    friction[0] = gamma
    kT_n = n_beads * kT
    sigma = np.sqrt(kT_n / masses)[None, :, None]

    c1 = np.exp(-friction * dt)
    c2 = np.sqrt(1 - c1**2)
    vq = v[:, quantum, :] @ C
    vq = c1 * vq + c2 * sigma[:, quantum, :] * rng.standard_normal(vq.shape)
    v[:, quantum, :] = vq @ C.T

    c1 = np.exp(-gamma * dt)
    c2 = np.sqrt(1 - c1**2)
    vc = v[:, ~quantum, :]
    v[:, ~quantum, :] = c1 * vc + c2 * sigma[:, ~quantum, :] * rng.standard_normal(vc.shape)
