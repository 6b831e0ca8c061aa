# %%
import numpy as np
from numpy.typing import NDArray

from mdnad.integrators.steps import FixedStepAlgorithm, step_A, step_C, update_electronics

from typing import Tuple

def mapping_propagators(
    evals: NDArray[np.float64],
    evecs: NDArray[np.float64],
    dt: float,
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    # C = U cos(Λdt) U^T,  D = U sin(-Λdt) U^T
    C = (evecs * np.cos(evals * dt)) @ evecs.T
    D = (evecs * np.sin(-evals * dt)) @ evecs.T
    return C, D

def propagate_mapping_variables(
    q: NDArray[np.float64],
    p: NDArray[np.float64],
    evals: NDArray[np.float64],
    evecs: NDArray[np.float64],
    dt: float,
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    C, D = mapping_propagators(evals, evecs, dt)
    return C @ q - D @ p, C @ p + D @ q

def gamma_xi(
    W: NDArray[np.float64],
    evals: NDArray[np.float64],
    dt: float,
    gap_floor: float = 1e-8,
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Time integrated adiabatic derivative matrices Γ and Ξ of the momentum integral.

    Γ_ji = sin((Λ_i - Λ_j) dt) W_ji / (Λ_i - Λ_j),  Ξ_ji = (1 - cos((Λ_i - Λ_j) dt)) W_ji / (Λ_i - Λ_j),
    with the limits W_ji dt and 0 for (nearly) degenerate pairs and on the diagonal.
    `W` may carry leading (n_dofs, n_atoms) axes.
    """
    dL = evals[None, :] - evals[:, None]
    degenerate = np.abs(dL) < gap_floor
    safe = np.where(degenerate, 1.0, dL)
    Gamma = np.where(degenerate, W * dt, np.sin(dL * dt) * W / safe)
    Xi = np.where(degenerate, 0.0, (1 - np.cos(dL * dt)) * W / safe)
    return Gamma, Xi

def mint_core(
    calc,
    q: NDArray[np.float64],
    p: NDArray[np.float64],
    masses: NDArray[np.float64],
    gamma: float,
    dt: float,
) -> Tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """Propagate the mapping variables over `dt` at fixed nuclear positions and return
    them with the integrated velocity change of the nuclei.

    Reference:
        Church, Hele, Ezra, Ananth, J. Chem. Phys. 148, 102326 (2018)
    """
    evals = calc.eigenvalues
    evecs = np.real(calc.eigenvectors)
    q, p = propagate_mapping_variables(q, p, evals, evecs, dt)

    W = np.real(calc.adiabatic_derivative)
    Gamma, Xi = gamma_xi(W, evals, dt, getattr(calc, "gap_floor", 1e-8))
    E = np.einsum("nk,abkl,ml->abnm", evecs, Gamma, evecs)
    F = np.einsum("nk,abkl,ml->abnm", evecs, Xi, evecs)

    force = 0.5 * (np.einsum("n,abnm,m->ab", q, E, q) + np.einsum("n,abnm,m->ab", p, E, p)) \
        - np.einsum("n,abnm,m->ab", q, F, p)
    trace_dV = np.trace(np.real(calc.derivative), axis1=-2, axis2=-1)
    dv = (-force - calc.state_independent_derivative * dt + gamma * trace_dV * dt / 2) / masses
    return q, p, dv

class MInt(FixedStepAlgorithm):
    """Second order symplectic momentum integral algorithm for the mapping variables.

    A(dt/2), exact mapping rotation with the integrated nuclear kick, A(dt/2). The zero
    point parameter is read from `sim.method.zero_point(sim)`.
    """

    def perform_step(self, sim, u, t, dt, rng):
        step_A(sim, u, dt / 2)
        update_electronics(sim, u)
        u.mapping_q, u.mapping_p, dv = mint_core(
            sim.calculator, u.mapping_q, u.mapping_p, sim.masses, sim.method.zero_point(sim), dt
        )
        u.v = u.v + dv * sim.mobile
        step_A(sim, u, dt / 2)
        update_electronics(sim, u)

class RingPolymerMInt(FixedStepAlgorithm):
    """MInt for ring polymers: every bead carries its own mapping variables, shape
    (n_beads, n_states), and the springs are integrated exactly around the mapping step.
    """

    def perform_step(self, sim, u, t, dt, rng):
        step_C(sim, u, t, dt / 2)
        update_electronics(sim, u)
        q, p = u.mapping_q.copy(), u.mapping_p.copy()
        v = u.v.copy()
        masses = sim.atoms.masses[None, :]
        gamma = sim.method.zero_point(sim)
        for ib, bead in enumerate(sim.calculator.beads):
            q[ib], p[ib], dv = mint_core(bead, q[ib], p[ib], masses, gamma, dt)
            v[..., ib] += dv * sim.atoms.mobile[None, :]
        u.mapping_q, u.mapping_p, u.v = q, p, v
        step_C(sim, u, t + dt / 2, dt / 2)
        update_electronics(sim, u)
