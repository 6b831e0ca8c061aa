import numpy as np
import pytest

from itertools import combinations

from mdnad.dynamics import IESH
from mdnad.dynamics.fssh import hopping_probabilities
from mdnad.dynamics.iesh_utils import (
    one_electron_overlap,
    evaluate_Akj,
    iesh_hopping_probabilities,
    select_iesh_hop,
)
from mdnad.simulation import Simulation
from mdnad.run import Integrator, run_dynamics
from mdnad.errors import ConfigurationError


def random_orbitals(rng, no, ne):
    A = rng.normal(size=(no, ne)) + 1.j * rng.normal(size=(no, ne))
    Q, _ = np.linalg.qr(A)
    return np.ascontiguousarray(Q)


def random_v_dot_d(rng, no):
    X = rng.normal(size=(no, no))
    return X - X.T


def test_determinant_populations_sum_to_one(rng):
    no, ne = 6, 3
    c = random_orbitals(rng, no, ne)
    total = sum(
        evaluate_Akj(c, np.array(k), np.array(k)).real
        for k in combinations(range(no), ne)
    )
    assert total == pytest.approx(1.0)


def test_overlap_of_unmixed_orbitals(rng):
    c = np.zeros((4, 2), dtype=np.complex128)
    c[1, 0] = 1.0
    c[3, 1] = 1.0
    assert abs(one_electron_overlap(c, np.array([1, 3]))) == pytest.approx(1.0)
    assert abs(one_electron_overlap(c, np.array([0, 3]))) == pytest.approx(0.0)


def test_single_electron_matches_fssh(rng):
    no = 5
    c = random_orbitals(rng, no, 1)
    v_dot_d = random_v_dot_d(rng, no)
    sigma = np.outer(c[:, 0], c[:, 0].conj())
    for active in range(no):
        expected = hopping_probabilities(sigma, active, v_dot_d, 0.1)
        prob = iesh_hopping_probabilities(c, np.array([active]), v_dot_d, 0.1)
        np.testing.assert_allclose(prob[active], expected, atol=1e-12)
        # only the occupied orbital can lose its electron
        assert np.all(np.delete(prob, active, axis=0) == 0.0)


def test_no_hops_into_occupied_orbitals(rng):
    no, ne = 6, 3
    c = random_orbitals(rng, no, ne)
    occupied = np.array([0, 2, 4])
    prob = iesh_hopping_probabilities(c, occupied, random_v_dot_d(rng, no), 1.0)
    assert np.all(prob[:, occupied] == 0.0)
    assert np.all((prob >= 0.0) & (prob <= 1.0))


def test_select_iesh_hop():
    state = np.array([1, 1, 0, 0])
    prob = np.zeros((4, 4))
    prob[0, 2] = 0.1
    prob[1, 3] = 0.2
    assert select_iesh_hop(prob, state, 0.05) == (0, 2)
    assert select_iesh_hop(prob, state, 0.15) == (1, 3)
    assert select_iesh_hop(prob, state, 0.5) == (-1, -1)


class TestIESH:
    def test_default_occupations(self, newns_anderson, one_atom):
        sim = Simulation(one_atom, newns_anderson, IESH())
        u = sim.method.dynamics_variables(sim, [[0.0]], [[0.0]])
        ne = newns_anderson.n_electrons
        np.testing.assert_array_equal(np.flatnonzero(u.state), np.arange(ne))
        assert u.sigma.shape == (newns_anderson.n_states, ne)
        np.testing.assert_allclose(sim.method.adiabatic_population(sim, u).sum(), ne)
        np.testing.assert_allclose(sim.method.diabatic_population(sim, u).sum(), ne)

    def test_wrong_occupation_count(self, newns_anderson, one_atom):
        sim = Simulation(one_atom, newns_anderson, IESH())
        with pytest.raises(ConfigurationError):
            sim.method.dynamics_variables(sim, [[0.0]], [[0.0]], [0, 1])

    def test_occupations_sampled_from_diabatic_orbitals(self, newns_anderson, one_atom, rng):
        sim = Simulation(one_atom, newns_anderson, IESH())
        sim.calculator.update_electronics(np.zeros((1, 1)))
        ne = newns_anderson.n_electrons
        # the lowest adiabatic orbitals written in the diabatic basis
        psi = sim.calculator.eigenvectors[:, :ne]
        u = sim.method.dynamics_variables(sim, [[0.0]], [[0.0]], psi, rng=rng)
        np.testing.assert_array_equal(np.flatnonzero(u.state), np.arange(ne))

    def test_hop_moves_one_electron(self, newns_anderson, one_atom):
        sim = Simulation(one_atom, newns_anderson, IESH())
        u = sim.method.dynamics_variables(sim, [[0.02]], [[0.0]])
        integrator = Integrator(sim=sim, u=u, t=0.0, dt=1.0, rng=np.random.default_rng(0), last_step=1.0)
        ne = newns_anderson.n_electrons
        E_before = sim.method.total_energy(sim, u, 0.0)
        sim.method.hop = (ne - 1, ne)
        sim.method.execute_hop(integrator)
        assert u.state[ne - 1] == 0 and u.state[ne] == 1
        assert u.state.sum() == ne
        assert sim.method.total_energy(sim, u, 0.0) == pytest.approx(E_before, rel=1e-12)

    def test_dynamics_conserves_electrons_and_energy(self, newns_anderson, one_atom):
        sim = Simulation(one_atom, newns_anderson, IESH())
        u0 = sim.method.dynamics_variables(sim, [[2e-3]], [[0.0]])
        ne = newns_anderson.n_electrons
        for seed in range(3):
            out = run_dynamics(
                sim, (0.0, 2000.0), u0, 1.0,
                output=("state", "total_energy", "quantum_subsystem"), saveat=10.0, rng=seed,
            )
            np.testing.assert_array_equal(out["state"].sum(axis=1), ne)
            np.testing.assert_allclose(out["total_energy"], out["total_energy"][0], atol=1e-6)
            psi = out["quantum_subsystem"][-1]
            np.testing.assert_allclose(psi.conj().T @ psi, np.eye(ne), atol=1e-10)
