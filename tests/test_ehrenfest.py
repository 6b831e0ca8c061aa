import numpy as np
import pytest

from mdnad.dynamics import Ehrenfest, EhrenfestNA
from mdnad.initcond import SingleState
from mdnad.integrators import VerletwithElectronics, BCBwithElectronics, Adaptive
from mdnad.simulation import Simulation, RingPolymerSimulation
from mdnad.run import run_dynamics
from mdnad.errors import ConfigurationError


@pytest.fixture
def tully_two_ehrenfest(tully_two, one_atom):
    sim = Simulation(one_atom, tully_two, Ehrenfest())
    u0 = sim.method.dynamics_variables(sim, v=[[20.0 / 2000.0]], r=[[-8.0]], electronic=SingleState(0, "adiabatic"))
    return sim, u0


def test_needs_electronic_distribution(tully_two, one_atom):
    sim = Simulation(one_atom, tully_two, Ehrenfest())
    with pytest.raises(ConfigurationError):
        sim.method.dynamics_variables(sim, [[0.0]], [[0.0]])
    assert isinstance(sim.method.default_algorithm(sim), VerletwithElectronics)


def test_initial_diabatic_state(tully_two, one_atom):
    sim = Simulation(one_atom, tully_two, Ehrenfest())
    u0 = sim.method.dynamics_variables(sim, [[0.0]], [[-0.5]], SingleState(1, "diabatic"))
    np.testing.assert_allclose(sim.method.diabatic_population(sim, u0), [0.0, 1.0], atol=1e-14)


def test_energy_and_trace_are_conserved(tully_two_ehrenfest):
    sim, u0 = tully_two_ehrenfest
    out = run_dynamics(
        sim, (0.0, 1600.0), u0, 1.0,
        output=("total_energy", "quantum_subsystem", "adiabatic_population", "diabatic_population"),
    )
    E = out["total_energy"]
    np.testing.assert_allclose(E, E[0], atol=1e-4)
    sigma = out["quantum_subsystem"]
    np.testing.assert_allclose(np.trace(sigma, axis1=1, axis2=2).real, 1.0, atol=1e-10)
    np.testing.assert_allclose(sigma, np.conj(np.transpose(sigma, (0, 2, 1))), atol=1e-12)
    np.testing.assert_allclose(out["adiabatic_population"].sum(axis=1), 1.0, atol=1e-10)
    np.testing.assert_allclose(out["diabatic_population"].sum(axis=1), 1.0, atol=1e-10)
    # the wavepacket has passed both crossings and left part of the population behind
    assert 0.0 < out["adiabatic_population"][-1, 1] < 1.0


def test_adaptive_agrees_with_split_integrator(tully_two_ehrenfest):
    sim, u0 = tully_two_ehrenfest
    split = run_dynamics(sim, (0.0, 1600.0), u0, 0.5, output=("adiabatic_population",), saveat=100.0)
    adaptive = run_dynamics(
        sim, (0.0, 1600.0), u0, 1.0, output=("adiabatic_population",), saveat=100.0,
        algorithm=Adaptive(rtol=1e-8, atol=1e-10),
    )
    np.testing.assert_allclose(split["adiabatic_population"], adaptive["adiabatic_population"], atol=5e-3)


def test_ring_polymer_ehrenfest(tully_two, one_atom):
    sim = RingPolymerSimulation(one_atom, tully_two, Ehrenfest(), n_beads=4, temperature=1e-3)
    assert isinstance(sim.method.default_algorithm(sim), BCBwithElectronics)
    r = np.full((1, 1, 4), -8.0) + np.array([-0.05, 0.0, 0.05, 0.0])
    v = np.full((1, 1, 4), 0.01)
    u0 = sim.method.dynamics_variables(sim, v, r, SingleState(0, "adiabatic"))
    out = run_dynamics(sim, (0.0, 400.0), u0, 1.0, output=("adiabatic_population", "position"))
    np.testing.assert_allclose(out["adiabatic_population"].sum(axis=1), 1.0, atol=1e-10)
    assert out["position"][-1].mean() > -8.0


class TestEhrenfestNA:
    def test_initial_orbitals(self, newns_anderson, one_atom):
        sim = Simulation(one_atom, newns_anderson, EhrenfestNA())
        u0 = sim.method.dynamics_variables(sim, [[0.0]], [[0.0]])
        assert u0.sigma.shape == (newns_anderson.n_states, newns_anderson.n_electrons)
        np.testing.assert_allclose(sim.method.adiabatic_population(sim, u0)[:4], 1.0)
        np.testing.assert_allclose(sim.method.adiabatic_population(sim, u0)[4:], 0.0)
        with pytest.raises(ConfigurationError):
            sim.method.dynamics_variables(sim, [[0.0]], [[0.0]], electronic=[0, 1])

    def test_orthonormal_orbitals_and_energy(self, newns_anderson, one_atom):
        sim = Simulation(one_atom, newns_anderson, EhrenfestNA())
        u0 = sim.method.dynamics_variables(sim, [[2e-3]], [[0.0]], electronic=[0, 1, 2, 5])
        out = run_dynamics(sim, (0.0, 2000.0), u0, 1.0, output=("total_energy", "quantum_subsystem"), saveat=100.0)
        E = out["total_energy"]
        np.testing.assert_allclose(E, E[0], atol=1e-6)
        psi = out["quantum_subsystem"][-1]
        np.testing.assert_allclose(psi.conj().T @ psi, np.eye(4), atol=1e-10)
