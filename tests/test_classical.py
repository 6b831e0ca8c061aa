import numpy as np
import pytest

from mdnad.dynamics import Classical, Langevin, ThermalLangevin
from mdnad.integrators import VelocityVerlet, BCB, BCOCB, MDEF_BAOAB, Adaptive
from mdnad.models import TullyModelOne
from mdnad.simulation import Atoms, Simulation, RingPolymerSimulation
from mdnad.run import run_dynamics
from mdnad.errors import ConfigurationError


@pytest.fixture
def oscillator(harmonic, light_atom):
    sim = Simulation(light_atom, harmonic, Classical())
    u0 = sim.method.dynamics_variables(sim, v=[[0.0]], r=[[1.0]])
    return sim, u0


def test_default_algorithms(harmonic, light_atom):
    sim = Simulation(light_atom, harmonic, Classical())
    assert isinstance(sim.method.default_algorithm(sim), VelocityVerlet)
    sim = Simulation(light_atom, harmonic, Langevin(1.0), temperature=1.0)
    assert isinstance(sim.method.default_algorithm(sim), MDEF_BAOAB)
    with pytest.raises(ConfigurationError):
        sim = Simulation(light_atom, harmonic, ThermalLangevin(1.0), temperature=1.0)
        sim.method.default_algorithm(sim)
    rp = RingPolymerSimulation(light_atom, harmonic, Classical(), n_beads=4, temperature=1.0)
    assert isinstance(rp.method.default_algorithm(rp), BCB)
    rp = RingPolymerSimulation(light_atom, harmonic, ThermalLangevin(1.0), n_beads=4, temperature=1.0)
    assert isinstance(rp.method.default_algorithm(rp), BCOCB)


def test_classical_needs_adiabatic_model(light_atom):
    with pytest.raises(ConfigurationError):
        Simulation(light_atom, TullyModelOne(), Classical())


def test_harmonic_oscillator(oscillator):
    sim, u0 = oscillator
    out = run_dynamics(sim, (0.0, 10.0), u0, 0.01, output=("t", "position", "total_energy"))
    assert out["t"][-1] == pytest.approx(10.0)
    assert out["position"].shape == (1001, 1, 1)
    np.testing.assert_allclose(out["position"][:, 0, 0], np.cos(out["t"]), atol=1e-3)
    np.testing.assert_allclose(out["total_energy"], 0.5, rtol=1e-4)


def test_harmonic_oscillator_energy_over_1000_steps(oscillator):
    sim, u0 = oscillator
    out = run_dynamics(sim, (0.0, 100.0), u0, 0.1, output=("t", "total_energy"))
    assert out["total_energy"].shape == (1001,)
    assert out["t"][-1] == pytest.approx(100.0)
    assert out["total_energy"][-1] == pytest.approx(out["total_energy"][0], rel=1e-2)


def test_harmonic_oscillator_adaptive(oscillator):
    sim, u0 = oscillator
    out = run_dynamics(sim, (0.0, 10.0), u0, 0.1, output=("t", "position"), algorithm=Adaptive(rtol=1e-10, atol=1e-12))
    np.testing.assert_allclose(out["position"][:, 0, 0], np.cos(out["t"]), atol=1e-7)


def test_run_does_not_modify_inputs(oscillator):
    sim, u0 = oscillator
    run_dynamics(sim, (0.0, 1.0), u0, 0.1)
    np.testing.assert_allclose(u0.r, [[1.0]])
    np.testing.assert_allclose(u0.v, [[0.0]])


def test_frozen_atoms_do_not_move(harmonic):
    atoms = Atoms(masses=[1.0, 1.0], mobile=[True, False])
    sim = Simulation(atoms, harmonic, Classical())
    u0 = sim.method.dynamics_variables(sim, v=[[0.0, 0.0]], r=[[1.0, 1.0]])
    out = run_dynamics(sim, (0.0, 2.0), u0, 0.01, output=("position",))
    np.testing.assert_allclose(out["position"][:, 0, 1], 1.0)
    assert out["position"][-1, 0, 0] == pytest.approx(np.cos(2.0), abs=1e-3)


def test_ring_polymer_energy_is_conserved(harmonic, light_atom):
    sim = RingPolymerSimulation(light_atom, harmonic, Classical(), n_beads=4, temperature=0.5)
    r = np.array([[[0.9, 1.1, 1.0, 0.8]]])
    v = np.array([[[0.1, -0.2, 0.0, 0.3]]])
    u0 = sim.method.dynamics_variables(sim, v, r)
    out = run_dynamics(sim, (0.0, 10.0), u0, 0.01, output=("total_energy",))
    E = out["total_energy"]
    np.testing.assert_allclose(E, E[0], rtol=1e-3)


def test_langevin_thermalises(harmonic, light_atom):
    kT = 0.5
    sim = Simulation(light_atom, harmonic, Langevin(gamma=1.0), n_dofs=3, temperature=kT)
    u0 = sim.method.dynamics_variables(sim, np.zeros((3, 1)), np.zeros((3, 1)))
    out = run_dynamics(sim, (0.0, 2000.0), u0, 0.05, output=("kinetic_energy", "potential_energy"), rng=7)
    assert np.mean(out["kinetic_energy"][2000:]) == pytest.approx(1.5 * kT, rel=0.1)
    assert np.mean(out["potential_energy"][2000:]) == pytest.approx(1.5 * kT, rel=0.1)


def test_langevin_is_reproducible(harmonic, light_atom):
    sim = Simulation(light_atom, harmonic, Langevin(gamma=1.0), temperature=0.5)
    u0 = sim.method.dynamics_variables(sim, [[0.0]], [[0.0]])
    a = run_dynamics(sim, (0.0, 5.0), u0, 0.1, output=("position",), rng=11)
    b = run_dynamics(sim, (0.0, 5.0), u0, 0.1, output=("position",), rng=11)
    c = run_dynamics(sim, (0.0, 5.0), u0, 0.1, output=("position",), rng=12)
    np.testing.assert_array_equal(a["position"], b["position"])
    assert not np.allclose(a["position"], c["position"])


def test_thermal_ring_polymer_velocities(harmonic, light_atom):
    kT, n_beads = 0.25, 4
    sim = RingPolymerSimulation(light_atom, harmonic, ThermalLangevin(gamma=1.0), n_beads=n_beads, temperature=kT)
    u0 = sim.method.dynamics_variables(sim, np.zeros((1, 1, n_beads)), np.zeros((1, 1, n_beads)))
    out = run_dynamics(sim, (0.0, 1000.0), u0, 0.1, output=("velocity",), rng=3)
    v = out["velocity"][500:]
    # every bead samples the ring polymer temperature n kT
    assert np.var(v) == pytest.approx(n_beads * kT, rel=0.1)
