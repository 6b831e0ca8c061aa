import numpy as np
import pytest
from copy import deepcopy

from mdnad.calculators import (
    AdiabaticCalculator,
    DiabaticCalculator,
    FrictionCalculator,
    DiabaticFrictionCalculator,
    RingPolymerCalculator,
    Calculator,
)
from mdnad.errors import DegenerateStatesWarning
from mdnad.models import DoubleWell, FrictionHarmonic


def test_factory_picks_calculator(harmonic, tully_one):
    assert isinstance(Calculator(harmonic), AdiabaticCalculator)
    assert isinstance(Calculator(tully_one), DiabaticCalculator)
    assert isinstance(Calculator(FrictionHarmonic()), FrictionCalculator)
    assert isinstance(Calculator(tully_one, friction_kernel="GB"), DiabaticFrictionCalculator)
    rp = Calculator(tully_one, n_beads=3)
    assert isinstance(rp, RingPolymerCalculator)
    assert len(rp.beads) == 3


def test_adiabatic_calculator(harmonic):
    calc = AdiabaticCalculator(harmonic)
    r = np.array([[0.5]])
    calc.update_electronics(r)
    assert calc.potential == pytest.approx(0.125)
    np.testing.assert_allclose(calc.derivative, [[0.5]])


class TestDiabaticCalculator:
    def test_eigen_decomposition(self, tully_one):
        calc = DiabaticCalculator(tully_one)
        r = np.array([[0.2]])
        calc.update_electronics(r)
        U, E = calc.eigenvectors, calc.eigenvalues
        assert E[0] < E[1]
        np.testing.assert_allclose(U @ np.diag(E) @ U.T, calc.potential, atol=1e-14)
        W = calc.adiabatic_derivative[0, 0]
        np.testing.assert_allclose(W, U.T @ calc.derivative[0, 0] @ U, atol=1e-14)

    def test_couplings_are_antisymmetric(self, tully_one):
        calc = DiabaticCalculator(tully_one)
        calc.update_electronics(np.array([[-0.3]]))
        d = calc.nonadiabatic_coupling[0, 0]
        np.testing.assert_allclose(d, -d.T, atol=1e-14)
        np.testing.assert_allclose(np.diag(d), 0.0)
        W, E = calc.adiabatic_derivative[0, 0], calc.eigenvalues
        assert d[0, 1] == pytest.approx(W[0, 1] / (E[1] - E[0]))

    def test_couplings_match_eigenvector_derivative(self, tully_one):
        calc = DiabaticCalculator(tully_one)
        r = np.array([[0.2]])
        calc.update_electronics(r)
        h = 1e-5
        plus, minus = deepcopy(calc), deepcopy(calc)
        plus.update_electronics(r + h)
        minus.update_electronics(r - h)
        dU = (plus.eigenvectors - minus.eigenvectors) / (2 * h)
        # d_ij = <i|dj>
        d_fd = calc.eigenvectors.T @ dU
        np.testing.assert_allclose(calc.nonadiabatic_coupling[0, 0], d_fd, rtol=1e-5, atol=1e-7)

    def test_phase_continuity_along_path(self, tully_one):
        calc = DiabaticCalculator(tully_one)
        previous = None
        for x in np.linspace(-3, 3, 301):
            calc.update_electronics(np.array([[x]]))
            if previous is not None:
                overlaps = np.sum(previous * calc.eigenvectors, axis=0)
                assert np.all(overlaps > 0)
            previous = calc.eigenvectors.copy()

    def test_degenerate_states_warn_and_stay_finite(self):
        model = DoubleWell(mass=1.0, omega=1.0, gamma=0.5, delta=0.0, bias=0.0)
        calc = DiabaticCalculator(model, gap_floor=1e-8)
        with pytest.warns(DegenerateStatesWarning):
            calc.update_electronics(np.zeros((1, 1)))
        assert calc.n_degenerate == 1
        assert np.all(np.isfinite(calc.nonadiabatic_coupling))

    def test_effective_hamiltonian_is_hermitian(self, tully_one):
        calc = DiabaticCalculator(tully_one)
        calc.update_electronics(np.array([[0.1]]))
        V = calc.effective_hamiltonian(np.array([[0.01]]))
        np.testing.assert_allclose(V, V.conj().T)
        np.testing.assert_allclose(np.diag(V).real, calc.eigenvalues)


class TestRingPolymerCalculator:
    def test_beads_and_centroid(self, tully_one):
        calc = RingPolymerCalculator(tully_one, n_beads=4)
        r = np.array([[[-0.2, 0.1, 0.3, 0.6]]])
        calc.update_electronics(r)
        np.testing.assert_allclose(calc.centroid.position, [[0.2]])
        assert calc.eigenvalues.shape == (4, 2)
        assert calc.nonadiabatic_coupling.shape == (4, 1, 1, 2, 2)
        for ib, bead in enumerate(calc.beads):
            np.testing.assert_allclose(bead.position, r[..., ib])

    def test_adiabatic_beads(self, harmonic):
        calc = RingPolymerCalculator(harmonic, n_beads=2)
        calc.update_electronics(np.array([[[1.0, -1.0]]]))
        np.testing.assert_allclose(calc.potential, [0.5, 0.5])
        assert calc.centroid.potential == pytest.approx(0.0)
