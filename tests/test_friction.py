import numpy as np
import pytest
from scipy.integrate import quad

from mdnad.calculators import DiabaticFrictionCalculator, FrictionKernel, fermi, dfermi, fermi_level
from mdnad.calculators.friction import (
    friction_wideband, friction_gaussian_broadening, friction_direct_quadrature, gauss,
)
from mdnad.models import NewnsAndersonHarmonic
from mdnad.errors import ConfigurationError


def test_fermi_function_limits():
    assert fermi(-1.0, 0.0, 0.0) == 1.0
    assert fermi(1.0, 0.0, 0.0) == 0.0
    assert fermi(0.0, 0.0, 0.01) == pytest.approx(0.5)
    # no overflow deep in the tails
    assert fermi(10.0, 0.0, 1e-4) == pytest.approx(0.0)
    assert fermi(-10.0, 0.0, 1e-4) == pytest.approx(1.0)
    assert dfermi(0.3, 0.0, 0.0) == 0.0


def test_dfermi_is_normalised():
    kT = 0.01
    integral, _ = quad(lambda e: -dfermi(e, 0.0, kT), -1.0, 1.0, points=[0.0])
    assert integral == pytest.approx(1.0, rel=1e-8)


def test_fermi_level():
    evals = np.array([-0.3, -0.1, 0.1, 0.2])
    assert fermi_level(evals, 2, 0.0) == pytest.approx(0.0)
    mu = fermi_level(evals, 2, 0.05)
    assert sum(fermi(e, mu, 0.05) for e in evals) == pytest.approx(2.0)
    with pytest.raises(ConfigurationError):
        fermi_level(evals, 4, 0.05)


def test_kernel_parse():
    assert FrictionKernel.parse("gb") == FrictionKernel.GB
    assert FrictionKernel.parse(FrictionKernel.WB) == FrictionKernel.WB
    with pytest.raises(ConfigurationError):
        FrictionKernel.parse("golden-rule")


def test_wideband_zero_temperature_limit():
    h, dh, Gamma = 0.005, 1e-3, 1e-2
    analytic = friction_wideband(h, dh, Gamma, 0.0, -0.05, 0.05, 0.0, 0.0)
    A = Gamma / (2 * np.pi) / (h**2 + (Gamma / 2)**2)
    assert analytic == pytest.approx(np.pi * dh**2 * A**2)
    numerical = friction_wideband(h, dh, Gamma, 0.0, -0.05, 0.05, 0.0, 1e-5)
    assert numerical == pytest.approx(analytic, rel=1e-3)


def test_gaussian_broadening_is_symmetric():
    rng = np.random.default_rng(7)
    A = rng.normal(size=(5, 5))
    B = rng.normal(size=(5, 5))
    dH_i, dH_j = A + A.T, B + B.T
    evals = np.linspace(-0.02, 0.02, 5)
    ij = friction_gaussian_broadening(dH_i, dH_j, evals, 0.0, 0.01, 0.01)
    ji = friction_gaussian_broadening(dH_j, dH_i, evals, 0.0, 0.01, 0.01)
    assert ij == pytest.approx(ji)


@pytest.mark.parametrize("kernel", ["GB", "ONGB", "DQ", "WB"])
def test_friction_is_positive(newns_anderson, kernel):
    calc = DiabaticFrictionCalculator(newns_anderson, kernel=kernel)
    r = np.array([[3.0]])
    calc.update_electronics(r)
    calc.evaluate_friction(r, kT=5e-3)
    assert calc.friction.shape == (1, 1)
    assert calc.friction[0, 0] > 0.0


def test_fermi_level_from_model(newns_anderson):
    calc = DiabaticFrictionCalculator(newns_anderson)
    assert calc.fermi_level(0.01) == newns_anderson.fermi_level
    calc = DiabaticFrictionCalculator(newns_anderson, fermi_level=0.002)
    assert calc.fermi_level(0.01) == 0.002


def test_wideband_at_fermi_level():
    dh, Gamma = 2e-3, 1e-2
    out = friction_wideband(0.0, dh, Gamma, 0.0, -0.05, 0.05, 0.0, 0.0)
    assert out == pytest.approx(4 * dh**2 / (np.pi * Gamma**2))


def test_gaussian_broadening_two_orbitals():
    evals = np.array([-0.01, 0.01])
    dH = np.array([[0.3, 0.2], [0.2, -0.1]])
    kT, sigma = 0.01, 0.02
    expected = np.pi * (
        -(dH[0, 0]**2 * gauss(0.0, sigma) + dH[0, 1]**2 * gauss(-0.02, sigma)) * dfermi(evals[0], 0.0, kT)
        - (dH[1, 0]**2 * gauss(0.02, sigma) + dH[1, 1]**2 * gauss(0.0, sigma)) * dfermi(evals[1], 0.0, kT)
    )
    out = friction_gaussian_broadening(dH, dH, evals, 0.0, kT, sigma)
    assert out == pytest.approx(expected)
    assert out > 0.0


def test_direct_quadrature_single_orbital():
    evals = np.array([0.004])
    dH = np.array([[0.5]])
    rho = np.array([30.0])
    kT = 0.01
    out = friction_direct_quadrature(dH, dH, evals, 0.0, kT, rho)
    assert out == pytest.approx(np.pi * 0.5**2 * 30.0 * -dfermi(0.004, 0.0, kT))
    assert out > 0.0


def uniform_band_model(n_bath, W, Gamma):
    """Newns-Anderson model with an evenly spaced band and the impurity at the Fermi level
    for r = 0. The couplings give the hybridisation `Gamma` across the whole band."""
    spacing = W / n_bath
    ek = -0.5 * W + spacing * (np.arange(n_bath) + 0.5)
    vk = np.full(n_bath, np.sqrt(spacing))
    return NewnsAndersonHarmonic(n_bath // 2, ek, vk, W=W, Gamma=Gamma, Er=0.00125, dG=-0.00125)


def test_density_of_states_of_uniform_band():
    model = uniform_band_model(200, 0.2, 0.02)
    calc = DiabaticFrictionCalculator(model, kernel="DQ")
    calc.update_electronics(np.zeros((1, 1)))
    rho = calc.density_of_states()
    assert rho.shape == (201,)
    middle = np.abs(calc.eigenvalues) < 0.05
    np.testing.assert_allclose(rho[middle], 200 / 0.2, rtol=0.1)


@pytest.mark.parametrize("kernel", ["GB", "ONGB", "DQ"])
def test_kernels_approach_wideband_limit(kernel):
    # band spacing << broadening << Gamma << bandwidth, and spacing << kT
    W, Gamma, kT = 0.2, 0.02, 5e-3
    model = uniform_band_model(1600, W, Gamma)
    calc = DiabaticFrictionCalculator(model, kernel=kernel, width=1e-3)
    r = np.zeros((1, 1))
    calc.update_electronics(r)
    assert calc.potential[0, 0] == pytest.approx(0.0, abs=1e-12)

    dh = calc.derivative[0, 0, 0, 0]
    wideband = friction_wideband(0.0, dh, Gamma, 0.0, -0.5 * W, 0.5 * W, 0.0, kT)
    calc.evaluate_friction(r, kT)
    assert calc.friction[0, 0] == pytest.approx(wideband, rel=0.1)

    calc.kernel = FrictionKernel.WB
    calc.evaluate_friction(r, kT)
    assert calc.friction[0, 0] == pytest.approx(wideband, rel=1e-4)
