"""
pytest configuration - shared models, simulations and helpers
"""

import numpy as np
import pytest

from mdnad.models import (
    Harmonic,
    DoubleWell,
    TullyModelOne,
    TullyModelTwo,
    NewnsAndersonHarmonic,
)
from mdnad.simulation import Atoms


@pytest.fixture
def rng():
    """Fixed-seed random generator so every test is reproducible"""
    return np.random.default_rng(20240601)


@pytest.fixture
def harmonic():
    return Harmonic(mass=1.0, omega=1.0)


@pytest.fixture
def double_well():
    return DoubleWell(mass=1.0, omega=1.0, gamma=0.5, delta=0.2, bias=0.1)


@pytest.fixture
def tully_one():
    return TullyModelOne()


@pytest.fixture
def tully_two():
    return TullyModelTwo()


@pytest.fixture
def newns_anderson():
    """Small metal: 1 impurity + 8 band orbitals, 4 electrons"""
    return NewnsAndersonHarmonic.initialize(nk=4, W=2e-2, Gamma=1e-3, mass=2000.0)


@pytest.fixture
def one_atom():
    return Atoms(masses=[2000.0])


@pytest.fixture
def light_atom():
    return Atoms(masses=[1.0])


@pytest.fixture
def finite_difference():
    """Central finite difference of f(r) for every element of r, stacked as (*r.shape, *f.shape)"""

    def _fd(f, r, h=1e-6):
        r = np.asarray(r, dtype=np.float64)
        f0 = np.asarray(f(r))
        out = np.zeros(r.shape + f0.shape)
        for idx in np.ndindex(r.shape):
            rp, rm = r.copy(), r.copy()
            rp[idx] += h
            rm[idx] -= h
            out[idx] = (np.asarray(f(rp)) - np.asarray(f(rm))) / (2 * h)
        return out

    return _fd
