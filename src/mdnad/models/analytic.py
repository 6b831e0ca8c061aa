# %%
import numpy as np
from numpy.typing import NDArray

from mdnad.models.base import AdiabaticModel, DiabaticModel, FrictionModel

import math
from dataclasses import dataclass

@dataclass
class Harmonic(AdiabaticModel):
    mass: float = 1.0
    omega: float = 1.0
    r0: float = 0.0

    def potential(self, r: NDArray[np.float64]) -> float:
        return 0.5 * self.mass * self.omega**2 * np.sum((r - self.r0)**2)

    def derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.mass * self.omega**2 * (r - self.r0)

@dataclass
class FrictionHarmonic(Harmonic, FrictionModel):
    """Harmonic oscillator with a constant, isotropic electronic friction `eta`."""
    eta: float = 1.0

    def friction(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.eta * np.eye(r.size)

@dataclass
class DoubleWell(DiabaticModel):
    """Two diabatic wells linearly displaced along every degree of freedom.

        V0  = m w^2 r^2 / 2                  (state independent)
        V11 = +gamma * r + bias / 2
        V22 = -gamma * r - bias / 2
        V12 = delta / 2
    """
    mass: float = 1.0
    omega: float = 1.0
    gamma: float = 1.0
    delta: float = 1.0
    bias: float = 0.0
    n_states: int = 2

    def state_independent_potential(self, r: NDArray[np.float64]) -> float:
        return 0.5 * self.mass * self.omega**2 * np.sum(r**2)

    def state_independent_derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.mass * self.omega**2 * r

    def potential(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        v11 = self.gamma * np.sum(r) + 0.5 * self.bias
        v12 = 0.5 * self.delta
        return np.array([[v11, v12], [v12, -v11]])

    def derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        D = np.zeros(r.shape + (2, 2))
        D[..., 0, 0] = self.gamma
        D[..., 1, 1] = -self.gamma
        return D

@dataclass
class TullyModelOne(DiabaticModel):
    """Simple avoided crossing, Tully J. Chem. Phys. 93, 1061 (1990)."""
    a: float = 0.01
    b: float = 1.6
    c: float = 0.005
    d: float = 1.0
    n_states: int = 2

    def potential(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        x = r[0, 0]
        v11 = math.copysign(self.a, x) * (1.0 - math.exp(-self.b * abs(x)))
        v12 = self.c * math.exp(-self.d * x * x)
        return np.array([[v11, v12], [v12, -v11]])

    def derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        x = r[0, 0]
        D = np.zeros(r.shape + (2, 2))
        v11 = self.a * self.b * math.exp(-self.b * abs(x))
        v12 = -2.0 * self.c * self.d * x * math.exp(-self.d * x * x)
        D[0, 0] = [[v11, v12], [v12, -v11]]
        return D

@dataclass
class TullyModelTwo(DiabaticModel):
    """Dual avoided crossing, Tully J. Chem. Phys. 93, 1061 (1990)."""
    a: float = 0.1
    b: float = 0.28
    c: float = 0.015
    d: float = 0.06
    e: float = 0.05
    n_states: int = 2

    def potential(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        x = r[0, 0]
        v22 = -self.a * math.exp(-self.b * x * x) + self.e
        v12 = self.c * math.exp(-self.d * x * x)
        return np.array([[0.0, v12], [v12, v22]])

    def derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        x = r[0, 0]
        D = np.zeros(r.shape + (2, 2))
        v22 = 2.0 * self.a * self.b * x * math.exp(-self.b * x * x)
        v12 = -2.0 * self.c * self.d * x * math.exp(-self.d * x * x)
        D[0, 0] = [[0.0, v12], [v12, v22]]
        return D

@dataclass
class TullyModelThree(DiabaticModel):
    """Extended coupling with reflection, Tully J. Chem. Phys. 93, 1061 (1990)."""
    a: float = 6e-4
    b: float = 0.1
    c: float = 0.9
    n_states: int = 2

    def potential(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        x = r[0, 0]
        if x < 0:
            v12 = self.b * math.exp(self.c * x)
        else:
            v12 = self.b * (2.0 - math.exp(-self.c * x))
        return np.array([[self.a, v12], [v12, -self.a]])

    def derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        x = r[0, 0]
        D = np.zeros(r.shape + (2, 2))
        v12 = self.b * self.c * math.exp(-self.c * abs(x))
        D[0, 0] = [[0.0, v12], [v12, 0.0]]
        return D
