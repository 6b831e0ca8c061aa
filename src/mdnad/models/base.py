# %%
import numpy as np
from numpy.typing import NDArray

from abc import ABC, abstractmethod

class AdiabaticModel(ABC):
    """Single potential energy surface: `potential` is a scalar and `derivative`
    has the shape of the positions, (n_dofs, n_atoms).
    """
    n_states: int = 1

    @abstractmethod
    def potential(self, r: NDArray[np.float64]) -> float:
        ...

    @abstractmethod
    def derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        ...

class DiabaticModel(ABC):
    """Multi-state model in a fixed diabatic basis.

    `potential` returns a Hermitian (n_states, n_states) matrix and `derivative`
    returns an array of shape (n_dofs, n_atoms, n_states, n_states). The part of the
    energy shared by all states is kept out of the matrix and supplied by
    `state_independent_potential` / `state_independent_derivative`.
    """
    n_states: int = 2

    @abstractmethod
    def potential(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        ...

    @abstractmethod
    def derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        ...

    def state_independent_potential(self, r: NDArray[np.float64]) -> float:
        return 0.0

    def state_independent_derivative(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        return np.zeros_like(r, dtype=np.float64)

class FrictionModel(ABC):
    """Capability mixin for models that supply an electronic friction tensor of shape
    (n_dofs * n_atoms, n_dofs * n_atoms), flattened in C order of the positions.
    """

    @abstractmethod
    def friction(self, r: NDArray[np.float64]) -> NDArray[np.float64]:
        ...

def is_diabatic(model) -> bool:
    return isinstance(model, DiabaticModel)

def has_friction(model) -> bool:
    return isinstance(model, FrictionModel)
