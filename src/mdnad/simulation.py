# %%
import numpy as np
from numpy.typing import NDArray

from mdnad.calculators import Calculator
from mdnad.models.base import is_diabatic, has_friction
from mdnad.ring_polymer import centroid
from mdnad.errors import ConfigurationError

from dataclasses import dataclass, fields
from copy import deepcopy
from typing import Callable, Optional, Sequence, Union

@dataclass
class Atoms:
    masses: NDArray[np.float64]
    mobile: Optional[NDArray[np.bool_]] = None   # frozen atoms never move

    def __post_init__(self):
        self.masses = np.atleast_1d(np.asarray(self.masses, dtype=np.float64))
        if self.mobile is None:
            self.mobile = np.ones(self.masses.size, dtype=bool)
        self.mobile = np.atleast_1d(np.asarray(self.mobile, dtype=bool))
        if self.mobile.size != self.masses.size:
            raise ConfigurationError(f"Got {self.mobile.size} mobility flags for {self.masses.size} atoms.")

    @property
    def n_atoms(self) -> int:
        return self.masses.size

class Simulation:
    """Binds the atoms, the model (through its calculator) and a dynamics method for one
    trajectory. The simulation owns the calculator and the method scratch exclusively.
    """
    is_ring_polymer = False

    def __init__(
        self,
        atoms: Atoms,
        model,
        method,
        n_dofs: int = 1,
        temperature: Union[float, Callable[[float], float]] = 0.0,
        **calculator_kwargs,
    ):
        self.atoms = atoms
        self.method = method
        self.n_dofs = n_dofs
        self._temperature = temperature
        check_model(method, model)
        kwargs = dict(getattr(method, "calculator_kwargs", {}))
        kwargs.update(calculator_kwargs)
        self.calculator = self._make_calculator(model, kwargs)

    def _make_calculator(self, model, kwargs):
        return Calculator(model, **kwargs)

    @property
    def model(self):
        return self.calculator.model

    @property
    def n_atoms(self) -> int:
        return self.atoms.n_atoms

    @property
    def n_states(self) -> int:
        return self.model.n_states

    @property
    def masses(self) -> NDArray[np.float64]:
        # broadcastable against (n_dofs, n_atoms)
        return self.atoms.masses[None, :]

    @property
    def mobile(self) -> NDArray[np.bool_]:
        return self.atoms.mobile[None, :]

    @property
    def shape(self):
        return (self.n_dofs, self.n_atoms)

    def temperature(self, t: float = 0.0) -> float:
        if callable(self._temperature):
            return self._temperature(t)
        return self._temperature

    @property
    def electronic_calculator(self):
        # the calculator whose eigenbasis carries the electronic variables
        return self.calculator

    def electronic_velocity(self, v: NDArray[np.float64]) -> NDArray[np.float64]:
        return v

    def kinetic_energy(self, v: NDArray[np.float64]) -> float:
        return 0.5 * np.sum(self.masses * v**2)

class RingPolymerSimulation(Simulation):
    """Simulation with every degree of freedom discretised into `n_beads` replicas.
    Springs only join the beads of `quantum_nuclei` (default: all atoms), and the
    electronic variables follow the centroid.
    """
    is_ring_polymer = True

    def __init__(
        self,
        atoms: Atoms,
        model,
        method,
        n_beads: int,
        n_dofs: int = 1,
        temperature: Union[float, Callable[[float], float]] = 0.0,
        quantum_nuclei: Optional[Sequence[int]] = None,
        **calculator_kwargs,
    ):
        if n_beads < 1:
            raise ConfigurationError(f"Need at least one bead, got {n_beads}.")
        self.n_beads = n_beads
        super().__init__(atoms, model, method, n_dofs=n_dofs, temperature=temperature, **calculator_kwargs)
        if not callable(temperature) and temperature <= 0:
            raise ConfigurationError("Ring polymer simulations need a positive temperature.")
        self.quantum = np.zeros(atoms.n_atoms, dtype=bool)
        if quantum_nuclei is None:
            self.quantum[:] = True
        else:
            self.quantum[list(quantum_nuclei)] = True

    def _make_calculator(self, model, kwargs):
        kwargs.pop("friction_kernel", None)
        kwargs.pop("width", None)
        kwargs.pop("fermi_level", None)
        return Calculator(model, n_beads=self.n_beads, **kwargs)

    @property
    def masses(self) -> NDArray[np.float64]:
        return self.atoms.masses[None, :, None]

    @property
    def mobile(self) -> NDArray[np.bool_]:
        return self.atoms.mobile[None, :, None]

    @property
    def shape(self):
        return (self.n_dofs, self.n_atoms, self.n_beads)

    def omega_n(self, t: float = 0.0) -> float:
        return self.n_beads * self.temperature(t)

    @property
    def electronic_calculator(self):
        return self.calculator.centroid

    def electronic_velocity(self, v: NDArray[np.float64]) -> NDArray[np.float64]:
        return centroid(v)

def check_model(method, model) -> None:
    needs = getattr(method, "model_requirement", None)
    name = type(method).__name__
    if needs == "diabatic" and not is_diabatic(model):
        raise ConfigurationError(f"{name} needs a diabatic model, got {type(model).__name__}.")
    if needs == "adiabatic" and is_diabatic(model):
        raise ConfigurationError(f"{name} needs an adiabatic model, got {type(model).__name__}.")
    if needs == "friction" and not has_friction(model):
        raise ConfigurationError(f"{name} needs a model with friction, got {type(model).__name__}.")

@dataclass
class DynamicsVariables:
    v: NDArray[np.float64]
    r: NDArray[np.float64]
    sigma: Optional[NDArray[np.complex128]] = None   # density matrix or orbital wavefunctions
    state: Optional[Union[int, NDArray[np.int64]]] = None   # active state or occupations
    mapping_q: Optional[NDArray[np.float64]] = None
    mapping_p: Optional[NDArray[np.float64]] = None

    def copy(self) -> "DynamicsVariables":
        return deepcopy(self)

    def _continuous(self):
        for f in fields(self):
            if f.name == "state":
                continue
            x = getattr(self, f.name)
            if x is not None:
                yield f.name, x

    def to_vector(self) -> NDArray[np.float64]:
        """Flatten the continuous variables into one real vector, complex arrays as (real, imag)."""
        parts = []
        for _, x in self._continuous():
            if np.iscomplexobj(x):
                parts += [x.real.ravel(), x.imag.ravel()]
            else:
                parts.append(np.ravel(x))
        return np.concatenate(parts)

    def from_vector(self, y: NDArray[np.float64]) -> None:
        ii = 0
        for name, x in list(self._continuous()):
            n = x.size
            if np.iscomplexobj(x):
                new = y[ii:ii+n] + 1.j * y[ii+n:ii+2*n]
                ii += 2 * n
            else:
                new = y[ii:ii+n]
                ii += n
            setattr(self, name, np.array(new, dtype=x.dtype).reshape(x.shape))

    def is_finite(self) -> bool:
        return all(np.all(np.isfinite(x)) for _, x in self._continuous())
