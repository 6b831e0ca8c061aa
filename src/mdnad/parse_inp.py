# %%
from mdnad.errors import ConfigurationError

from enum import Enum
from dataclasses import dataclass, field, fields, MISSING
import warnings
from typing import Dict, Optional

class Method(Enum):
    # classical nuclei on a single adiabatic surface
    CLASSICAL = "classical"
    # classical nuclei with a scalar Langevin thermostat
    LANGEVIN = "langevin"
    # molecular dynamics with electronic friction read from the model
    MDEF = "mdef"
    # electronic friction of Fermi-Dirac occupied orbitals of a metal model
    DIABATIC_MDEF = "diabatic-mdef"
    # mean-field dynamics with an adiabatic density matrix
    EHRENFEST = "ehrenfest"
    # mean-field dynamics of independent electrons
    EHRENFEST_NA = "ehrenfest-na"
    # Tully's fewest switches surface hopping
    FSSH = "fssh"
    # The good old Independent Electron Surface Hopping (IESH)
    IESH = "iesh"
    # spin mapping in the W representation
    SPIN_MAPPING = "spin-mapping"
    # nonadiabatic ring polymer molecular dynamics
    NRPMD = "nrpmd"

    @property
    def is_classical(self):
        return self in [Method.CLASSICAL, Method.LANGEVIN, Method.MDEF, Method.DIABATIC_MDEF]

    @property
    def is_surface_hopping(self):
        return self in [Method.FSSH, Method.IESH]

    @property
    def is_independent_electron(self):
        return self in [Method.EHRENFEST_NA, Method.IESH, Method.DIABATIC_MDEF]

    @classmethod
    def parse(cls, tag) -> "Method":
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).lower())
        except ValueError:
            raise ConfigurationError(f"Invalid method: {tag}. Available methods are: {', '.join([m.value for m in cls])}")

@dataclass
class InputParameters:
    ntrajs: int # number of trajectories
    dt: float # time step in au
    tf: float # final time in au, t0 = 0
    method: Method
    model: str = "newns-anderson" # newns-anderson, harmonic, tully1, tully2, tully3
    saveat: Optional[float] = None # output interval in au
    nk: int = 20 # quadrature points per half band of the electronic bath
    ne: Optional[int] = None # number of electrons, default half filling
    kT: float = 9.5e-4 # thermal energy in au
    W: float = 2e-2 # bandwidth of the bath in au
    Gamma: float = 1e-4 # molecular-bath hybridization Gamma (wide-band limit) in au
    mass: float = 2000.0 # mass of the classical dof
    omega_B: float = 2e-4 # frequency of the classical dof
    gamma: float = 0.0 # langevin friction
    flag_boltzmann: bool = True # flag for boltzmann / wigner initial conditions
    frustrated: str = "keep" # keep / reverse the velocity on frustrated hops
    kernel: str = "GB" # electronic friction kernel
    n_beads: int = 1
    init_state: int = 0
    basis: str = "diabatic"
    x0: float = -5.0 # initial position for the scattering models
    p0: float = 20.0 # initial momentum for the scattering models
    seed: Optional[int] = None
    output_dir: str = field(init=False, default=None)
    n_jobs: int = field(init=False, default=-1)

    def __post_init__(self):
        self.method = Method.parse(self.method)

    @classmethod
    def from_file(cls, file_path):
        with open(file_path, 'r') as f:
            lines = f.readlines()

        # the format is
        # value !! key  comment
        # in any order, lines without '!!' are ignored
        raw: Dict[str, str] = {}
        for line in lines:
            if '!!' not in line:
                continue
            value, comment = line.split('!!', 1)
            if not value.split() or not comment.split():
                continue
            raw[comment.split()[0]] = value.split()[0]

        known = {f.name: f for f in fields(cls) if f.init}
        for key in raw:
            if key not in known:
                warnings.warn(f"Unrecognised input key: {key}, ignored")

        kwargs = {}
        for name, f in known.items():
            if name not in raw:
                if f.default is MISSING and f.default_factory is MISSING:
                    raise ConfigurationError(f"Missing required input: {name}")
                continue
            kwargs[name] = convert(name, raw[name])
        return cls(**kwargs)

# time inputs are given in fs
TIME_KEYS = ("dt", "tf", "saveat")
INT_KEYS = ("ntrajs", "nk", "ne", "n_beads", "init_state", "seed")
BOOL_KEYS = ("flag_boltzmann",)
STR_KEYS = ("method", "model", "frustrated", "kernel", "basis")

def convert(name: str, value: str):
    try:
        if name in TIME_KEYS:
            return fs_to_au(fortran_float_converter(value))
        if name in INT_KEYS:
            return int(value)
        if name in BOOL_KEYS:
            return bool(int(value))
        if name in STR_KEYS:
            return value
        return fortran_float_converter(value)
    except ValueError:
        raise ConfigurationError(f"Cannot read {name} from {value!r}")

def fs_to_au(fs):
    return fs * 41.3413733

def fortran_float_converter(fortran_float: str):
    return float(fortran_float.lower().replace('d', 'e'))
