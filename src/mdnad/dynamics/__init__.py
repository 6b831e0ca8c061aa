from .method import DynamicsMethod
from .classical import Classical, Langevin, ThermalLangevin
from .mdef import MDEF, DiabaticMDEF
from .ehrenfest import Ehrenfest, EhrenfestNA
from .fssh import FSSH, FrustratedHop
from .iesh import IESH
from .mapping import SpinMappingW, NRPMD

__all__ = [
    "DynamicsMethod",
    "Classical",
    "Langevin",
    "ThermalLangevin",
    "MDEF",
    "DiabaticMDEF",
    "Ehrenfest",
    "EhrenfestNA",
    "FSSH",
    "FrustratedHop",
    "IESH",
    "SpinMappingW",
    "NRPMD",
]
