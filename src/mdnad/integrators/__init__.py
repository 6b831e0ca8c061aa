from .steps import FixedStepAlgorithm
from .verlet import VelocityVerlet, VerletwithElectronics
from .ring_polymer import BCB, BCBwithElectronics, BCOCB
from .mdef_baoab import MDEF_BAOAB
from .mint import MInt, RingPolymerMInt, mint_core
from .adaptive import Adaptive

__all__ = [
    "FixedStepAlgorithm",
    "VelocityVerlet",
    "VerletwithElectronics",
    "BCB",
    "BCBwithElectronics",
    "BCOCB",
    "MDEF_BAOAB",
    "MInt",
    "RingPolymerMInt",
    "mint_core",
    "Adaptive",
]
