from .calculator import (
    AdiabaticCalculator,
    DiabaticCalculator,
    FrictionCalculator,
    DiabaticFrictionCalculator,
    RingPolymerCalculator,
    Calculator,
)
from .friction import FrictionKernel, fermi, dfermi, gauss, fermi_level
from .utils import align_phase, evaluate_nonadiabatic_couplings

__all__ = [
    "AdiabaticCalculator",
    "DiabaticCalculator",
    "FrictionCalculator",
    "DiabaticFrictionCalculator",
    "RingPolymerCalculator",
    "Calculator",
    "FrictionKernel",
    "fermi",
    "dfermi",
    "gauss",
    "fermi_level",
    "align_phase",
    "evaluate_nonadiabatic_couplings",
]
