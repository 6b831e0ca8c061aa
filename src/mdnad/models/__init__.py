from .base import AdiabaticModel, DiabaticModel, FrictionModel, is_diabatic, has_friction
from .analytic import Harmonic, FrictionHarmonic, DoubleWell, TullyModelOne, TullyModelTwo, TullyModelThree
from .newns_anderson import NewnsAndersonHarmonic

__all__ = [
    "AdiabaticModel",
    "DiabaticModel",
    "FrictionModel",
    "is_diabatic",
    "has_friction",
    "Harmonic",
    "FrictionHarmonic",
    "DoubleWell",
    "TullyModelOne",
    "TullyModelTwo",
    "TullyModelThree",
    "NewnsAndersonHarmonic",
]
