from .errors import ConfigurationError, IntegrationError, DegenerateStatesWarning
from .simulation import Atoms, Simulation, RingPolymerSimulation, DynamicsVariables
from .run import run_dynamics, run_ensemble

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "IntegrationError",
    "DegenerateStatesWarning",
    "Atoms",
    "Simulation",
    "RingPolymerSimulation",
    "DynamicsVariables",
    "run_dynamics",
    "run_ensemble",
]
