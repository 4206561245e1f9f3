"""Weakly-compressible SPH solver for the 2-D periodic Taylor-Green vortex."""

from . import core
from . import physics

# Import API to trigger backend registration
from . import api
from .api import set_backend, get_backend, backend_info

from .config import SimulationConfig
from .clock import SimulationClock
from .errors import (
    SPHError,
    NonFiniteStateError,
    StaleNeighborListError,
    NeighborOverflowError,
    DomainBoundError,
    RestartIOError,
    RegressionTestError,
    ConfigurationError,
)
from .integrator import TimeIntegrator, IntegratorState
from .simulation import TaylorGreenSimulation

__version__ = "0.1.0"

__all__ = [
    # Modules
    'core',
    'physics',
    'api',

    # Session
    'SimulationConfig',
    'SimulationClock',
    'TaylorGreenSimulation',
    'TimeIntegrator',
    'IntegratorState',

    # Backend management
    'set_backend',
    'get_backend',
    'backend_info',

    # Errors
    'SPHError',
    'NonFiniteStateError',
    'StaleNeighborListError',
    'NeighborOverflowError',
    'DomainBoundError',
    'RestartIOError',
    'RegressionTestError',
    'ConfigurationError',
]
