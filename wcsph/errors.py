"""Exception types raised by the solver.

Every condition here is fatal: the integrator never catches and retries
them, since SPH errors compound across sub-steps.
"""

from typing import Optional


class SPHError(RuntimeError):
    """Base class for solver failures."""


class NonFiniteStateError(SPHError):
    """NaN or Inf found in a particle field."""

    def __init__(self, stage: str, field: str, index: Optional[int] = None,
                 value: float = float("nan")):
        self.stage = stage
        self.field = field
        self.index = index
        self.value = value
        if index is None:
            msg = f"[{stage}] non-finite '{field}' on every particle"
        else:
            msg = f"[{stage}] non-finite '{field}' at particle {index} (value={value})"
        super().__init__(msg)


class StaleNeighborListError(SPHError):
    """Neighbor data is older than the particle topology it is used with."""


class NeighborOverflowError(SPHError):
    """A particle has more neighbors than the neighbor list can hold."""


class DomainBoundError(SPHError):
    """A particle is still outside a periodic axis after the wrap pass."""


class RestartIOError(SPHError):
    """Restart file missing, unreadable or inconsistent with the body."""


class RegressionTestError(SPHError):
    """Reduced-quantity trajectory deviates from the stored reference."""


class ConfigurationError(ValueError):
    """Invalid simulation configuration."""
