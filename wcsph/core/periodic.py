"""
Periodic domain description and the bound-wrap pass.

After each advection window particles that left the box along a
periodic axis are translated back by exactly one domain length.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .particles import FluidParticles
from ..errors import DomainBoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodicDomain:
    """Axis-aligned box with a per-axis periodicity flag."""
    lower: Tuple[float, float]
    upper: Tuple[float, float]
    periodic: Tuple[bool, bool] = (True, True)

    def __post_init__(self):
        for axis in range(2):
            if not self.upper[axis] > self.lower[axis]:
                raise ValueError(f"Empty domain along axis {axis}: {self.lower} - {self.upper}")

    @property
    def length(self) -> Tuple[float, float]:
        return (self.upper[0] - self.lower[0], self.upper[1] - self.lower[1])

    def minimum_image(self, dx: np.ndarray, dy: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Shortest periodic image of displacement vectors."""
        lx, ly = self.length
        if self.periodic[0]:
            dx = dx - lx * np.rint(dx / lx)
        if self.periodic[1]:
            dy = dy - ly * np.rint(dy / ly)
        return dx, dy

    def contains(self, particles: FluidParticles) -> bool:
        """True if every position lies in [lower, upper) on periodic axes."""
        ok = True
        for axis, pos in enumerate((particles.position_x, particles.position_y)):
            if self.periodic[axis]:
                ok &= bool(np.all((pos >= self.lower[axis]) & (pos < self.upper[axis])))
        return ok


def wrap_coordinate(pos: np.ndarray, lower: float, upper: float) -> int:
    """Wrap one coordinate array in place into [lower, upper).

    Args:
        pos: Coordinates along one axis (modified in place)
        lower: Lower bound of the box
        upper: Upper bound of the box

    Returns:
        Number of particles that were translated
    """
    length = upper - lower

    above = pos >= upper
    below = pos < lower
    pos[above] -= length
    pos[below] += length

    # x slightly below lower may round to exactly upper after the shift;
    # such a particle sits on the lower face instead
    on_upper = pos >= upper
    pos[on_upper] = lower

    return int(np.count_nonzero(above) + np.count_nonzero(below))


class PeriodicBounding:
    """Bound-wrap pass over all periodic axes of a domain."""

    def __init__(self, domain: PeriodicDomain):
        self.domain = domain

    def apply(self, particles: FluidParticles) -> int:
        """Wrap particle positions, preserving every other field.

        Bumps the particle topology epoch so neighbor data from before the
        wrap is recognized as stale.

        Returns:
            Number of coordinate translations performed

        Raises:
            DomainBoundError: If a finite coordinate was more than one domain
                length outside the box and is still out of range
        """
        particles.mark_topology_changed()
        n_wrapped = 0
        for axis, pos in enumerate((particles.position_x, particles.position_y)):
            if not self.domain.periodic[axis]:
                continue
            lower, upper = self.domain.lower[axis], self.domain.upper[axis]
            n_wrapped += wrap_coordinate(pos, lower, upper)

            # Non-finite coordinates are left for the cell list to report
            outside = np.isfinite(pos) & ((pos < lower) | (pos >= upper))
            if outside.any():
                index = int(np.argmax(outside))
                logger.error("Particle %d at %.9g is outside [%g, %g) after wrapping axis %d",
                             index, pos[index], lower, upper, axis)
                raise DomainBoundError(
                    f"Particle {index} at {pos[index]} is more than one domain length "
                    f"outside [{lower}, {upper}) along axis {axis}")

        if n_wrapped:
            logger.debug("Periodic bounding translated %d coordinates", n_wrapped)
        return n_wrapped
