"""Global reductions over the fluid body used for monitoring."""

import numpy as np

from ..core.particles import FluidParticles


def total_mechanical_energy(particles: FluidParticles) -> float:
    """Kinetic energy Σ ½ mᵢ |vᵢ|² (no body force in this case)."""
    v2 = particles.velocity_x**2 + particles.velocity_y**2
    return float(0.5 * np.sum(particles.mass * v2))


def maximum_speed(particles: FluidParticles) -> float:
    if particles.n_particles == 0:
        return 0.0
    return float(np.max(particles.speed()))


# Reduced quantities recorded per output interval, keyed by file name
REDUCED_QUANTITIES = {
    'TotalMechanicalEnergy': total_mechanical_energy,
    'MaximumSpeed': maximum_speed,
}
