"""
Time-step estimators for the dual-rate stepper.

Two independent reductions over all particles:
- advection-limited Dt from particle speed (floored by a reference speed)
- acoustic-limited dt from sound speed plus particle speed

Both are pure: they read particle state and return a step size.
"""

import numpy as np

from .particles import FluidParticles
from ..physics.material import WeaklyCompressibleFluid


class AdvectionTimeStep:
    """Dt = CFL_adv * h / max(max_i |v_i|, U_floor).

    U_floor is the larger of the reference velocity and the viscous
    speed μ / (ρ0 h), so a fluid at rest still advances.
    """
    name = "advection_time_step"

    def __init__(self, smoothing_length: float, reference_velocity: float,
                 material: WeaklyCompressibleFluid, cfl: float = 0.25):
        """
        Args:
            smoothing_length: Kernel smoothing length h
            reference_velocity: Characteristic flow speed U_ref
            material: Fluid providing viscosity and reference density
            cfl: Advection CFL number
        """
        self.h = float(smoothing_length)
        self.cfl = float(cfl)
        viscous_speed = material.kinematic_viscosity / self.h
        self.speed_floor = max(float(reference_velocity), viscous_speed)

    def reduce(self, particles: FluidParticles) -> float:
        """Maximum speed over all particles (the limiting quantity)."""
        particles.check_finite(self.name, ('velocity_x', 'velocity_y'))
        if particles.n_particles == 0:
            return 0.0
        return float(np.sqrt(np.max(particles.velocity_x**2 + particles.velocity_y**2)))

    def estimate(self, particles: FluidParticles) -> float:
        speed_max = max(self.reduce(particles), self.speed_floor)
        return self.cfl * self.h / speed_max


class AcousticTimeStep:
    """dt = CFL_ac * h / max_i (c_i + |v_i|)."""
    name = "acoustic_time_step"

    def __init__(self, smoothing_length: float, material: WeaklyCompressibleFluid,
                 cfl: float = 0.6):
        self.h = float(smoothing_length)
        self.material = material
        self.cfl = float(cfl)

    def reduce(self, particles: FluidParticles) -> float:
        """Maximum signal speed c_i + |v_i| over all particles."""
        particles.check_finite(self.name, ('velocity_x', 'velocity_y', 'density'))
        if particles.n_particles == 0:
            return self.material.sound_speed_ref
        speed = particles.speed()
        sound = self.material.sound_speed(particles.pressure, particles.density)
        return float(np.max(sound + speed))

    def estimate(self, particles: FluidParticles) -> float:
        return self.cfl * self.h / self.reduce(particles)


def timestep_diagnostics(particles: FluidParticles, advection: AdvectionTimeStep,
                         acoustic: AcousticTimeStep) -> dict:
    """Step sizes and the quantities limiting them, for debugging.

    Returns dict with:
        - advection_dt / acoustic_dt
        - max_speed, signal_speed
        - floored: True if the advection step is set by the speed floor
        - sub_steps: acoustic steps needed per advection window
    """
    max_speed = advection.reduce(particles)
    advection_dt = advection.estimate(particles)
    acoustic_dt = acoustic.estimate(particles)
    return {
        'advection_dt': advection_dt,
        'acoustic_dt': acoustic_dt,
        'max_speed': max_speed,
        'signal_speed': acoustic.reduce(particles),
        'floored': max_speed < advection.speed_floor,
        'sub_steps': int(np.ceil(advection_dt / min(acoustic_dt, advection_dt))),
    }
