"""
Fluid stage pipeline.

A stage is an object with a ``name`` and ``apply(particles, neighbors, dt)``.
Stages keep only their physical parameters; all state lives in the
particle arrays, so applying a stage twice to identical inputs gives
identical outputs.

Window stages (once per advection step):
    TimeStepInitialization -> DensitySummation -> ViscousAcceleration
    -> TransportVelocityCorrection
Sub-cycle stages (once per acoustic step):
    PressureRelaxation -> DensityRelaxationRiemann
"""

from typing import Optional

from .. import api
from ..core.particles import FluidParticles
from ..core.neighbors_vectorized import NeighborList
from ..core.kernel_vectorized import WendlandC2Kernel
from .material import WeaklyCompressibleFluid


class FluidStage:
    """Base class for one step of the fluid pipeline."""
    name = "fluid_stage"

    # Fields checked for NaN/Inf after apply()
    checked_fields = ()

    def __init__(self, backend: Optional[str] = None):
        self.backend = backend

    def apply(self, particles: FluidParticles, neighbors: NeighborList, dt: float):
        neighbors.assert_current(particles, self.name)
        self._apply(particles, neighbors, dt)
        if self.checked_fields:
            particles.check_finite(self.name, self.checked_fields)

    def _apply(self, particles: FluidParticles, neighbors: NeighborList, dt: float):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(backend={self.backend!r})"


class TimeStepInitialization(FluidStage):
    """Clear the acceleration accumulator at the start of a window.

    Does not read the neighbor list, so it is valid right after a wrap.
    """
    name = "time_step_initialization"

    def apply(self, particles: FluidParticles, neighbors: NeighborList = None, dt: float = 0.0):
        particles.reset_accelerations()


class DensitySummation(FluidStage):
    """ρᵢ = ρ0 (W(0) + Σⱼ W_ij) / σ0 with pressure from the EOS."""
    name = "density_summation"
    checked_fields = ('density', 'pressure')

    def __init__(self, kernel: WendlandC2Kernel, sigma0: float,
                 material: WeaklyCompressibleFluid, backend: Optional[str] = None):
        super().__init__(backend)
        if not sigma0 > 0.0:
            raise ValueError(f"Reference number density must be positive, got {sigma0}")
        self.W_self = kernel.W_self()
        self.sigma0 = float(sigma0)
        self.material = material

    def _apply(self, particles, neighbors, dt):
        api.density_summation(particles, neighbors, self.W_self, self.sigma0,
                              self.material, backend=self.backend)


class ViscousAcceleration(FluidStage):
    name = "viscous_acceleration"
    checked_fields = ('acceleration_prior_x', 'acceleration_prior_y')

    def __init__(self, material: WeaklyCompressibleFluid, smoothing_length: float,
                 backend: Optional[str] = None):
        super().__init__(backend)
        self.viscosity = material.dynamic_viscosity
        self.smoothing_length = float(smoothing_length)

    def _apply(self, particles, neighbors, dt):
        api.viscous_acceleration(particles, neighbors, self.viscosity,
                                 self.smoothing_length, backend=self.backend)


class TransportVelocityCorrection(FluidStage):
    """Shift particles away from clustered neighbors over the window.

    ``dt`` is the advection step Dt the correction is spread over.
    """
    name = "transport_velocity_correction"
    checked_fields = ('correction_velocity_x', 'correction_velocity_y')

    def __init__(self, smoothing_length: float, coefficient: float = 0.2,
                 backend: Optional[str] = None):
        super().__init__(backend)
        self.smoothing_length = float(smoothing_length)
        self.coefficient = float(coefficient)

    def _apply(self, particles, neighbors, dt):
        if not dt > 0.0:
            raise ValueError(f"Advection step must be positive, got {dt}")
        api.transport_velocity_correction(particles, neighbors, self.coefficient,
                                          self.smoothing_length, dt, backend=self.backend)


class PressureRelaxation(FluidStage):
    name = "pressure_relaxation"
    checked_fields = ('position_x', 'position_y', 'velocity_x', 'velocity_y', 'density')

    def __init__(self, material: WeaklyCompressibleFluid, backend: Optional[str] = None):
        super().__init__(backend)
        self.material = material

    def _apply(self, particles, neighbors, dt):
        api.pressure_relaxation(particles, neighbors, self.material, dt, backend=self.backend)


class DensityRelaxationRiemann(FluidStage):
    name = "density_relaxation_riemann"
    checked_fields = ('position_x', 'position_y', 'density')

    def __init__(self, material: WeaklyCompressibleFluid, backend: Optional[str] = None):
        super().__init__(backend)
        self.material = material

    def _apply(self, particles, neighbors, dt):
        api.density_relaxation(particles, neighbors, self.material, dt, backend=self.backend)
