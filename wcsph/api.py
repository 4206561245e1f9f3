"""
Unified API for the fluid stages with backend dispatch.

This module registers the CPU (NumPy) and Numba implementations of every
stage kernel and the neighbor build, and exposes functions that route to
whichever backend is current (or the one passed explicitly).
"""

from typing import Optional

from .core.backend import (dispatch, set_backend, get_backend, backend_info,
                           backend_function, for_backend, Backend)
from .core.particles import FluidParticles
from .core.kernel_vectorized import WendlandC2Kernel
from .core.cell_list import CellLinkedList
from .core.neighbors_vectorized import NeighborList, build_neighbors_vectorized
from .core.neighbors_numba import build_neighbors_numba
from .physics.material import WeaklyCompressibleFluid

# CPU implementations
from .physics.fluid_vectorized import (
    compute_density_summation_vectorized,
    compute_viscous_acceleration_vectorized,
    compute_transport_correction_vectorized,
    compute_pressure_relaxation_vectorized,
    compute_density_relaxation_riemann_vectorized,
)

# Numba implementations
from .physics.fluid_numba import (
    compute_density_summation_numba,
    compute_viscous_acceleration_numba,
    compute_transport_correction_numba,
    compute_pressure_relaxation_numba,
    compute_density_relaxation_riemann_numba,
)


# Register CPU implementations
@backend_function("build_neighbors")
@for_backend(Backend.CPU)
def _build_neighbors_cpu(particles, cell_list, kernel, neighbors):
    build_neighbors_vectorized(particles, cell_list, kernel, neighbors)


@backend_function("density_summation")
@for_backend(Backend.CPU)
def _density_summation_cpu(particles, neighbors, W_self, sigma0, material):
    compute_density_summation_vectorized(particles, neighbors, W_self, sigma0, material)


@backend_function("viscous_acceleration")
@for_backend(Backend.CPU)
def _viscous_acceleration_cpu(particles, neighbors, viscosity, smoothing_length):
    compute_viscous_acceleration_vectorized(particles, neighbors, viscosity, smoothing_length)


@backend_function("transport_velocity_correction")
@for_backend(Backend.CPU)
def _transport_correction_cpu(particles, neighbors, coefficient, smoothing_length, advection_dt):
    compute_transport_correction_vectorized(particles, neighbors, coefficient,
                                            smoothing_length, advection_dt)


@backend_function("pressure_relaxation")
@for_backend(Backend.CPU)
def _pressure_relaxation_cpu(particles, neighbors, material, dt):
    compute_pressure_relaxation_vectorized(particles, neighbors, material, dt)


@backend_function("density_relaxation")
@for_backend(Backend.CPU)
def _density_relaxation_cpu(particles, neighbors, material, dt):
    compute_density_relaxation_riemann_vectorized(particles, neighbors, material, dt)


# Register Numba implementations
@backend_function("build_neighbors")
@for_backend(Backend.NUMBA)
def _build_neighbors_numba(particles, cell_list, kernel, neighbors):
    build_neighbors_numba(particles, cell_list, kernel, neighbors)


@backend_function("density_summation")
@for_backend(Backend.NUMBA)
def _density_summation_numba(particles, neighbors, W_self, sigma0, material):
    compute_density_summation_numba(particles, neighbors, W_self, sigma0, material)


@backend_function("viscous_acceleration")
@for_backend(Backend.NUMBA)
def _viscous_acceleration_numba(particles, neighbors, viscosity, smoothing_length):
    compute_viscous_acceleration_numba(particles, neighbors, viscosity, smoothing_length)


@backend_function("transport_velocity_correction")
@for_backend(Backend.NUMBA)
def _transport_correction_numba(particles, neighbors, coefficient, smoothing_length, advection_dt):
    compute_transport_correction_numba(particles, neighbors, coefficient,
                                       smoothing_length, advection_dt)


@backend_function("pressure_relaxation")
@for_backend(Backend.NUMBA)
def _pressure_relaxation_numba(particles, neighbors, material, dt):
    compute_pressure_relaxation_numba(particles, neighbors, material, dt)


@backend_function("density_relaxation")
@for_backend(Backend.NUMBA)
def _density_relaxation_numba(particles, neighbors, material, dt):
    compute_density_relaxation_riemann_numba(particles, neighbors, material, dt)


# Public API functions that dispatch to the appropriate backend
def build_neighbors(particles: FluidParticles, cell_list: CellLinkedList,
                    kernel: WendlandC2Kernel, neighbors: NeighborList,
                    backend: Optional[str] = None):
    """Rebuild the neighbor list from a freshly built cell list.

    Args:
        particles: Fluid particles
        cell_list: Cell list built at the particles' current topology epoch
        kernel: Smoothing kernel
        neighbors: Neighbor list to overwrite
        backend: Override backend ('cpu', 'numba', or None for current)
    """
    dispatch("build_neighbors", particles, cell_list, kernel, neighbors, backend=backend)


def density_summation(particles: FluidParticles, neighbors: NeighborList,
                      W_self: float, sigma0: float, material: WeaklyCompressibleFluid,
                      backend: Optional[str] = None):
    """Density from the kernel-weighted number density, then pressure."""
    dispatch("density_summation", particles, neighbors, W_self, sigma0, material,
             backend=backend)


def viscous_acceleration(particles: FluidParticles, neighbors: NeighborList,
                         viscosity: float, smoothing_length: float,
                         backend: Optional[str] = None):
    """Add viscous acceleration to the per-window accumulator."""
    dispatch("viscous_acceleration", particles, neighbors, viscosity, smoothing_length,
             backend=backend)


def transport_velocity_correction(particles: FluidParticles, neighbors: NeighborList,
                                  coefficient: float, smoothing_length: float,
                                  advection_dt: float, backend: Optional[str] = None):
    """Set the advection-correction velocity for the coming window."""
    dispatch("transport_velocity_correction", particles, neighbors, coefficient,
             smoothing_length, advection_dt, backend=backend)


def pressure_relaxation(particles: FluidParticles, neighbors: NeighborList,
                        material: WeaklyCompressibleFluid, dt: float,
                        backend: Optional[str] = None):
    """First half of the acoustic step (drift, pressure force, kick)."""
    dispatch("pressure_relaxation", particles, neighbors, material, dt, backend=backend)


def density_relaxation(particles: FluidParticles, neighbors: NeighborList,
                       material: WeaklyCompressibleFluid, dt: float,
                       backend: Optional[str] = None):
    """Second half of the acoustic step (drift, Riemann continuity)."""
    dispatch("density_relaxation", particles, neighbors, material, dt, backend=backend)


__all__ = [
    # API functions
    'build_neighbors',
    'density_summation',
    'viscous_acceleration',
    'transport_velocity_correction',
    'pressure_relaxation',
    'density_relaxation',

    # Backend management
    'set_backend',
    'get_backend',
    'backend_info',
]
