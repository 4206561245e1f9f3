"""
Numba-optimized fluid dynamics.

Parallel (prange) versions of the functions in fluid_vectorized. Each
stage that reads neighbor state updated in the same stage is split into
separate parallel loops; returning from one loop is the barrier before
the next reads its results.
"""

import numpy as np
import numba as nb

from ..core.particles import FluidParticles
from ..core.neighbors_vectorized import NeighborList
from .material import WeaklyCompressibleFluid


@nb.njit(parallel=True, fastmath=True, cache=True)
def density_summation_numba(ids: np.ndarray, count: np.ndarray, weight: np.ndarray,
                            W_self: float, sigma0: float, rho0: float, c0: float,
                            density: np.ndarray, pressure: np.ndarray):
    """ρᵢ = ρ0 (W(0) + Σⱼ W_ij) / σ0, then p = c0² (ρ - ρ0)."""
    for i in nb.prange(ids.shape[0]):
        sigma = W_self
        for k in range(count[i]):
            sigma += weight[i, k]
        density[i] = rho0 * sigma / sigma0
        pressure[i] = c0 * c0 * (density[i] - rho0)


@nb.njit(parallel=True, fastmath=True, cache=True)
def viscous_acceleration_numba(ids: np.ndarray, count: np.ndarray, distance: np.ndarray,
                               gradient: np.ndarray, mass: np.ndarray, density: np.ndarray,
                               velocity_x: np.ndarray, velocity_y: np.ndarray,
                               viscosity: float, smoothing_length: float,
                               acceleration_prior_x: np.ndarray, acceleration_prior_y: np.ndarray):
    for i in nb.prange(ids.shape[0]):
        ax = 0.0
        ay = 0.0
        for k in range(count[i]):
            j = ids[i, k]
            volume_j = mass[j] / density[j]
            factor = (2.0 * viscosity * gradient[i, k] * volume_j
                      / (distance[i, k] + 0.01 * smoothing_length))
            ax += factor * (velocity_x[i] - velocity_x[j])
            ay += factor * (velocity_y[i] - velocity_y[j])
        acceleration_prior_x[i] += ax / density[i]
        acceleration_prior_y[i] += ay / density[i]


@nb.njit(parallel=True, fastmath=True, cache=True)
def transport_correction_numba(ids: np.ndarray, count: np.ndarray, gradient: np.ndarray,
                               e_x: np.ndarray, e_y: np.ndarray,
                               mass: np.ndarray, density: np.ndarray, scale: float,
                               correction_velocity_x: np.ndarray,
                               correction_velocity_y: np.ndarray):
    for i in nb.prange(ids.shape[0]):
        sx = 0.0
        sy = 0.0
        for k in range(count[i]):
            j = ids[i, k]
            factor = -2.0 * gradient[i, k] * mass[j] / density[j]
            sx += factor * e_x[i, k]
            sy += factor * e_y[i, k]
        correction_velocity_x[i] = scale * sx
        correction_velocity_y[i] = scale * sy


@nb.njit(parallel=True, fastmath=True, cache=True)
def half_step_initialization_numba(half_dt: float, rho0: float, c0: float,
                                   update_density: bool,
                                   density: np.ndarray, density_change_rate: np.ndarray,
                                   pressure: np.ndarray,
                                   position_x: np.ndarray, position_y: np.ndarray,
                                   velocity_x: np.ndarray, velocity_y: np.ndarray,
                                   correction_velocity_x: np.ndarray,
                                   correction_velocity_y: np.ndarray):
    """Half-step drift, optionally with the density half-kick and EOS."""
    for i in nb.prange(density.shape[0]):
        if update_density:
            density[i] += density_change_rate[i] * half_dt
            pressure[i] = c0 * c0 * (density[i] - rho0)
        position_x[i] += (velocity_x[i] + correction_velocity_x[i]) * half_dt
        position_y[i] += (velocity_y[i] + correction_velocity_y[i]) * half_dt


@nb.njit(parallel=True, fastmath=True, cache=True)
def pressure_acceleration_numba(ids: np.ndarray, count: np.ndarray, gradient: np.ndarray,
                                e_x: np.ndarray, e_y: np.ndarray,
                                mass: np.ndarray, density: np.ndarray, pressure: np.ndarray,
                                dt: float,
                                acceleration_x: np.ndarray, acceleration_y: np.ndarray,
                                acceleration_prior_x: np.ndarray, acceleration_prior_y: np.ndarray,
                                velocity_x: np.ndarray, velocity_y: np.ndarray):
    for i in nb.prange(ids.shape[0]):
        ax = 0.0
        ay = 0.0
        for k in range(count[i]):
            j = ids[i, k]
            factor = -(pressure[i] + pressure[j]) * gradient[i, k] * mass[j] / density[j]
            ax += factor * e_x[i, k]
            ay += factor * e_y[i, k]
        acceleration_x[i] = ax / density[i]
        acceleration_y[i] = ay / density[i]

    # Velocities are only read above, so the update needs its own loop
    for i in nb.prange(ids.shape[0]):
        velocity_x[i] += (acceleration_prior_x[i] + acceleration_x[i]) * dt
        velocity_y[i] += (acceleration_prior_y[i] + acceleration_y[i]) * dt


@nb.njit(parallel=True, fastmath=True, cache=True)
def density_change_riemann_numba(ids: np.ndarray, count: np.ndarray, gradient: np.ndarray,
                                 e_x: np.ndarray, e_y: np.ndarray,
                                 mass: np.ndarray, density: np.ndarray, pressure: np.ndarray,
                                 velocity_x: np.ndarray, velocity_y: np.ndarray, c0: float,
                                 density_change_rate: np.ndarray):
    for i in nb.prange(ids.shape[0]):
        z_i = density[i] * c0
        rate = 0.0
        for k in range(count[i]):
            j = ids[i, k]
            z_j = density[j] * c0
            z_sum = z_i + z_j
            vx_bar = (z_i * velocity_x[i] + z_j * velocity_x[j]) / z_sum
            vy_bar = (z_i * velocity_y[i] + z_j * velocity_y[j]) / z_sum
            u_jump = ((velocity_x[i] - vx_bar) * e_x[i, k]
                      + (velocity_y[i] - vy_bar) * e_y[i, k]
                      + (pressure[i] - pressure[j]) / z_sum)
            rate += u_jump * gradient[i, k] * mass[j] / density[j]
        density_change_rate[i] = 2.0 * rate * density[i]


@nb.njit(parallel=True, fastmath=True, cache=True)
def density_half_kick_numba(half_dt: float, density: np.ndarray, density_change_rate: np.ndarray):
    for i in nb.prange(density.shape[0]):
        density[i] += density_change_rate[i] * half_dt


# Wrappers that match the vectorized interface

def compute_density_summation_numba(particles: FluidParticles, neighbors: NeighborList,
                                    W_self: float, sigma0: float,
                                    material: WeaklyCompressibleFluid):
    density_summation_numba(
        neighbors.ids, neighbors.count, neighbors.weight,
        W_self, sigma0, material.density_ref, material.sound_speed_ref,
        particles.density, particles.pressure,
    )


def compute_viscous_acceleration_numba(particles: FluidParticles, neighbors: NeighborList,
                                       viscosity: float, smoothing_length: float):
    viscous_acceleration_numba(
        neighbors.ids, neighbors.count, neighbors.distance, neighbors.gradient,
        particles.mass, particles.density, particles.velocity_x, particles.velocity_y,
        viscosity, smoothing_length,
        particles.acceleration_prior_x, particles.acceleration_prior_y,
    )


def compute_transport_correction_numba(particles: FluidParticles, neighbors: NeighborList,
                                       coefficient: float, smoothing_length: float,
                                       advection_dt: float):
    scale = coefficient * smoothing_length**2 / advection_dt
    transport_correction_numba(
        neighbors.ids, neighbors.count, neighbors.gradient, neighbors.e_x, neighbors.e_y,
        particles.mass, particles.density, scale,
        particles.correction_velocity_x, particles.correction_velocity_y,
    )


def compute_pressure_relaxation_numba(particles: FluidParticles, neighbors: NeighborList,
                                      material: WeaklyCompressibleFluid, dt: float):
    half_step_initialization_numba(
        0.5 * dt, material.density_ref, material.sound_speed_ref, True,
        particles.density, particles.density_change_rate, particles.pressure,
        particles.position_x, particles.position_y,
        particles.velocity_x, particles.velocity_y,
        particles.correction_velocity_x, particles.correction_velocity_y,
    )
    pressure_acceleration_numba(
        neighbors.ids, neighbors.count, neighbors.gradient, neighbors.e_x, neighbors.e_y,
        particles.mass, particles.density, particles.pressure, dt,
        particles.acceleration_x, particles.acceleration_y,
        particles.acceleration_prior_x, particles.acceleration_prior_y,
        particles.velocity_x, particles.velocity_y,
    )


def compute_density_relaxation_riemann_numba(particles: FluidParticles, neighbors: NeighborList,
                                             material: WeaklyCompressibleFluid, dt: float):
    half_dt = 0.5 * dt
    half_step_initialization_numba(
        half_dt, material.density_ref, material.sound_speed_ref, False,
        particles.density, particles.density_change_rate, particles.pressure,
        particles.position_x, particles.position_y,
        particles.velocity_x, particles.velocity_y,
        particles.correction_velocity_x, particles.correction_velocity_y,
    )
    density_change_riemann_numba(
        neighbors.ids, neighbors.count, neighbors.gradient, neighbors.e_x, neighbors.e_y,
        particles.mass, particles.density, particles.pressure,
        particles.velocity_x, particles.velocity_y, material.sound_speed_ref,
        particles.density_change_rate,
    )
    density_half_kick_numba(half_dt, particles.density, particles.density_change_rate)
