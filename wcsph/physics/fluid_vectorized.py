"""
Vectorized fluid dynamics for weakly-compressible SPH.

Every function works on the padded (N, K) neighbor arrays: padding
entries carry zero kernel weight and gradient, so whole-row sums are
safe without masking. Each particle only gathers from its neighbors and
writes its own entry.

Conventions: e_ij points from j to i, dW_ij = dW/dr <= 0, so the
kernel gradient is ∇_i W_ij = dW_ij e_ij.
"""

import numpy as np

from ..core.particles import FluidParticles
from ..core.neighbors_vectorized import NeighborList
from .material import WeaklyCompressibleFluid


def _gather(neighbors: NeighborList, values: np.ndarray) -> np.ndarray:
    """values[j] for every neighbor slot, zero on padding."""
    valid = neighbors.ids >= 0
    return np.where(valid, values[np.where(valid, neighbors.ids, 0)], 0.0)


def _neighbor_volume(particles: FluidParticles, neighbors: NeighborList) -> np.ndarray:
    """Current volume V_j = m_j / ρ_j per neighbor slot."""
    return _gather(neighbors, particles.mass / particles.density)


def compute_density_summation_vectorized(particles: FluidParticles, neighbors: NeighborList,
                                         W_self: float, sigma0: float,
                                         material: WeaklyCompressibleFluid):
    """Density by kernel summation of the particle number density.

    ρᵢ = ρ0 σᵢ / σ0,  σᵢ = W(0) + Σⱼ W_ij

    σ0 is the number density of the undisturbed lattice, so the initial
    configuration sits exactly at ρ0. Pressure follows from the equation
    of state.

    Args:
        particles: Fluid particles
        neighbors: Neighbor list for the current topology
        W_self: Kernel value at r = 0
        sigma0: Reference number density
        material: Fluid material
    """
    sigma = W_self + np.sum(neighbors.weight, axis=1)
    particles.density[:] = material.density_ref * sigma / sigma0
    particles.pressure[:] = material.pressure(particles.density)


def compute_viscous_acceleration_vectorized(particles: FluidParticles, neighbors: NeighborList,
                                            viscosity: float, smoothing_length: float):
    """Accumulate physical viscous acceleration into acceleration_prior.

    aᵢ += Σⱼ 2μ (vᵢ - vⱼ) / (r_ij + 0.01h) dW_ij Vⱼ / ρᵢ

    Args:
        particles: Fluid particles
        neighbors: Neighbor list
        viscosity: Dynamic viscosity μ
        smoothing_length: h, regularizes the 1/r factor
    """
    factor = (2.0 * viscosity * neighbors.gradient * _neighbor_volume(particles, neighbors)
              / (neighbors.distance + 0.01 * smoothing_length))

    dvx = particles.velocity_x[:, None] - _gather(neighbors, particles.velocity_x)
    dvy = particles.velocity_y[:, None] - _gather(neighbors, particles.velocity_y)

    particles.acceleration_prior_x += np.sum(factor * dvx, axis=1) / particles.density
    particles.acceleration_prior_y += np.sum(factor * dvy, axis=1) / particles.density


def compute_transport_correction_vectorized(particles: FluidParticles, neighbors: NeighborList,
                                            coefficient: float, smoothing_length: float,
                                            advection_dt: float):
    """Set the advection-correction velocity for the coming window.

    The shift C h² Σⱼ (-2 dW_ij Vⱼ e_ij) moves particles away from
    clustered neighbors; spreading it over Dt as a velocity keeps
    momentum untouched.

    Args:
        particles: Fluid particles
        neighbors: Neighbor list
        coefficient: Correction strength C
        smoothing_length: h
        advection_dt: Advection step Dt of the current window
    """
    factor = -2.0 * neighbors.gradient * _neighbor_volume(particles, neighbors)
    shift_x = np.sum(factor * neighbors.e_x, axis=1)
    shift_y = np.sum(factor * neighbors.e_y, axis=1)

    scale = coefficient * smoothing_length**2 / advection_dt
    particles.correction_velocity_x[:] = scale * shift_x
    particles.correction_velocity_y[:] = scale * shift_y


def compute_pressure_relaxation_vectorized(particles: FluidParticles, neighbors: NeighborList,
                                           material: WeaklyCompressibleFluid, dt: float):
    """First half of the Verlet acoustic step.

    1. ρ += dρ/dt dt/2, p = EOS(ρ), r += (v + v_corr) dt/2
    2. aᵢ = -Σⱼ (pᵢ + pⱼ) dW_ij Vⱼ e_ij / ρᵢ
    3. v += (a_prior + a) dt
    """
    half_dt = 0.5 * dt

    # Initialization (all particles before any interaction reads them)
    particles.density += particles.density_change_rate * half_dt
    particles.pressure[:] = material.pressure(particles.density)
    particles.position_x += (particles.velocity_x + particles.correction_velocity_x) * half_dt
    particles.position_y += (particles.velocity_y + particles.correction_velocity_y) * half_dt

    # Interaction
    p_sum = particles.pressure[:, None] + _gather(neighbors, particles.pressure)
    factor = -p_sum * neighbors.gradient * _neighbor_volume(particles, neighbors)
    particles.acceleration_x[:] = np.sum(factor * neighbors.e_x, axis=1) / particles.density
    particles.acceleration_y[:] = np.sum(factor * neighbors.e_y, axis=1) / particles.density

    # Update
    particles.velocity_x += (particles.acceleration_prior_x + particles.acceleration_x) * dt
    particles.velocity_y += (particles.acceleration_prior_y + particles.acceleration_y) * dt


def compute_density_relaxation_riemann_vectorized(particles: FluidParticles, neighbors: NeighborList,
                                                  material: WeaklyCompressibleFluid, dt: float):
    """Second half of the Verlet acoustic step with an acoustic Riemann solver.

    The pair interface velocity is

        v* = (Zᵢvᵢ + Zⱼvⱼ)/(Zᵢ + Zⱼ) - e_ij (pᵢ - pⱼ)/(Zᵢ + Zⱼ),  Z = ρc

    and the continuity equation uses 2(vᵢ - v*) in place of vᵢ - vⱼ:

        dρᵢ/dt = 2ρᵢ Σⱼ (vᵢ - v*)·e_ij dW_ij Vⱼ

    1. r += (v + v_corr) dt/2
    2. dρ/dt from the Riemann fluxes
    3. ρ += dρ/dt dt/2
    """
    half_dt = 0.5 * dt

    particles.position_x += (particles.velocity_x + particles.correction_velocity_x) * half_dt
    particles.position_y += (particles.velocity_y + particles.correction_velocity_y) * half_dt

    valid = neighbors.ids >= 0
    sound = material.sound_speed(particles.pressure, particles.density)
    z_i = (particles.density * sound)[:, None]
    z_j = np.where(valid, _gather(neighbors, particles.density * sound), 1.0)
    z_sum = z_i + z_j

    vx_i = particles.velocity_x[:, None]
    vy_i = particles.velocity_y[:, None]
    vx_bar = (z_i * vx_i + z_j * _gather(neighbors, particles.velocity_x)) / z_sum
    vy_bar = (z_i * vy_i + z_j * _gather(neighbors, particles.velocity_y)) / z_sum

    dp = particles.pressure[:, None] - _gather(neighbors, particles.pressure)
    u_jump = ((vx_i - vx_bar) * neighbors.e_x + (vy_i - vy_bar) * neighbors.e_y
              + np.where(valid, dp, 0.0) / z_sum)

    rate = 2.0 * np.sum(u_jump * neighbors.gradient * _neighbor_volume(particles, neighbors), axis=1)
    particles.density_change_rate[:] = rate * particles.density
    particles.density += particles.density_change_rate * half_dt
