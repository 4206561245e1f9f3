"""
Fluid particle data using the Structure-of-Arrays (SoA) pattern.

Every field is a contiguous float64 array indexed by the dense particle
index i, so stage kernels (NumPy or Numba) gather and scatter without
per-particle objects.
"""

import numpy as np
from dataclasses import dataclass, fields
from typing import Sequence

from ..errors import NonFiniteStateError


# Fields persisted in restart/reload/state files
STATE_FIELDS = (
    'position_x', 'position_y', 'velocity_x', 'velocity_y',
    'density', 'pressure', 'mass', 'volume',
    'acceleration_x', 'acceleration_y',
    'acceleration_prior_x', 'acceleration_prior_y',
    'correction_velocity_x', 'correction_velocity_y',
    'density_change_rate',
)


@dataclass
class FluidParticles:
    """Structure of Arrays for a single fluid body.

    The particle count is fixed at allocation; particles are never
    created or destroyed during a run.
    """
    # Primary state (N particles)
    position_x: np.ndarray      # shape: (N,)
    position_y: np.ndarray      # shape: (N,)
    velocity_x: np.ndarray      # shape: (N,)
    velocity_y: np.ndarray      # shape: (N,)

    # Particle properties
    density: np.ndarray         # shape: (N,)
    pressure: np.ndarray        # shape: (N,)
    mass: np.ndarray            # shape: (N,)
    volume: np.ndarray          # shape: (N,) reference volume dx^2

    # Pressure acceleration (acoustic sub-steps)
    acceleration_x: np.ndarray
    acceleration_y: np.ndarray

    # Accumulator for viscous acceleration, cleared every advection window
    acceleration_prior_x: np.ndarray
    acceleration_prior_y: np.ndarray

    # Transport-velocity correction (advection only, never momentum)
    correction_velocity_x: np.ndarray
    correction_velocity_y: np.ndarray

    density_change_rate: np.ndarray

    # Incremented whenever positions jump (wrap, reload); neighbor data
    # built under an older epoch is stale.
    topology_epoch: int = 0

    @staticmethod
    def allocate(n_particles: int) -> 'FluidParticles':
        """Pre-allocate zeroed arrays for n_particles.

        Args:
            n_particles: Number of particles in the body

        Returns:
            Zero-initialized FluidParticles instance
        """
        # Ensure 32-byte alignment for SIMD
        def aligned_zeros(shape, dtype=np.float64):
            size = int(np.prod(shape)) * np.dtype(dtype).itemsize
            # Round up to 32-byte boundary
            aligned_size = ((size + 31) // 32) * 32
            buffer = np.zeros(max(aligned_size, 32), dtype=np.uint8)
            return np.frombuffer(buffer, dtype=dtype)[:int(np.prod(shape))].reshape(shape)

        arrays = {name: aligned_zeros(n_particles) for name in STATE_FIELDS}
        return FluidParticles(**arrays)

    @property
    def n_particles(self) -> int:
        return len(self.position_x)

    def speed(self) -> np.ndarray:
        return np.sqrt(self.velocity_x**2 + self.velocity_y**2)

    def reset_accelerations(self):
        """Clear the viscous accumulator at the start of an advection window."""
        self.acceleration_prior_x[:] = 0.0
        self.acceleration_prior_y[:] = 0.0

    def mark_topology_changed(self):
        self.topology_epoch += 1

    def check_finite(self, stage: str,
                     field_names: Sequence[str] = ('position_x', 'position_y',
                                                   'velocity_x', 'velocity_y',
                                                   'density')):
        """Raise NonFiniteStateError naming the first bad particle.

        Args:
            stage: Name of the stage that produced the data
            field_names: Fields to inspect
        """
        for name in field_names:
            values = getattr(self, name)
            finite = np.isfinite(values)
            if not finite.all():
                if not finite.any():
                    raise NonFiniteStateError(stage, name)
                index = int(np.argmin(finite))
                raise NonFiniteStateError(stage, name, index, float(values[index]))

    def state_dict(self) -> dict:
        """Copy of all persisted fields keyed by name."""
        return {name: getattr(self, name).copy() for name in STATE_FIELDS}

    def load_state_dict(self, state: dict):
        """Overwrite fields in place from a dict produced by state_dict().

        Missing fields are left untouched; shape mismatches raise ValueError.
        """
        for f in fields(self):
            if f.name not in state or f.name == 'topology_epoch':
                continue
            values = np.asarray(state[f.name], dtype=np.float64)
            target = getattr(self, f.name)
            if values.shape != target.shape:
                raise ValueError(
                    f"Field '{f.name}' has shape {values.shape}, expected {target.shape}")
            target[:] = values
        self.mark_topology_changed()
