"""
Weakly-compressible fluid material.

Linear equation of state p = c0² (ρ - ρ0): an artificial sound speed of
about ten times the flow speed keeps density variations near 1%.
"""

import numpy as np
from dataclasses import dataclass


@dataclass(frozen=True)
class WeaklyCompressibleFluid:
    """Physical properties of the fluid body."""
    density_ref: float          # ρ0
    sound_speed_ref: float      # c0
    dynamic_viscosity: float    # μ (Pa·s)

    def __post_init__(self):
        if not self.density_ref > 0.0:
            raise ValueError(f"Reference density must be positive, got {self.density_ref}")
        if not self.sound_speed_ref > 0.0:
            raise ValueError(f"Sound speed must be positive, got {self.sound_speed_ref}")
        if self.dynamic_viscosity < 0.0:
            raise ValueError(f"Viscosity must be non-negative, got {self.dynamic_viscosity}")

    @property
    def kinematic_viscosity(self) -> float:
        return self.dynamic_viscosity / self.density_ref

    def pressure(self, density: np.ndarray) -> np.ndarray:
        """Equation of state."""
        return self.sound_speed_ref**2 * (density - self.density_ref)

    def density_from_pressure(self, pressure: np.ndarray) -> np.ndarray:
        return pressure / self.sound_speed_ref**2 + self.density_ref

    def sound_speed(self, pressure: np.ndarray, density: np.ndarray) -> np.ndarray:
        """Local sound speed; constant for the linear equation of state."""
        return np.full_like(np.asarray(density, dtype=np.float64), self.sound_speed_ref)
