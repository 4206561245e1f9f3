"""
Configuration for the periodic Taylor-Green vortex case.

Defaults reproduce the reference run: unit box, resolution 1/100,
Re = 100, artificial sound speed 10 U.
"""

import json
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Optional, Tuple

from .errors import ConfigurationError


@dataclass
class SimulationConfig:
    """All numerical and output parameters of a run."""
    # Geometry
    DL: float = 1.0                     # box length
    DH: float = 1.0                     # box height
    resolution_ref: float = 1.0 / 100.0
    periodic_x: bool = True
    periodic_y: bool = True

    # Material
    rho0_f: float = 1.0                 # reference density
    U_f: float = 1.0                    # characteristic velocity
    c_f: float = 10.0                   # reference sound speed
    Re: float = 100.0                   # Reynolds number

    # SPH discretization
    smoothing_length_ratio: float = 1.3  # h / dx
    max_neighbors: int = 64

    # Time stepping
    advection_cfl: float = 0.25
    acoustic_cfl: float = 0.6
    transport_coefficient: float = 0.2
    end_time: float = 5.0
    output_interval: float = 0.1
    screen_output_interval: int = 100
    restart_output_interval_override: Optional[int] = None

    # Run control
    restart_step: int = 0
    reload_particles: bool = False
    output_dir: str = "output"
    body_name: str = "WaterBody"
    backend: str = "cpu"
    log_level: str = "INFO"
    regression_test: bool = True
    regression_rtol: float = 1e-3

    @property
    def mu_f(self) -> float:
        """Dynamic viscosity from the Reynolds number."""
        return self.rho0_f * self.U_f * self.DL / self.Re

    @property
    def smoothing_length(self) -> float:
        return self.smoothing_length_ratio * self.resolution_ref

    @property
    def cutoff_radius(self) -> float:
        """Kernel support radius (2h for Wendland C2)."""
        return 2.0 * self.smoothing_length

    @property
    def restart_output_interval(self) -> int:
        if self.restart_output_interval_override is not None:
            return self.restart_output_interval_override
        return self.screen_output_interval * 10

    @property
    def domain_bounds(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """((xmin, ymin), (xmax, ymax))"""
        return (0.0, 0.0), (self.DL, self.DH)

    def validate(self):
        """Raise ConfigurationError on inconsistent parameters."""
        positive = ["DL", "DH", "resolution_ref", "rho0_f", "U_f", "c_f", "Re",
                    "smoothing_length_ratio", "advection_cfl", "acoustic_cfl",
                    "end_time", "output_interval"]
        for name in positive:
            if not getattr(self, name) > 0.0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")

        if self.screen_output_interval < 1:
            raise ConfigurationError("screen_output_interval must be >= 1")
        if self.restart_output_interval < 1:
            raise ConfigurationError("restart_output_interval must be >= 1")
        if self.restart_step < 0:
            raise ConfigurationError("restart_step must be >= 0")
        if self.max_neighbors < 1:
            raise ConfigurationError("max_neighbors must be >= 1")
        if self.transport_coefficient < 0.0:
            raise ConfigurationError("transport_coefficient must be >= 0")

        for length, periodic, axis in ((self.DL, self.periodic_x, "x"),
                                       (self.DH, self.periodic_y, "y")):
            # Periodic image search needs three distinct cells along the axis
            if periodic and length / self.cutoff_radius < 3.0:
                raise ConfigurationError(
                    f"Domain too small along {axis}: length {length} < 3 * cutoff "
                    f"{self.cutoff_radius}")

        if self.backend not in ("cpu", "numba"):
            raise ConfigurationError(f"Unknown backend: {self.backend}. Choose from: cpu, numba")
        return self

    @classmethod
    def from_dict(cls, data: dict) -> 'SimulationConfig':
        """Build a config from a plain dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, path) -> 'SimulationConfig':
        path = Path(path)
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        return asdict(self)
