"""Simulation clock shared by the integrator, estimators and output."""

from dataclasses import dataclass


@dataclass
class SimulationClock:
    """Physical time, iteration count and the two current step sizes.

    One instance is owned by a simulation session and handed explicitly
    to whatever needs it.
    """
    physical_time: float = 0.0
    iteration: int = 0
    advection_dt: float = 0.0   # Dt
    acoustic_dt: float = 0.0    # dt, never larger than Dt

    def advance(self, dt: float):
        """Move physical time forward by one acoustic step."""
        if dt < 0.0:
            raise ValueError(f"Negative time step: {dt}")
        self.acoustic_dt = dt
        self.physical_time += dt

    def next_iteration(self):
        self.iteration += 1

    def reset(self, physical_time: float = 0.0, iteration: int = 0):
        self.physical_time = float(physical_time)
        self.iteration = int(iteration)
        self.advection_dt = 0.0
        self.acoustic_dt = 0.0
