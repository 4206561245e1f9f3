"""Body-state snapshots written as compressed npz archives."""

import logging
from pathlib import Path
from typing import Optional

import numpy as np

from ..clock import SimulationClock
from ..core.particles import FluidParticles

logger = logging.getLogger(__name__)


class BodyStatesRecording:
    """Writes particle positions, velocities, density and pressure.

    Files land in ``<output_dir>/states/<body>_<tag>.npz`` where the tag is
    the iteration number when given, else the physical time.
    """

    fields = ('position_x', 'position_y', 'velocity_x', 'velocity_y',
              'density', 'pressure', 'mass', 'volume')

    def __init__(self, output_dir, body_name: str = "WaterBody"):
        self.directory = Path(output_dir) / "states"
        self.body_name = body_name

    def path_for(self, clock: SimulationClock, iteration: Optional[int] = None) -> Path:
        if iteration is not None:
            tag = f"{int(iteration):010d}"
        else:
            tag = f"{clock.physical_time:.9f}".replace(".", "_")
        return self.directory / f"{self.body_name}_{tag}.npz"

    def write(self, particles: FluidParticles, clock: SimulationClock,
              iteration: Optional[int] = None) -> Optional[Path]:
        """Write one snapshot. I/O failures are logged and the run continues.

        Returns:
            Path written, or None if the write failed
        """
        path = self.path_for(clock, iteration)
        data = {name: getattr(particles, name) for name in self.fields}
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            np.savez_compressed(path, physical_time=clock.physical_time,
                                iteration=clock.iteration, **data)
        except OSError as e:
            logger.error("Failed to write body states %s: %s", path, e)
            return None
        logger.debug("Wrote body states %s", path)
        return path

    @staticmethod
    def read(path) -> dict:
        with np.load(path) as archive:
            return {key: archive[key] for key in archive.files}
