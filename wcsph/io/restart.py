"""
Restart files: complete particle state plus the physical time.

One archive per iteration, ``<output_dir>/restart/<body>_rst_<iteration>.npz``.
Writes go through a temporary file and an atomic rename so a crash never
leaves a truncated restart file behind.
"""

import logging
import os
import tempfile
import zipfile
from pathlib import Path

import numpy as np

from ..clock import SimulationClock
from ..core.particles import FluidParticles, STATE_FIELDS
from ..errors import RestartIOError

logger = logging.getLogger(__name__)


def atomic_save_npz(path: Path, **arrays):
    """Save arrays to path via a temporary file in the same directory."""
    tmp = None
    try:
        with tempfile.NamedTemporaryFile(delete=False, dir=path.parent, suffix='.npz') as tf:
            tmp = tf.name
        np.savez_compressed(tmp, **arrays)
        os.replace(tmp, path)
        tmp = None
    finally:
        if tmp is not None and os.path.exists(tmp):
            os.remove(tmp)


class RestartIO:
    """Write and read restart archives keyed by iteration number."""

    def __init__(self, output_dir, body_name: str = "WaterBody"):
        self.directory = Path(output_dir) / "restart"
        self.body_name = body_name

    def path_for(self, iteration: int) -> Path:
        return self.directory / f"{self.body_name}_rst_{int(iteration):010d}.npz"

    def write(self, particles: FluidParticles, clock: SimulationClock, iteration: int) -> Path:
        """Persist the complete particle state at an iteration.

        Raises:
            RestartIOError: If the archive cannot be written
        """
        path = self.path_for(iteration)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            atomic_save_npz(path, physical_time=np.float64(clock.physical_time),
                            iteration=np.int64(iteration),
                            n_particles=np.int64(particles.n_particles),
                            **particles.state_dict())
        except OSError as e:
            raise RestartIOError(f"Cannot write restart file {path}: {e}") from e
        logger.debug("Wrote restart file %s", path)
        return path

    def read(self, particles: FluidParticles, iteration: int) -> float:
        """Load particle state written at an iteration.

        Args:
            particles: Body to overwrite (must have the same particle count)
            iteration: Iteration the restart file was written at

        Returns:
            Physical time stored in the file

        Raises:
            RestartIOError: If the file is missing, unreadable or does not
                match the body
        """
        path = self.path_for(iteration)
        if not path.exists():
            raise RestartIOError(f"Restart file not found: {path}")

        try:
            with np.load(path) as archive:
                data = {key: archive[key] for key in archive.files}
        except (OSError, ValueError, zipfile.BadZipFile, EOFError) as e:
            raise RestartIOError(f"Corrupt restart file {path}: {e}") from e

        missing = [name for name in ('physical_time',) + STATE_FIELDS if name not in data]
        if missing:
            raise RestartIOError(f"Restart file {path} lacks fields {missing}")

        try:
            particles.load_state_dict({name: data[name] for name in STATE_FIELDS})
        except ValueError as e:
            raise RestartIOError(f"Restart file {path} does not match the body: {e}") from e

        physical_time = float(data['physical_time'])
        if not np.isfinite(physical_time) or physical_time < 0.0:
            raise RestartIOError(f"Restart file {path} has invalid time {physical_time}")
        logger.info("Restarted from %s at time %.9f", path, physical_time)
        return physical_time
