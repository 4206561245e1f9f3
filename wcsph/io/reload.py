"""Reload files: relaxed particle positions for starting a new run."""

import logging
import zipfile
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from ..core.particles import FluidParticles
from ..errors import RestartIOError

logger = logging.getLogger(__name__)


class ReloadParticleIO:
    """``<output_dir>/reload/<body>_rld.npz`` with positions and volumes."""

    def __init__(self, output_dir, body_name: str = "WaterBody"):
        self.directory = Path(output_dir) / "reload"
        self.body_name = body_name

    @property
    def path(self) -> Path:
        return self.directory / f"{self.body_name}_rld.npz"

    def write(self, particles: FluidParticles) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        np.savez_compressed(self.path, position_x=particles.position_x,
                            position_y=particles.position_y, volume=particles.volume)
        logger.info("Wrote particle reload file %s", self.path)
        return self.path

    @staticmethod
    def read_positions(path) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """Positions as an (N, 2) array and volumes (None if absent).

        Raises:
            RestartIOError: If the file is missing or malformed
        """
        path = Path(path)
        if not path.exists():
            raise RestartIOError(f"Reload file not found: {path}")
        try:
            with np.load(path) as archive:
                x = np.asarray(archive['position_x'], dtype=np.float64)
                y = np.asarray(archive['position_y'], dtype=np.float64)
                volume = (np.asarray(archive['volume'], dtype=np.float64)
                          if 'volume' in archive.files else None)
        except (OSError, ValueError, KeyError, zipfile.BadZipFile, EOFError) as e:
            raise RestartIOError(f"Corrupt reload file {path}: {e}") from e
        if x.shape != y.shape or (volume is not None and volume.shape != x.shape):
            raise RestartIOError(f"Reload file {path} has inconsistent array shapes")
        return np.column_stack((x, y)), volume
