"""
Reduced-quantity recording and regression comparison.

Each quantity (a scalar reduction over the body) is appended as a
``time value`` row to ``<output_dir>/<body>_<Quantity>.dat``. At the end
of a run the trajectory can be compared with a stored reference in
``<output_dir>/reference/``; the first run creates that reference.
"""

import logging
import shutil
from pathlib import Path
from typing import Callable

import numpy as np

from ..clock import SimulationClock
from ..core.particles import FluidParticles
from ..errors import RegressionTestError

logger = logging.getLogger(__name__)


class ReducedQuantityRecording:
    """Time series of one scalar reduction written to a text file."""

    def __init__(self, output_dir, body_name: str, quantity_name: str,
                 reduction: Callable[[FluidParticles], float]):
        self.output_dir = Path(output_dir)
        self.quantity_name = quantity_name
        self.reduction = reduction
        self.path = self.output_dir / f"{body_name}_{quantity_name}.dat"
        self.reference_path = (self.output_dir / "reference"
                               / f"{body_name}_{quantity_name}_reference.dat")
        self.rows = []

    def start(self):
        """Truncate the output file and write the column header."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.rows = []
        with open(self.path, "w") as f:
            f.write(f"# time {self.quantity_name}\n")

    def resume(self, physical_time: float):
        """Keep the rows recorded before physical_time and append after them.

        Rows at or after the resume time belong to the run being replaced
        and are dropped; without an existing file this is start().
        """
        if not self.path.exists():
            self.start()
            return
        rows = self.load()
        kept = rows[rows[:, 0] < physical_time - 0.5e-9]
        self.start()
        self.rows = [(float(t), float(v)) for t, v in kept]
        with open(self.path, "a") as f:
            for t, v in self.rows:
                f.write(f"{t:.9f} {v:.9e}\n")
        logger.debug("Resumed %s at t=%.9f keeping %d rows", self.quantity_name,
                     physical_time, len(self.rows))

    def write(self, particles: FluidParticles, clock: SimulationClock) -> float:
        """Evaluate the reduction and append it to the file."""
        if not self.path.exists():
            self.start()
        value = self.reduction(particles)
        self.rows.append((clock.physical_time, value))
        with open(self.path, "a") as f:
            f.write(f"{clock.physical_time:.9f} {value:.9e}\n")
        return value

    def load(self) -> np.ndarray:
        """Recorded rows as an (M, 2) array."""
        return np.atleast_2d(np.loadtxt(self.path, comments="#")).reshape(-1, 2)

    def result_test(self, rtol: float = 1e-3) -> bool:
        """Compare the recorded trajectory with the stored reference.

        Creates the reference from the current run when none exists.

        Returns:
            True if a comparison was made, False if a new reference was stored

        Raises:
            RegressionTestError: If the trajectories differ beyond rtol
        """
        if not self.reference_path.exists():
            self.reference_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.path, self.reference_path)
            logger.info("Stored new reference for %s at %s", self.quantity_name,
                        self.reference_path)
            return False

        current = self.load()
        reference = np.atleast_2d(np.loadtxt(self.reference_path, comments="#")).reshape(-1, 2)
        if current.shape != reference.shape:
            raise RegressionTestError(
                f"{self.quantity_name}: {len(current)} records, reference has {len(reference)}")

        scale = max(float(np.max(np.abs(reference[:, 1]))), np.finfo(float).tiny)
        deviation = np.abs(current[:, 1] - reference[:, 1]) / scale
        worst = int(np.argmax(deviation)) if deviation.size else 0
        if deviation.size and deviation[worst] > rtol:
            raise RegressionTestError(
                f"{self.quantity_name} deviates from reference at t={current[worst, 0]:.6f}: "
                f"{current[worst, 1]:.6e} vs {reference[worst, 1]:.6e} "
                f"(relative {deviation[worst]:.2e} > {rtol:.2e})")
        logger.info("%s matches reference (max relative deviation %.2e)",
                    self.quantity_name, float(deviation.max()) if deviation.size else 0.0)
        return True
