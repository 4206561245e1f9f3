"""
Neighbor lists built from the cell-linked list.

Each particle stores its neighbors (self excluded) in ascending index
order together with the pair data every stage needs: distance, unit
vector e_ij = (r_i - r_j)/|r_ij| under the minimum-image convention,
kernel weight W_ij and radial derivative dW_ij.
"""

import logging
from dataclasses import dataclass

import numpy as np

from .particles import FluidParticles
from .cell_list import CellLinkedList
from .kernel_vectorized import WendlandC2Kernel
from ..errors import NeighborOverflowError, StaleNeighborListError

logger = logging.getLogger(__name__)


@dataclass
class NeighborList:
    """Fixed-width padded neighbor arrays, shape (N, K)."""
    ids: np.ndarray             # int64, -1 padded
    count: np.ndarray           # shape: (N,)
    distance: np.ndarray
    e_x: np.ndarray
    e_y: np.ndarray
    weight: np.ndarray          # W_ij
    gradient: np.ndarray        # dW/dr at r_ij (<= 0)
    topology_epoch: int = -1

    @staticmethod
    def allocate(n_particles: int, max_neighbors: int) -> 'NeighborList':
        shape = (n_particles, max_neighbors)
        return NeighborList(
            ids=np.full(shape, -1, dtype=np.int64),
            count=np.zeros(n_particles, dtype=np.int64),
            distance=np.zeros(shape),
            e_x=np.zeros(shape),
            e_y=np.zeros(shape),
            weight=np.zeros(shape),
            gradient=np.zeros(shape),
        )

    @property
    def max_neighbors(self) -> int:
        return self.ids.shape[1]

    def reset(self):
        """Reset neighbor data."""
        self.ids.fill(-1)
        self.count.fill(0)
        for arr in (self.distance, self.e_x, self.e_y, self.weight, self.gradient):
            arr.fill(0.0)
        self.topology_epoch = -1

    def assert_current(self, particles: FluidParticles, stage: str = ""):
        """Raise if this list was built for an older particle topology."""
        if self.topology_epoch != particles.topology_epoch:
            raise StaleNeighborListError(
                f"[{stage}] neighbor list built at topology epoch {self.topology_epoch}, "
                f"particles are at epoch {particles.topology_epoch}")

    def neighbors_of(self, i: int) -> np.ndarray:
        return self.ids[i, :self.count[i]]

    def is_symmetric(self) -> bool:
        """True if j in N(i) exactly when i in N(j)."""
        rows = np.repeat(np.arange(len(self.count)), self.count)
        valid = self.ids >= 0
        cols = self.ids[valid]
        forward = set(zip(rows.tolist(), cols.tolist()))
        return all((j, i) in forward for i, j in forward)

    def equals(self, other: 'NeighborList') -> bool:
        """Exact equality of topology and pair data."""
        return (np.array_equal(self.ids, other.ids)
                and np.array_equal(self.count, other.count)
                and np.array_equal(self.distance, other.distance)
                and np.array_equal(self.e_x, other.e_x)
                and np.array_equal(self.e_y, other.e_y)
                and np.array_equal(self.weight, other.weight)
                and np.array_equal(self.gradient, other.gradient))


def build_neighbors_vectorized(particles: FluidParticles, cell_list: CellLinkedList,
                               kernel: WendlandC2Kernel, neighbors: NeighborList,
                               batch_size: int = 4096):
    """Fill neighbors from the cell-linked list using NumPy gathers.

    Args:
        particles: Fluid particles
        cell_list: Cell list built for the current topology
        kernel: Kernel providing W and dW/dr
        neighbors: Output neighbor list (overwritten)
        batch_size: Particles processed per gather batch

    Raises:
        StaleNeighborListError: If the cell list is older than the particles
        NeighborOverflowError: If a particle exceeds the neighbor capacity
    """
    if cell_list.topology_epoch != particles.topology_epoch:
        raise StaleNeighborListError(
            f"cell list built at topology epoch {cell_list.topology_epoch}, "
            f"particles are at epoch {particles.topology_epoch}")

    n_active = particles.n_particles
    max_neighbors = neighbors.max_neighbors
    cutoff = kernel.cutoff_radius
    domain = cell_list.domain
    px = particles.position_x
    py = particles.position_y

    neighbors.reset()

    for batch_start in range(0, n_active, batch_size):
        batch_end = min(batch_start + batch_size, n_active)
        batch = np.arange(batch_start, batch_end)

        # Candidates from the 3x3 block of cells, shape (B, 9*M)
        ncx, ncy = cell_list.neighbor_cells(cell_list.cell_index_x[batch],
                                            cell_list.cell_index_y[batch])
        inside = ncx >= 0
        candidates = cell_list.cell_particles[np.where(inside, ncx, 0), np.where(inside, ncy, 0)]
        candidates = np.where(inside[:, :, None], candidates, -1).reshape(len(batch), -1)

        valid = (candidates >= 0) & (candidates != batch[:, None])
        jj = np.where(valid, candidates, 0)

        # Vectorized minimum-image distances
        dx, dy = domain.minimum_image(px[batch, None] - px[jj], py[batch, None] - py[jj])
        r = np.sqrt(dx*dx + dy*dy)
        valid &= r < cutoff

        counts = valid.sum(axis=1)
        if counts.size and counts.max() > max_neighbors:
            worst = int(batch[np.argmax(counts)])
            raise NeighborOverflowError(
                f"Particle {worst} has {int(counts.max())} neighbors, capacity is {max_neighbors}")

        # Ascending neighbor index, invalid entries pushed to the end
        key = np.where(valid, candidates, n_active)
        order = np.argsort(key, axis=1, kind='stable')
        width = min(max_neighbors, order.shape[1])
        order = order[:, :width]

        valid_s = np.take_along_axis(valid, order, axis=1)
        ids_s = np.where(valid_s, np.take_along_axis(candidates, order, axis=1), -1)
        r_s = np.where(valid_s, np.take_along_axis(r, order, axis=1), 0.0)
        dx_s = np.take_along_axis(dx, order, axis=1)
        dy_s = np.take_along_axis(dy, order, axis=1)

        safe_r = np.where(r_s > 0.0, r_s, 1.0)
        e_x = np.where(valid_s & (r_s > 0.0), dx_s / safe_r, 0.0)
        e_y = np.where(valid_s & (r_s > 0.0), dy_s / safe_r, 0.0)

        neighbors.ids[batch, :width] = ids_s
        neighbors.count[batch] = counts
        neighbors.distance[batch, :width] = r_s
        neighbors.e_x[batch, :width] = e_x
        neighbors.e_y[batch, :width] = e_y
        neighbors.weight[batch, :width] = np.where(valid_s, kernel.W_vectorized(r_s), 0.0)
        neighbors.gradient[batch, :width] = np.where(valid_s, kernel.dW_vectorized(r_s), 0.0)

    neighbors.topology_epoch = particles.topology_epoch
