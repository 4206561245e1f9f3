"""
Numba-optimized neighbor list construction.

Same cell table and pair data as the NumPy builder; each particle row is
written only by the thread that owns that particle, so the parallel
loop needs no atomics.
"""

import numpy as np
import numba as nb

from .particles import FluidParticles
from .cell_list import CellLinkedList
from .kernel_vectorized import WendlandC2Kernel
from .kernel_numba import wendland_W, wendland_dW
from .neighbors_vectorized import NeighborList
from ..errors import NeighborOverflowError, StaleNeighborListError


@nb.njit(parallel=True, cache=True)
def query_neighbors_numba(position_x: np.ndarray, position_y: np.ndarray,
                          cell_index_x: np.ndarray, cell_index_y: np.ndarray,
                          cell_particles: np.ndarray, cell_counts: np.ndarray,
                          length_x: float, length_y: float,
                          periodic_x: bool, periodic_y: bool,
                          cutoff: float, h: float,
                          ids: np.ndarray, count: np.ndarray, distance: np.ndarray,
                          e_x: np.ndarray, e_y: np.ndarray,
                          weight: np.ndarray, gradient: np.ndarray):
    """Query neighbors for all particles.

    count[i] receives the true neighbor count even if it exceeds the row
    width, so the caller can detect overflow.
    """
    n_active = position_x.shape[0]
    nx = cell_counts.shape[0]
    ny = cell_counts.shape[1]
    max_neighbors = ids.shape[1]

    for i in nb.prange(n_active):
        px = position_x[i]
        py = position_y[i]
        cx = cell_index_x[i]
        cy = cell_index_y[i]
        n_found = 0

        for dcx in range(-1, 2):
            ncx = cx + dcx
            if periodic_x:
                ncx = ncx % nx
            elif ncx < 0 or ncx >= nx:
                continue
            for dcy in range(-1, 2):
                ncy = cy + dcy
                if periodic_y:
                    ncy = ncy % ny
                elif ncy < 0 or ncy >= ny:
                    continue

                for k in range(cell_counts[ncx, ncy]):
                    j = cell_particles[ncx, ncy, k]
                    if j == i:
                        continue
                    dx = px - position_x[j]
                    dy = py - position_y[j]
                    if periodic_x:
                        dx = dx - length_x * np.rint(dx / length_x)
                    if periodic_y:
                        dy = dy - length_y * np.rint(dy / length_y)
                    r = np.sqrt(dx * dx + dy * dy)
                    if r < cutoff:
                        if n_found < max_neighbors:
                            ids[i, n_found] = j
                            distance[i, n_found] = r
                            if r > 0.0:
                                e_x[i, n_found] = dx / r
                                e_y[i, n_found] = dy / r
                            else:
                                e_x[i, n_found] = 0.0
                                e_y[i, n_found] = 0.0
                            weight[i, n_found] = wendland_W(r, h)
                            gradient[i, n_found] = wendland_dW(r, h)
                        n_found += 1

        count[i] = n_found

        # Insertion sort by neighbor index (rows are short)
        n_row = min(n_found, max_neighbors)
        for a in range(1, n_row):
            key_id = ids[i, a]
            key_r = distance[i, a]
            key_ex = e_x[i, a]
            key_ey = e_y[i, a]
            key_w = weight[i, a]
            key_g = gradient[i, a]
            b = a - 1
            while b >= 0 and ids[i, b] > key_id:
                ids[i, b + 1] = ids[i, b]
                distance[i, b + 1] = distance[i, b]
                e_x[i, b + 1] = e_x[i, b]
                e_y[i, b + 1] = e_y[i, b]
                weight[i, b + 1] = weight[i, b]
                gradient[i, b + 1] = gradient[i, b]
                b -= 1
            ids[i, b + 1] = key_id
            distance[i, b + 1] = key_r
            e_x[i, b + 1] = key_ex
            e_y[i, b + 1] = key_ey
            weight[i, b + 1] = key_w
            gradient[i, b + 1] = key_g


def build_neighbors_numba(particles: FluidParticles, cell_list: CellLinkedList,
                          kernel: WendlandC2Kernel, neighbors: NeighborList):
    """Wrapper for the Numba neighbor query that matches the NumPy interface."""
    if cell_list.topology_epoch != particles.topology_epoch:
        raise StaleNeighborListError(
            f"cell list built at topology epoch {cell_list.topology_epoch}, "
            f"particles are at epoch {particles.topology_epoch}")

    neighbors.reset()
    domain = cell_list.domain
    lx, ly = domain.length
    query_neighbors_numba(
        particles.position_x, particles.position_y,
        cell_list.cell_index_x, cell_list.cell_index_y,
        cell_list.cell_particles, cell_list.cell_counts,
        lx, ly, domain.periodic[0], domain.periodic[1],
        kernel.cutoff_radius, kernel.h,
        neighbors.ids, neighbors.count, neighbors.distance,
        neighbors.e_x, neighbors.e_y, neighbors.weight, neighbors.gradient,
    )

    if neighbors.count.size and neighbors.count.max() > neighbors.max_neighbors:
        worst = int(np.argmax(neighbors.count))
        raise NeighborOverflowError(
            f"Particle {worst} has {int(neighbors.count[worst])} neighbors, "
            f"capacity is {neighbors.max_neighbors}")

    neighbors.topology_epoch = particles.topology_epoch
