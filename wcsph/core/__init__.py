"""Core SPH components: particles, kernel, cell list, neighbors, periodic wrap, time steps."""

from .particles import FluidParticles
from .kernel_vectorized import WendlandC2Kernel
from .periodic import PeriodicDomain, PeriodicBounding
from .cell_list import CellLinkedList
from .neighbors_vectorized import NeighborList, build_neighbors_vectorized
from .timestep import AdvectionTimeStep, AcousticTimeStep

__all__ = [
    'FluidParticles',
    'WendlandC2Kernel',
    'PeriodicDomain',
    'PeriodicBounding',
    'CellLinkedList',
    'NeighborList',
    'build_neighbors_vectorized',
    'AdvectionTimeStep',
    'AcousticTimeStep',
]
