"""Fluid physics: material model, stage kernels and reductions.

Stage classes live in ``physics.stages``; they dispatch through
``wcsph.api`` and are imported from there directly.
"""

from .material import WeaklyCompressibleFluid
from .reductions import total_mechanical_energy, maximum_speed

__all__ = [
    'WeaklyCompressibleFluid',
    'total_mechanical_energy',
    'maximum_speed',
]
