"""Output and input of particle state: snapshots, restart, reload, reduced quantities."""

from .states import BodyStatesRecording
from .restart import RestartIO
from .reload import ReloadParticleIO
from .reduced import ReducedQuantityRecording

__all__ = [
    'BodyStatesRecording',
    'RestartIO',
    'ReloadParticleIO',
    'ReducedQuantityRecording',
]
