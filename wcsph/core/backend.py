"""
Backend selection and dispatch system for the fluid stages.

Supports two backends:
1. CPU (NumPy) - vectorized gathers over the padded neighbor arrays
2. Numba - JIT-compiled parallel loops (prange over particles)

Implementations register themselves by name; a session selects the
backend once and every stage call is routed through dispatch().
"""

import enum
import logging
from typing import Optional, Dict, Callable
from dataclasses import dataclass

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


class Backend(enum.Enum):
    """Available computation backends."""
    CPU = "cpu"      # NumPy
    NUMBA = "numba"  # Numba JIT


@dataclass
class BackendInfo:
    """Information about a backend."""
    backend: Backend
    device_name: str = "CPU"


class BackendManager:
    """Manages backend selection and dispatching."""

    def __init__(self):
        self._current_backend = Backend.CPU
        self._implementations: Dict[str, Dict[Backend, Callable]] = {}
        self._backend_info = {
            Backend.CPU: BackendInfo(Backend.CPU, "CPU (NumPy)"),
            Backend.NUMBA: BackendInfo(Backend.NUMBA, self._numba_device_name()),
        }

    @staticmethod
    def _numba_device_name() -> str:
        import numba
        return f"CPU (Numba {numba.__version__}, {numba.config.NUMBA_NUM_THREADS} threads)"

    @property
    def current_backend(self) -> Backend:
        """Get current backend."""
        return self._current_backend

    def set_backend(self, backend: Backend):
        """Set the current backend."""
        self._current_backend = backend
        logger.info("Backend set to: %s", self._backend_info[backend].device_name)

    def register_implementation(self, function_name: str, backend: Backend,
                                implementation: Callable):
        """Register a backend-specific implementation.

        Args:
            function_name: Name of the function
            backend: Backend for this implementation
            implementation: The implementation function
        """
        if function_name not in self._implementations:
            self._implementations[function_name] = {}
        self._implementations[function_name][backend] = implementation

    def registered(self, function_name: str) -> list:
        return sorted(b.value for b in self._implementations.get(function_name, {}))

    def get_implementation(self, function_name: str,
                           backend: Optional[Backend] = None) -> Callable:
        """Get implementation for a function.

        Args:
            function_name: Name of the function
            backend: Backend to use (None for current)

        Returns:
            Implementation function

        Raises:
            ValueError: If no implementation is registered for the backend
        """
        if backend is None:
            backend = self._current_backend

        if function_name not in self._implementations:
            raise ValueError(f"No implementations registered for {function_name}")

        if backend not in self._implementations[function_name]:
            raise ValueError(f"No {backend.value} implementation for {function_name}")

        return self._implementations[function_name][backend]

    def dispatch(self, function_name: str, *args, backend: Optional[Backend] = None, **kwargs):
        """Dispatch a function call to the selected backend."""
        impl = self.get_implementation(function_name, backend)
        return impl(*args, **kwargs)

    def info_lines(self) -> list:
        lines = []
        for backend, info in self._backend_info.items():
            marker = "*" if backend == self._current_backend else " "
            lines.append(f"{marker} {backend.value:6s}: {info.device_name}")
        return lines


# Global registry of implementations
_backend_manager = BackendManager()


def parse_backend(backend: str) -> Backend:
    try:
        return Backend(backend.lower())
    except ValueError:
        raise ConfigurationError(f"Invalid backend: {backend}. Choose from: cpu, numba") from None


# Public API
def set_backend(backend: str):
    """Set the default backend ('cpu' or 'numba')."""
    _backend_manager.set_backend(parse_backend(backend))


def get_backend() -> str:
    """Get current backend name."""
    return _backend_manager.current_backend.value


def backend_info() -> list:
    """Human-readable backend summary, current backend starred."""
    return _backend_manager.info_lines()


def registered_backends(function_name: str) -> list:
    return _backend_manager.registered(function_name)


# Decorator for backend-specific implementations
def backend_function(function_name: str):
    """Decorator to register backend-specific implementations.

    Usage:
        @backend_function("density_summation")
        @for_backend(Backend.NUMBA)
        def _density_summation_numba(...):
            ...
    """
    def decorator(func):
        # Check if function has _backend attribute set by @for_backend
        if hasattr(func, '_backend'):
            _backend_manager.register_implementation(function_name, func._backend, func)
        return func
    return decorator


def for_backend(backend: Backend):
    """Helper decorator to specify backend."""
    def decorator(func):
        func._backend = backend
        return func
    return decorator


def dispatch(function_name: str, *args, backend: Optional[str] = None, **kwargs):
    """Dispatch function to appropriate backend.

    Args:
        function_name: Name of the function
        *args: Positional arguments
        backend: Override backend (None for current)
        **kwargs: Keyword arguments

    Returns:
        Function result
    """
    backend_enum = parse_backend(backend) if backend else None
    return _backend_manager.dispatch(function_name, *args, backend=backend_enum, **kwargs)
