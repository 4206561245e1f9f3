"""SPH simulation scenarios."""

from .taylor_green import (
    generate_lattice,
    generate_lattice_positions,
    generate_from_reload,
    apply_initial_condition,
    taylor_green_velocity,
    taylor_green_energy_decay,
)

__all__ = [
    'generate_lattice',
    'generate_lattice_positions',
    'generate_from_reload',
    'apply_initial_condition',
    'taylor_green_velocity',
    'taylor_green_energy_decay',
]
