"""Pytest configuration and shared fixtures for the wcsph tests."""
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest


def pytest_configure(config):
    """Configure pytest environment for wcsph tests."""
    # Add workspace root to Python path for wcsph package imports
    workspace_root = Path(__file__).parent.parent.parent
    if str(workspace_root) not in sys.path:
        sys.path.insert(0, str(workspace_root))


@pytest.fixture(params=['cpu', 'numba'])
def backend(request):
    return request.param


@pytest.fixture
def small_config(tmp_path):
    """20 x 20 lattice run that finishes in a handful of windows."""
    from wcsph.config import SimulationConfig
    return SimulationConfig(
        resolution_ref=1.0 / 20.0,
        end_time=0.05,
        output_interval=0.02,
        screen_output_interval=1,
        restart_output_interval_override=2,
        output_dir=str(tmp_path / "output"),
        regression_test=False,
        log_level="WARNING",
    ).validate()


@pytest.fixture
def make_case():
    """Factory for an initialized lattice with topology built.

    Returns a namespace with particles, domain, kernel, material, sigma0,
    cell_list and neighbors.
    """
    from wcsph import api
    from wcsph.core.cell_list import CellLinkedList
    from wcsph.core.kernel_vectorized import WendlandC2Kernel
    from wcsph.core.neighbors_vectorized import NeighborList
    from wcsph.core.periodic import PeriodicDomain
    from wcsph.physics.material import WeaklyCompressibleFluid
    from wcsph.scenarios.taylor_green import generate_lattice, apply_initial_condition

    def _make(config, backend='cpu', velocity=True):
        particles = generate_lattice(config)
        if velocity:
            apply_initial_condition(particles)
        lower, upper = config.domain_bounds
        domain = PeriodicDomain(lower, upper, (config.periodic_x, config.periodic_y))
        kernel = WendlandC2Kernel(config.smoothing_length)
        cell_list = CellLinkedList(domain, kernel.cutoff_radius)
        neighbors = NeighborList.allocate(particles.n_particles, config.max_neighbors)
        cell_list.build(particles)
        api.build_neighbors(particles, cell_list, kernel, neighbors, backend=backend)
        return SimpleNamespace(
            config=config,
            particles=particles,
            domain=domain,
            kernel=kernel,
            material=WeaklyCompressibleFluid(config.rho0_f, config.c_f, config.mu_f),
            sigma0=kernel.reference_number_density(config.resolution_ref),
            cell_list=cell_list,
            neighbors=neighbors,
        )

    return _make
