"""
Cell-linked list, neighbor list and periodic wrap tests.

Covers:
- Unique cell membership and the shared-face rule
- Neighbor symmetry, ordering and rebuild idempotence
- CPU / Numba agreement and brute-force validation
- Wrap range, the upper-face rule and staleness detection
"""

import numpy as np
import pytest

from wcsph import api
from wcsph.core.cell_list import CellLinkedList
from wcsph.core.neighbors_vectorized import NeighborList
from wcsph.core.particles import FluidParticles
from wcsph.core.periodic import PeriodicDomain, PeriodicBounding, wrap_coordinate
from wcsph.errors import (ConfigurationError, DomainBoundError, NeighborOverflowError,
                          NonFiniteStateError, StaleNeighborListError)


def particles_at(x, y):
    particles = FluidParticles.allocate(len(x))
    particles.position_x[:] = x
    particles.position_y[:] = y
    return particles


class TestCellLinkedList:

    @pytest.fixture
    def cell_list(self):
        domain = PeriodicDomain((0.0, 0.0), (1.0, 1.0))
        return CellLinkedList(domain, cutoff_radius=0.13)

    def test_grid_dimensions(self, cell_list):
        assert cell_list.nx == 7 and cell_list.ny == 7
        assert cell_list.cell_size[0] >= 0.13

    def test_every_particle_in_exactly_one_cell(self, cell_list):
        rng = np.random.default_rng(0)
        particles = particles_at(rng.random(500), rng.random(500))
        cell_list.build(particles)

        assert cell_list.cell_counts.sum() == 500
        assert np.array_equal(np.sort(cell_list.sorted_indices), np.arange(500))
        members = np.concatenate([cell_list.get_cell_particles(cx, cy)
                                  for cx in range(cell_list.nx) for cy in range(cell_list.ny)])
        assert np.array_equal(np.sort(members), np.arange(500))

    def test_shared_face_goes_to_upper_cell(self, cell_list):
        face = 2 * cell_list.cell_size[0]
        cx, cy = cell_list.cell_of([face], [0.5])
        assert cx[0] == 2

    def test_upper_domain_face_maps_to_cell_zero(self, cell_list):
        cx, cy = cell_list.cell_of([1.0], [1.0])
        assert cx[0] == 0 and cy[0] == 0

    def test_non_finite_position_is_fatal(self, cell_list):
        particles = particles_at([0.1, np.nan], [0.1, 0.2])
        with pytest.raises(NonFiniteStateError) as excinfo:
            cell_list.build(particles)
        assert excinfo.value.index == 1
        assert excinfo.value.field == 'position_x'

    def test_too_few_periodic_cells(self):
        domain = PeriodicDomain((0.0, 0.0), (0.2, 1.0))
        with pytest.raises(ConfigurationError):
            CellLinkedList(domain, cutoff_radius=0.1)

    def test_non_periodic_axis_allows_small_grid(self):
        domain = PeriodicDomain((0.0, 0.0), (0.2, 1.0), periodic=(False, True))
        cell_list = CellLinkedList(domain, cutoff_radius=0.1)
        assert cell_list.nx == 2


class TestNeighborList:

    def test_symmetric_sorted_self_excluded(self, small_config, make_case, backend):
        case = make_case(small_config, backend)
        nbrs = case.neighbors

        assert nbrs.is_symmetric()
        for i in range(case.particles.n_particles):
            row = nbrs.neighbors_of(i)
            assert i not in row
            assert np.all(np.diff(row) > 0)
            assert np.all(nbrs.ids[i, nbrs.count[i]:] == -1)

    def test_lattice_neighbor_count(self, small_config, make_case):
        """h = 1.3 dx: every lattice site sees the same 20 neighbors."""
        case = make_case(small_config)
        assert np.all(case.neighbors.count == 20)

    def test_padding_has_zero_weight(self, small_config, make_case, backend):
        case = make_case(small_config, backend)
        pad = case.neighbors.ids < 0
        assert np.all(case.neighbors.weight[pad] == 0.0)
        assert np.all(case.neighbors.gradient[pad] == 0.0)

    def test_rebuild_is_idempotent(self, small_config, make_case, backend):
        case = make_case(small_config, backend)
        first = NeighborList.allocate(case.particles.n_particles, small_config.max_neighbors)
        api.build_neighbors(case.particles, case.cell_list, case.kernel, first, backend=backend)

        case.cell_list.build(case.particles)
        api.build_neighbors(case.particles, case.cell_list, case.kernel, case.neighbors,
                            backend=backend)
        assert first.equals(case.neighbors)

    def test_equality_covers_unit_vectors(self, small_config, make_case):
        case = make_case(small_config)
        copy = NeighborList(**{name: np.copy(getattr(case.neighbors, name))
                               for name in ('ids', 'count', 'distance', 'e_x', 'e_y',
                                            'weight', 'gradient')},
                            topology_epoch=case.neighbors.topology_epoch)
        assert copy.equals(case.neighbors)

        copy.e_x[0, 0] = -copy.e_x[0, 0] + 0.5
        assert not copy.equals(case.neighbors)

        copy.e_x[:] = case.neighbors.e_x
        copy.e_y[0, 0] += 1e-3
        assert not copy.equals(case.neighbors)

    def test_matches_brute_force(self, small_config, make_case, backend):
        case = make_case(small_config, backend)
        particles = case.particles
        # Jitter so that distances are not all lattice multiples
        rng = np.random.default_rng(1)
        particles.position_x[:] = np.mod(particles.position_x + rng.normal(0, 0.005, 400), 1.0)
        particles.position_y[:] = np.mod(particles.position_y + rng.normal(0, 0.005, 400), 1.0)
        particles.mark_topology_changed()
        case.cell_list.build(particles)
        api.build_neighbors(particles, case.cell_list, case.kernel, case.neighbors,
                            backend=backend)

        dx, dy = case.domain.minimum_image(
            particles.position_x[:, None] - particles.position_x[None, :],
            particles.position_y[:, None] - particles.position_y[None, :])
        r = np.sqrt(dx**2 + dy**2)
        within = r < case.kernel.cutoff_radius
        np.fill_diagonal(within, False)

        for i in range(particles.n_particles):
            expected = np.nonzero(within[i])[0]
            assert np.array_equal(case.neighbors.neighbors_of(i), expected)
            np.testing.assert_allclose(case.neighbors.distance[i, :len(expected)],
                                       r[i, expected], rtol=1e-12)

    def test_cpu_numba_agree(self, small_config, make_case):
        cpu = make_case(small_config, 'cpu')
        nb_case = make_case(small_config, 'numba')
        assert np.array_equal(cpu.neighbors.ids, nb_case.neighbors.ids)
        np.testing.assert_allclose(cpu.neighbors.distance, nb_case.neighbors.distance, atol=1e-14)
        np.testing.assert_allclose(cpu.neighbors.weight, nb_case.neighbors.weight, rtol=1e-12)
        np.testing.assert_allclose(cpu.neighbors.gradient, nb_case.neighbors.gradient, rtol=1e-12)
        np.testing.assert_allclose(cpu.neighbors.e_x, nb_case.neighbors.e_x, atol=1e-12)

    def test_neighbors_across_periodic_boundary(self, small_config, make_case, backend):
        case = make_case(small_config, backend)
        px = case.particles.position_x
        py = case.particles.position_y
        left = int(np.argmin(px + py))               # site at (dx/2, dx/2)
        row = case.neighbors.neighbors_of(left)
        assert np.any(px[row] > 0.5) and np.any(py[row] > 0.5)

        k = int(np.nonzero(px[row] > 0.5)[0][0])
        # Unit vector points from the image on the right towards the left site
        assert case.neighbors.e_x[left, k] > 0.0

    def test_overflow_is_fatal(self, small_config, make_case, backend):
        case = make_case(small_config, backend)
        small = NeighborList.allocate(case.particles.n_particles, 4)
        with pytest.raises(NeighborOverflowError):
            api.build_neighbors(case.particles, case.cell_list, case.kernel, small,
                                backend=backend)

    def test_stale_cell_list_is_rejected(self, small_config, make_case, backend):
        case = make_case(small_config, backend)
        case.particles.mark_topology_changed()
        with pytest.raises(StaleNeighborListError):
            api.build_neighbors(case.particles, case.cell_list, case.kernel, case.neighbors,
                                backend=backend)

    def test_assert_current(self, small_config, make_case):
        case = make_case(small_config)
        case.neighbors.assert_current(case.particles)
        PeriodicBounding(case.domain).apply(case.particles)
        with pytest.raises(StaleNeighborListError):
            case.neighbors.assert_current(case.particles, "density_summation")


class TestPeriodicBounding:

    @pytest.fixture
    def domain(self):
        return PeriodicDomain((0.0, 0.0), (1.0, 1.0))

    def test_wrap_range(self, domain):
        x = np.array([-0.3, -1e-3, 0.0, 0.5, 0.999, 1.0, 1.25])
        particles = particles_at(x, np.full(len(x), 0.5))
        PeriodicBounding(domain).apply(particles)
        assert domain.contains(particles)
        np.testing.assert_allclose(particles.position_x,
                                   [0.7, 0.999, 0.0, 0.5, 0.999, 0.0, 0.25], atol=1e-15)

    def test_upper_face_maps_to_lower(self):
        pos = np.array([1.0])
        assert wrap_coordinate(pos, 0.0, 1.0) == 1
        assert pos[0] == 0.0

    def test_tiny_negative_rounds_to_lower_face(self):
        pos = np.array([-1e-18])
        wrap_coordinate(pos, 0.0, 1.0)
        assert pos[0] == 0.0

    def test_far_outside_coordinate_is_fatal(self, domain):
        particles = particles_at([0.5, 2.5], [0.5, 0.5])
        with pytest.raises(DomainBoundError, match="Particle 1"):
            PeriodicBounding(domain).apply(particles)

    def test_non_finite_coordinate_left_for_cell_list(self, domain):
        particles = particles_at([0.5, np.nan], [0.5, 0.5])
        PeriodicBounding(domain).apply(particles)
        cell_list = CellLinkedList(domain, 0.2)
        with pytest.raises(NonFiniteStateError):
            cell_list.build(particles)

    def test_other_fields_untouched(self, domain):
        particles = particles_at([1.1, -0.1], [0.5, 1.5])
        particles.velocity_x[:] = [1.0, 2.0]
        particles.density[:] = 3.0
        epoch = particles.topology_epoch

        n = PeriodicBounding(domain).apply(particles)

        assert n == 3
        np.testing.assert_array_equal(particles.velocity_x, [1.0, 2.0])
        np.testing.assert_array_equal(particles.density, 3.0)
        assert particles.topology_epoch == epoch + 1

    def test_non_periodic_axis_not_wrapped(self):
        domain = PeriodicDomain((0.0, 0.0), (1.0, 1.0), periodic=(True, False))
        particles = particles_at([1.2], [1.2])
        PeriodicBounding(domain).apply(particles)
        assert particles.position_x[0] == pytest.approx(0.2)
        assert particles.position_y[0] == 1.2

    def test_minimum_image(self, domain):
        dx, dy = domain.minimum_image(np.array([0.9, -0.6, 0.2]), np.array([-0.95, 0.0, 0.5]))
        np.testing.assert_allclose(dx, [-0.1, 0.4, 0.2], atol=1e-15)
        np.testing.assert_allclose(dy, [0.05, 0.0, 0.5], atol=1e-15)
