"""Advection and acoustic step-size estimators."""

import numpy as np
import pytest

from wcsph.core.particles import FluidParticles
from wcsph.core.timestep import AdvectionTimeStep, AcousticTimeStep, timestep_diagnostics
from wcsph.errors import NonFiniteStateError
from wcsph.physics.material import WeaklyCompressibleFluid


H = 1.3 * 0.05


@pytest.fixture
def material():
    return WeaklyCompressibleFluid(density_ref=1.0, sound_speed_ref=10.0, dynamic_viscosity=0.01)


@pytest.fixture
def particles():
    p = FluidParticles.allocate(16)
    p.density[:] = 1.0
    return p


class TestAdvectionTimeStep:

    def test_fluid_at_rest_uses_reference_velocity(self, particles, material):
        estimator = AdvectionTimeStep(H, 1.0, material)
        assert estimator.estimate(particles) == pytest.approx(0.25 * H / 1.0)

    def test_fastest_particle_limits(self, particles, material):
        particles.velocity_x[3] = 4.0
        estimator = AdvectionTimeStep(H, 1.0, material)
        assert estimator.estimate(particles) == pytest.approx(0.25 * H / 4.0)

    def test_viscous_speed_floor(self, particles):
        viscous = WeaklyCompressibleFluid(1.0, 10.0, dynamic_viscosity=1.0)
        estimator = AdvectionTimeStep(H, 1.0, viscous)
        assert estimator.speed_floor == pytest.approx(1.0 / H)
        assert estimator.estimate(particles) == pytest.approx(0.25 * H * H)

    def test_is_pure(self, particles, material):
        particles.velocity_y[:] = np.linspace(0, 2, 16)
        before = particles.state_dict()
        AdvectionTimeStep(H, 1.0, material).estimate(particles)
        for name, values in before.items():
            np.testing.assert_array_equal(getattr(particles, name), values)

    def test_non_finite_names_first_particle(self, particles, material):
        particles.velocity_x[5] = np.nan
        particles.velocity_x[9] = np.inf
        with pytest.raises(NonFiniteStateError) as excinfo:
            AdvectionTimeStep(H, 1.0, material).estimate(particles)
        assert excinfo.value.index == 5
        assert excinfo.value.stage == AdvectionTimeStep.name

    def test_all_non_finite(self, particles, material):
        particles.velocity_y[:] = np.nan
        with pytest.raises(NonFiniteStateError) as excinfo:
            AdvectionTimeStep(H, 1.0, material).estimate(particles)
        assert excinfo.value.index is None


class TestAcousticTimeStep:

    def test_fluid_at_rest(self, particles, material):
        estimator = AcousticTimeStep(H, material)
        assert estimator.estimate(particles) == pytest.approx(0.6 * H / 10.0)

    def test_signal_speed_includes_flow(self, particles, material):
        particles.velocity_x[0] = 3.0
        particles.velocity_y[0] = 4.0
        estimator = AcousticTimeStep(H, material)
        assert estimator.estimate(particles) == pytest.approx(0.6 * H / 15.0)

    def test_non_finite_density(self, particles, material):
        particles.density[2] = np.nan
        with pytest.raises(NonFiniteStateError) as excinfo:
            AcousticTimeStep(H, material).estimate(particles)
        assert excinfo.value.field == 'density'
        assert excinfo.value.index == 2


def test_diagnostics(particles, material):
    advection = AdvectionTimeStep(H, 1.0, material)
    acoustic = AcousticTimeStep(H, material)
    info = timestep_diagnostics(particles, advection, acoustic)
    assert info['floored']
    assert info['acoustic_dt'] < info['advection_dt']
    # 0.25 / (0.6 / 10) = 4.17 acoustic steps per window
    assert info['sub_steps'] == 5
