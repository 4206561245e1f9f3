"""Configuration defaults and validation."""

import json

import pytest

from wcsph.config import SimulationConfig
from wcsph.errors import ConfigurationError
from wcsph.physics.material import WeaklyCompressibleFluid


class TestSimulationConfig:

    def test_reference_case_defaults(self):
        config = SimulationConfig().validate()
        assert config.mu_f == pytest.approx(0.01)
        assert config.smoothing_length == pytest.approx(0.013)
        assert config.cutoff_radius == pytest.approx(0.026)
        assert config.restart_output_interval == 1000
        assert config.domain_bounds == ((0.0, 0.0), (1.0, 1.0))

    def test_restart_interval_override(self):
        assert SimulationConfig(restart_output_interval_override=7).restart_output_interval == 7

    @pytest.mark.parametrize("changes", [
        {'end_time': -1.0},
        {'resolution_ref': 0.0},
        {'acoustic_cfl': 0.0},
        {'screen_output_interval': 0},
        {'restart_step': -1},
        {'max_neighbors': 0},
        {'backend': 'gpu'},
        {'resolution_ref': 0.2},      # fewer than 3 cells per periodic axis
    ])
    def test_invalid(self, changes):
        with pytest.raises(ConfigurationError):
            SimulationConfig(**changes).validate()

    def test_small_box_allowed_when_not_periodic(self):
        SimulationConfig(resolution_ref=0.2, periodic_x=False, periodic_y=False).validate()

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ConfigurationError, match="dt_max"):
            SimulationConfig.from_dict({'end_time': 1.0, 'dt_max': 0.1})

    def test_json_round_trip(self, tmp_path):
        path = tmp_path / "case.json"
        original = SimulationConfig(end_time=0.5, resolution_ref=0.02, backend='numba')
        path.write_text(json.dumps(original.to_dict()))
        assert SimulationConfig.from_json(path) == original

    def test_unreadable_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{ not json")
        with pytest.raises(ConfigurationError):
            SimulationConfig.from_json(path)
        with pytest.raises(ConfigurationError):
            SimulationConfig.from_json(tmp_path / "missing.json")


class TestMaterial:

    def test_linear_equation_of_state(self):
        fluid = WeaklyCompressibleFluid(1.0, 10.0, 0.01)
        assert fluid.pressure(1.01) == pytest.approx(1.0)
        assert fluid.density_from_pressure(1.0) == pytest.approx(1.01)
        assert fluid.kinematic_viscosity == pytest.approx(0.01)

    @pytest.mark.parametrize("args", [(0.0, 10.0, 0.01), (1.0, -1.0, 0.01), (1.0, 10.0, -0.1)])
    def test_invalid_material(self, args):
        with pytest.raises(ValueError):
            WeaklyCompressibleFluid(*args)
