"""
Dual-rate time integrator tests.

Covers:
- Sub-cycle steps summing exactly to the advection step
- The state machine and its early stop
- Restart equivalence with an uninterrupted run
- Energy behavior of a short Taylor-Green run
"""

import dataclasses
import re

import numpy as np
import pytest

from wcsph.clock import SimulationClock
from wcsph.core.particles import STATE_FIELDS
from wcsph.errors import NonFiniteStateError, RestartIOError
from wcsph.integrator import IntegratorState
from wcsph.simulation import TaylorGreenSimulation


class TestSubCycle:

    def test_sub_steps_fill_window(self, small_config):
        sim = TaylorGreenSimulation(small_config)
        assert sim.run(until_iteration=3) is IntegratorState.WINDOWING

        history = list(sim.integrator.window_history)
        assert [record.iteration for record in history] == [0, 1, 2]
        for record in history:
            assert record.n_sub_steps > 1
            assert record.elapsed == pytest.approx(record.advection_dt, rel=1e-12)
            assert max(record.acoustic_dts) <= record.advection_dt

        total = sum(record.elapsed for record in history)
        assert sim.clock.physical_time == pytest.approx(total, rel=1e-12)
        assert sim.clock.iteration == 3

    def test_last_step_is_clipped(self, small_config):
        sim = TaylorGreenSimulation(small_config)
        sim.run(until_iteration=1)
        record = sim.integrator.window_history[-1]
        # Every step but the last is the acoustic estimate, the last is shorter
        assert record.acoustic_dts[-1] <= record.acoustic_dts[0]
        assert sum(record.acoustic_dts[:-1]) < record.advection_dt

    def test_window_smaller_than_acoustic_step(self, small_config):
        config = dataclasses.replace(small_config, advection_cfl=1e-3)
        sim = TaylorGreenSimulation(config)
        sim.run(until_iteration=3)

        for record in sim.integrator.window_history:
            assert record.acoustic_dts == [record.advection_dt]
        assert sim.clock.acoustic_dt == sim.clock.advection_dt

    def test_history_is_bounded(self, small_config):
        sim = TaylorGreenSimulation(small_config)
        assert sim.integrator.window_history.maxlen is not None


class TestStateMachine:

    def test_initial_transitions(self, small_config):
        sim = TaylorGreenSimulation(small_config)
        integrator = sim.integrator
        assert integrator.state is IntegratorState.INITIALIZING
        assert integrator.step() is IntegratorState.WINDOWING
        assert integrator.step() is IntegratorState.SUB_CYCLING
        assert integrator.step() is IntegratorState.WINDOWING
        assert sim.clock.iteration == 1

    def test_restart_state_entered(self, small_config):
        sim = TaylorGreenSimulation(dataclasses.replace(small_config, restart_step=4))
        assert sim.integrator.step() is IntegratorState.RESTARTING

    def test_run_to_end_time(self, small_config):
        sim = TaylorGreenSimulation(small_config)
        assert sim.run() is IntegratorState.TERMINAL
        assert sim.clock.physical_time >= small_config.end_time
        assert sim.integrator.wall_time > 0.0
        # Terminal is absorbing
        assert sim.integrator.step() is IntegratorState.TERMINAL

    def test_progress_lines(self, small_config, caplog):
        sim = TaylorGreenSimulation(dataclasses.replace(small_config, log_level="INFO"))
        with caplog.at_level("INFO"):
            sim.run(until_iteration=2)
        pattern = re.compile(r"N=1\tTime = \d+\.\d{9}\tDt = \d+\.\d{9}\tdt = \d+\.\d{9}")
        assert pattern.search(caplog.text)

    def test_non_finite_state_aborts_before_progress(self, small_config, caplog):
        sim = TaylorGreenSimulation(dataclasses.replace(small_config, log_level="INFO"))
        sim.integrator.step()
        sim.particles.velocity_x[3] = np.nan

        with caplog.at_level("INFO"):
            with pytest.raises(NonFiniteStateError) as excinfo:
                sim.run()
        assert excinfo.value.index == 3
        assert "N=" not in caplog.text


class TestRestart:

    def test_restart_matches_direct_run(self, small_config, backend):
        config = dataclasses.replace(small_config, backend=backend)
        direct = TaylorGreenSimulation(config)
        direct.run(until_iteration=5)

        resumed = TaylorGreenSimulation(dataclasses.replace(config, restart_step=2))
        resumed.run(until_iteration=5)

        assert resumed.clock.iteration == direct.clock.iteration == 5
        assert resumed.clock.physical_time == pytest.approx(direct.clock.physical_time, rel=1e-14)
        for name in STATE_FIELDS:
            np.testing.assert_allclose(getattr(resumed.particles, name),
                                       getattr(direct.particles, name),
                                       rtol=1e-12, atol=1e-14, err_msg=name)

    def test_repeated_runs_are_identical(self, small_config, backend):
        config = dataclasses.replace(small_config, backend=backend)
        first = TaylorGreenSimulation(config)
        first.run(until_iteration=4)
        second = TaylorGreenSimulation(config)
        second.run(until_iteration=4)

        assert len(first.integrator.window_history) == len(second.integrator.window_history) == 4
        for a, b in zip(first.integrator.window_history, second.integrator.window_history):
            assert a.iteration == b.iteration
            assert a.advection_dt == b.advection_dt
            assert a.acoustic_dts == b.acoustic_dts
        assert first.clock.physical_time == second.clock.physical_time
        for name in STATE_FIELDS:
            np.testing.assert_array_equal(getattr(first.particles, name),
                                          getattr(second.particles, name), err_msg=name)

    def test_restart_files_follow_cadence(self, small_config):
        sim = TaylorGreenSimulation(small_config)
        sim.run(until_iteration=5)
        written = sorted(p.name for p in sim.restart_io.directory.glob("*.npz"))
        assert written == [sim.restart_io.path_for(2).name, sim.restart_io.path_for(4).name]

    def test_missing_restart_is_fatal(self, small_config):
        sim = TaylorGreenSimulation(dataclasses.replace(small_config, restart_step=7))
        with pytest.raises(RestartIOError):
            sim.run()


class TestTaylorGreenRun:

    def test_energy_decays_and_stays_bounded(self, small_config):
        config = dataclasses.replace(small_config, end_time=0.1)
        sim = TaylorGreenSimulation(config)
        sim.run()

        energy = sim.reduced_quantities[0]
        assert energy.quantity_name == 'TotalMechanicalEnergy'
        times, values = np.array(energy.rows).T
        assert times[0] == 0.0
        assert values[0] == pytest.approx(0.25, rel=1e-12)
        assert np.all(values <= 1.01 * values[0])
        assert values[-1] < values[0]
        assert values[-1] > 0.5 * values[0]

    def test_particles_stay_in_domain(self, small_config):
        sim = TaylorGreenSimulation(small_config)
        sim.run()
        assert sim.domain.contains(sim.particles)


class TestClock:

    def test_advance(self):
        clock = SimulationClock()
        clock.advance(0.1)
        clock.advance(0.2)
        assert clock.physical_time == pytest.approx(0.3)
        assert clock.acoustic_dt == 0.2

    def test_negative_step(self):
        with pytest.raises(ValueError):
            SimulationClock().advance(-1e-9)

    def test_reset(self):
        clock = SimulationClock(physical_time=1.0, iteration=5, advection_dt=0.1)
        clock.reset(2.5, 1000)
        assert (clock.physical_time, clock.iteration, clock.advection_dt) == (2.5, 1000, 0.0)
