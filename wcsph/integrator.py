"""
Dual-rate time integrator.

The outer loop advances in advection windows of size Dt; inside each
window an acoustic sub-cycle advances with dt <= Dt until the window is
exactly filled. Control flow is an explicit state machine:

    INITIALIZING -> (RESTARTING) -> WINDOWING <-> SUB_CYCLING
                                        ^             |
                                        +- OUTPUTTING +-> TERMINAL

Particle topology (cell list and neighbor list) is rebuilt once per
window after the periodic wrap, never inside the sub-cycle.
"""

import enum
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from . import api
from .clock import SimulationClock
from .core.cell_list import CellLinkedList
from .core.kernel_vectorized import WendlandC2Kernel
from .core.neighbors_vectorized import NeighborList
from .core.particles import FluidParticles
from .core.periodic import PeriodicBounding
from .core.timestep import AdvectionTimeStep, AcousticTimeStep
from .physics.stages import (TimeStepInitialization, DensitySummation, ViscousAcceleration,
                             TransportVelocityCorrection, PressureRelaxation,
                             DensityRelaxationRiemann)
from .io.states import BodyStatesRecording
from .io.restart import RestartIO
from .io.reduced import ReducedQuantityRecording


class IntegratorState(enum.Enum):
    INITIALIZING = "initializing"
    RESTARTING = "restarting"
    WINDOWING = "windowing"
    SUB_CYCLING = "sub_cycling"
    OUTPUTTING = "outputting"
    TERMINAL = "terminal"


@dataclass
class WindowRecord:
    """Step sizes used in one advection window."""
    iteration: int
    advection_dt: float
    acoustic_dts: List[float] = field(default_factory=list)

    @property
    def elapsed(self) -> float:
        return float(sum(self.acoustic_dts))

    @property
    def n_sub_steps(self) -> int:
        return len(self.acoustic_dts)


@dataclass
class FluidPipeline:
    """The stage objects in the order the integrator applies them."""
    initialization: TimeStepInitialization
    density_summation: DensitySummation
    viscous_acceleration: ViscousAcceleration
    transport_correction: TransportVelocityCorrection
    pressure_relaxation: PressureRelaxation
    density_relaxation: DensityRelaxationRiemann

    @property
    def window_stages(self) -> tuple:
        return (self.density_summation, self.viscous_acceleration)

    @property
    def sub_cycle_stages(self) -> tuple:
        return (self.pressure_relaxation, self.density_relaxation)


class TimeIntegrator:
    """Drives one fluid body from its initial state to end_time."""

    # Relative slack when deciding that a sub-cycle has filled its window
    window_tolerance = 1e-12

    def __init__(self, particles: FluidParticles, clock: SimulationClock,
                 kernel: WendlandC2Kernel, cell_list: CellLinkedList, neighbors: NeighborList,
                 bounding: PeriodicBounding, advection: AdvectionTimeStep,
                 acoustic: AcousticTimeStep, pipeline: FluidPipeline, *,
                 end_time: float, output_interval: float,
                 screen_output_interval: int = 100, restart_output_interval: int = 1000,
                 restart_step: int = 0,
                 initial_condition: Optional[Callable[[FluidParticles], None]] = None,
                 body_states: Optional[BodyStatesRecording] = None,
                 restart_io: Optional[RestartIO] = None,
                 reduced_quantities: Sequence[ReducedQuantityRecording] = (),
                 backend: Optional[str] = None,
                 logger: Optional[logging.Logger] = None,
                 history_length: int = 1000):
        self.particles = particles
        self.clock = clock
        self.kernel = kernel
        self.cell_list = cell_list
        self.neighbors = neighbors
        self.bounding = bounding
        self.advection = advection
        self.acoustic = acoustic
        self.pipeline = pipeline

        self.end_time = float(end_time)
        self.output_interval = float(output_interval)
        self.screen_output_interval = int(screen_output_interval)
        self.restart_output_interval = int(restart_output_interval)
        self.restart_step = int(restart_step)

        self.initial_condition = initial_condition
        self.body_states = body_states
        self.restart_io = restart_io
        self.reduced_quantities = list(reduced_quantities)
        self.backend = backend
        self.logger = logger or logging.getLogger(__name__)

        self.state = IntegratorState.INITIALIZING
        self.window_history = deque(maxlen=history_length)
        self.integration_time = 0.0     # physical time since the last output

        # Wall-clock accounting, output time excluded
        self._wall_start: Optional[float] = None
        self._output_seconds = 0.0
        self.wall_time = 0.0

        self._handlers = {
            IntegratorState.INITIALIZING: self._initialize,
            IntegratorState.RESTARTING: self._restart,
            IntegratorState.WINDOWING: self._window,
            IntegratorState.SUB_CYCLING: self._sub_cycle,
            IntegratorState.OUTPUTTING: self._output,
        }

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------
    def run(self, until_iteration: Optional[int] = None) -> IntegratorState:
        """Advance the state machine.

        Args:
            until_iteration: Stop before starting the window with this
                iteration number (None runs to end_time)

        Returns:
            State the integrator stopped in
        """
        if self._wall_start is None:
            self._wall_start = time.perf_counter()

        while self.state is not IntegratorState.TERMINAL:
            if (until_iteration is not None and self.state is IntegratorState.WINDOWING
                    and self.clock.iteration >= until_iteration):
                break
            self.step()

        self.wall_time = time.perf_counter() - self._wall_start - self._output_seconds
        if self.state is IntegratorState.TERMINAL:
            self.logger.info("Total wall time for computation: %.6f seconds.", self.wall_time)
        return self.state

    def step(self) -> IntegratorState:
        """Execute the current state's action and transition."""
        if self.state is IntegratorState.TERMINAL:
            return self.state
        self.state = self._handlers[self.state]()
        return self.state

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------
    def rebuild_topology(self):
        """Cell list then neighbor list from current positions."""
        self.cell_list.build(self.particles)
        api.build_neighbors(self.particles, self.cell_list, self.kernel, self.neighbors,
                            backend=self.backend)

    def wrap_and_rebuild(self):
        self.bounding.apply(self.particles)
        self.rebuild_topology()

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------
    def _initialize(self) -> IntegratorState:
        if self.initial_condition is not None:
            self.initial_condition(self.particles)
        self.particles.check_finite("initial_condition")
        self.wrap_and_rebuild()

        if self.restart_step != 0:
            return IntegratorState.RESTARTING

        self._write_initial_outputs()
        return self._after_output()

    def _restart(self) -> IntegratorState:
        if self.restart_io is None:
            raise ValueError("Restart requested without a restart reader")
        physical_time = self.restart_io.read(self.particles, self.restart_step)
        self.clock.reset(physical_time, self.restart_step)
        self.rebuild_topology()

        self._write_initial_outputs(resume=True)
        return self._after_output()

    def _window(self) -> IntegratorState:
        particles = self.particles
        neighbors = self.neighbors
        pipeline = self.pipeline

        pipeline.initialization.apply(particles, neighbors)
        Dt = self.advection.estimate(particles)
        self.clock.advection_dt = Dt
        for stage in pipeline.window_stages:
            stage.apply(particles, neighbors, Dt)
        pipeline.transport_correction.apply(particles, neighbors, Dt)

        self.window_history.append(WindowRecord(self.clock.iteration, Dt))
        return IntegratorState.SUB_CYCLING

    def _sub_cycle(self) -> IntegratorState:
        particles = self.particles
        neighbors = self.neighbors
        clock = self.clock
        record = self.window_history[-1]

        Dt = clock.advection_dt
        threshold = Dt - self.window_tolerance * Dt
        relaxation_time = 0.0
        while relaxation_time < threshold:
            # The last step is clipped so the window ends exactly at Dt
            dt = min(self.acoustic.estimate(particles), Dt - relaxation_time)
            for stage in self.pipeline.sub_cycle_stages:
                stage.apply(particles, neighbors, dt)
            clock.advance(dt)
            relaxation_time += dt
            self.integration_time += dt
            record.acoustic_dts.append(dt)

        particles.check_finite("sub_cycle")
        if clock.iteration % self.screen_output_interval == 0:
            self.logger.info("N=%d\tTime = %.9f\tDt = %.9f\tdt = %.9f",
                             clock.iteration, clock.physical_time, Dt, clock.acoustic_dt)
        clock.next_iteration()

        self.wrap_and_rebuild()

        if (self.restart_io is not None
                and clock.iteration % self.screen_output_interval == 0
                and clock.iteration % self.restart_output_interval == 0):
            self._timed(self.restart_io.write, particles, clock, clock.iteration)

        if self.integration_time >= self.output_interval:
            return IntegratorState.OUTPUTTING
        # end_time is only checked on output boundaries
        return IntegratorState.WINDOWING

    def _output(self) -> IntegratorState:
        start = time.perf_counter()
        for recording in self.reduced_quantities:
            recording.write(self.particles, self.clock)
        if self.body_states is not None:
            self.body_states.write(self.particles, self.clock)
        self._output_seconds += time.perf_counter() - start

        self.integration_time = 0.0
        return self._after_output()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _finished(self) -> bool:
        return self.clock.physical_time >= self.end_time

    def _after_output(self) -> IntegratorState:
        return IntegratorState.TERMINAL if self._finished() else IntegratorState.WINDOWING

    def _write_initial_outputs(self, resume: bool = False):
        start = time.perf_counter()
        for recording in self.reduced_quantities:
            if resume:
                recording.resume(self.clock.physical_time)
            else:
                recording.start()
            recording.write(self.particles, self.clock)
        if self.body_states is not None:
            self.body_states.write(self.particles, self.clock, self.clock.iteration)
        self._output_seconds += time.perf_counter() - start

    def _timed(self, func, *args):
        start = time.perf_counter()
        result = func(*args)
        self._output_seconds += time.perf_counter() - start
        return result
