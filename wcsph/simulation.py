"""TaylorGreenSimulation – one configured run of the periodic vortex case.

The session owns every collaborator the integrator needs: particles,
kernel, cell and neighbor lists, stage pipeline, estimators and the
output writers. Nothing here is global; two sessions in one process do
not share state.
"""

from pathlib import Path
from typing import Optional
import logging

from .config import SimulationConfig
from .clock import SimulationClock
from .core.cell_list import CellLinkedList
from .core.kernel_vectorized import WendlandC2Kernel
from .core.neighbors_vectorized import NeighborList
from .core.particles import FluidParticles
from .core.periodic import PeriodicDomain, PeriodicBounding
from .core.timestep import AdvectionTimeStep, AcousticTimeStep
from .physics.material import WeaklyCompressibleFluid
from .physics.reductions import REDUCED_QUANTITIES
from .physics.stages import (TimeStepInitialization, DensitySummation, ViscousAcceleration,
                             TransportVelocityCorrection, PressureRelaxation,
                             DensityRelaxationRiemann)
from .scenarios.taylor_green import (generate_lattice, generate_from_reload,
                                     apply_initial_condition)
from .integrator import TimeIntegrator, FluidPipeline, IntegratorState
from .io.states import BodyStatesRecording
from .io.restart import RestartIO
from .io.reload import ReloadParticleIO
from .io.reduced import ReducedQuantityRecording


class TaylorGreenSimulation:
    """Wires configuration, particles and integrator for one run."""

    def __init__(self, config: Optional[SimulationConfig] = None,
                 particles: Optional[FluidParticles] = None):
        self.config = (config or SimulationConfig()).validate()
        cfg = self.config

        # ---------- logger -------------------------------------------------
        self.logger = logging.getLogger(f"wcsph.{cfg.body_name}_{id(self)}")
        self.logger.setLevel(getattr(logging, str(cfg.log_level).upper(), logging.INFO))
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("%(message)s"))
            self.logger.addHandler(handler)

        self.output_dir = Path(cfg.output_dir)

        # ---------- material & kernel --------------------------------------
        self.material = WeaklyCompressibleFluid(cfg.rho0_f, cfg.c_f, cfg.mu_f)
        self.kernel = WendlandC2Kernel(cfg.smoothing_length)
        self.sigma0 = self.kernel.reference_number_density(cfg.resolution_ref)

        # ---------- body ---------------------------------------------------
        self.reload_io = ReloadParticleIO(self.output_dir, cfg.body_name)
        if particles is None:
            if cfg.reload_particles:
                particles = generate_from_reload(self.reload_io.path, cfg)
            else:
                particles = generate_lattice(cfg)
        self.particles = particles

        # ---------- topology -----------------------------------------------
        lower, upper = cfg.domain_bounds
        self.domain = PeriodicDomain(lower, upper, (cfg.periodic_x, cfg.periodic_y))
        self.bounding = PeriodicBounding(self.domain)
        self.cell_list = CellLinkedList(self.domain, self.kernel.cutoff_radius)
        self.neighbors = NeighborList.allocate(self.particles.n_particles, cfg.max_neighbors)

        # ---------- numerics -----------------------------------------------
        h = cfg.smoothing_length
        self.clock = SimulationClock()
        self.advection = AdvectionTimeStep(h, cfg.U_f, self.material, cfg.advection_cfl)
        self.acoustic = AcousticTimeStep(h, self.material, cfg.acoustic_cfl)
        self.pipeline = FluidPipeline(
            initialization=TimeStepInitialization(cfg.backend),
            density_summation=DensitySummation(self.kernel, self.sigma0, self.material, cfg.backend),
            viscous_acceleration=ViscousAcceleration(self.material, h, cfg.backend),
            transport_correction=TransportVelocityCorrection(h, cfg.transport_coefficient, cfg.backend),
            pressure_relaxation=PressureRelaxation(self.material, cfg.backend),
            density_relaxation=DensityRelaxationRiemann(self.material, cfg.backend),
        )

        # ---------- output -------------------------------------------------
        self.body_states = BodyStatesRecording(self.output_dir, cfg.body_name)
        self.restart_io = RestartIO(self.output_dir, cfg.body_name)
        self.reduced_quantities = [
            ReducedQuantityRecording(self.output_dir, cfg.body_name, name, reduction)
            for name, reduction in REDUCED_QUANTITIES.items()
        ]

        self.integrator = TimeIntegrator(
            self.particles, self.clock, self.kernel, self.cell_list, self.neighbors,
            self.bounding, self.advection, self.acoustic, self.pipeline,
            end_time=cfg.end_time,
            output_interval=cfg.output_interval,
            screen_output_interval=cfg.screen_output_interval,
            restart_output_interval=cfg.restart_output_interval,
            restart_step=cfg.restart_step,
            initial_condition=apply_initial_condition,
            body_states=self.body_states,
            restart_io=self.restart_io,
            reduced_quantities=self.reduced_quantities,
            backend=cfg.backend,
            logger=self.logger,
        )

        self.logger.info("Taylor-Green vortex: %d particles, h = %.4g, Re = %g, backend = %s",
                         self.particles.n_particles, h, cfg.Re, cfg.backend)

    @property
    def state(self) -> IntegratorState:
        return self.integrator.state

    def run(self, until_iteration: Optional[int] = None) -> IntegratorState:
        """Run to end_time (or until_iteration) and finalize a finished run."""
        state = self.integrator.run(until_iteration)
        if state is IntegratorState.TERMINAL:
            self.finalize()
        return state

    def finalize(self):
        """Reload file and, for fresh lattice starts, the regression comparison.

        A resumed run restarts the output-interval timer, so its output
        times do not line up with the reference and it is not compared.
        """
        self.reload_io.write(self.particles)
        if not self.config.regression_test or self.config.reload_particles:
            return
        if self.config.restart_step != 0:
            self.logger.info("Resumed from iteration %d, skipping regression comparison",
                             self.config.restart_step)
            return
        for recording in self.reduced_quantities:
            recording.result_test(self.config.regression_rtol)
