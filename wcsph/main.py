#!/usr/bin/env python3
"""
Command line entry point for the Taylor-Green vortex case.

    wcsph-taylor-green                  # lattice start, run to end_time
    wcsph-taylor-green -r               # start from relaxed reload file
    wcsph-taylor-green -i 1000          # resume from restart iteration 1000
"""

import argparse
import sys

from .config import SimulationConfig
from .errors import SPHError, ConfigurationError
from .simulation import TaylorGreenSimulation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Weakly-compressible SPH: 2-D Taylor-Green vortex")
    parser.add_argument("-r", "--reload", action="store_true",
                        help="Generate particles from the reload file instead of a lattice")
    parser.add_argument("-i", "--restart-step", type=int, default=None,
                        help="Resume from the restart file written at this iteration")
    parser.add_argument("--config", default=None, help="JSON file with configuration overrides")
    parser.add_argument("--output-dir", default=None)
    parser.add_argument("--end-time", type=float, default=None)
    parser.add_argument("--resolution", type=float, default=None,
                        help="Particle spacing (default 0.01)")
    parser.add_argument("--backend", choices=["cpu", "numba"], default=None)
    parser.add_argument("--log-level", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--no-regression-test", action="store_true",
                        help="Skip the comparison against stored reference results")
    return parser


def config_from_args(args: argparse.Namespace) -> SimulationConfig:
    """Config file first, then explicit command line overrides."""
    config = SimulationConfig.from_json(args.config) if args.config else SimulationConfig()

    overrides = {
        'reload_particles': True if args.reload else None,
        'restart_step': args.restart_step,
        'output_dir': args.output_dir,
        'end_time': args.end_time,
        'resolution_ref': args.resolution,
        'backend': args.backend,
        'log_level': args.log_level,
        'regression_test': False if args.no_regression_test else None,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    return config.validate()


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ConfigurationError as e:
        parser.error(str(e))

    try:
        simulation = TaylorGreenSimulation(config)
        simulation.run()
    except SPHError as e:
        print(f"Simulation aborted: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
