"""
Command line entry point: build a multigrid hierarchy and report on it.

Usage:
    mg-transfer [--config FILE] [--nx N --ny N --nz N] [--levels L] [options]
"""

import sys
import argparse
import logging
from typing import List, Optional

from ._version import __version__
from .config.settings import MGTransferConfig
from .gpu.memory_manager import DeviceMemoryManager, BACKENDS
from .hierarchy import build_hierarchy, mirror_hierarchy, release_hierarchy, verify_hierarchy
from .problem.generate import setup_problem
from .utils.logging_utils import format_level

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mg-transfer',
        description='Build a geometric multigrid hierarchy for the 27-point stencil problem')
    parser.add_argument('--config', help='YAML or JSON configuration file')
    parser.add_argument('--nx', type=int, help='Local grid points in x')
    parser.add_argument('--ny', type=int, help='Local grid points in y')
    parser.add_argument('--nz', type=int, help='Local grid points in z')
    parser.add_argument('--levels', type=int, help='Total number of levels')
    parser.add_argument('--backend', choices=BACKENDS, help='Execution backend')
    parser.add_argument('--index-dtype', choices=['int32', 'int64'], help='Local index type')
    parser.add_argument('--reference', action='store_true',
                        help='Build levels in the reference configuration (allocates Axf)')
    parser.add_argument('--verify', action='store_true',
                        help='Mirror to host and check the mapping invariants')
    parser.add_argument('--log-level', help='Logging level (overrides configuration)')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def load_config(args: argparse.Namespace) -> MGTransferConfig:
    """Merge the configuration file (if any) with command line overrides."""
    config = MGTransferConfig.from_file(args.config) if args.config else MGTransferConfig()

    for name in ('nx', 'ny', 'nz'):
        value = getattr(args, name)
        if value is not None:
            setattr(config.grid, name, value)
    if args.levels is not None:
        config.hierarchy.num_levels = args.levels
    if args.backend is not None:
        config.device.backend = args.backend
    if args.index_dtype is not None:
        config.device.index_dtype = args.index_dtype
    if args.reference:
        config.hierarchy.reference = True
    if args.log_level is not None:
        config.logging.level = args.log_level.upper()

    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line tool; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except (ValueError, TypeError, FileNotFoundError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    config.setup_logging()

    memory = DeviceMemoryManager(config.device.backend, config.device.device_id)
    problem = None
    try:
        problem = setup_problem(config, memory)
        levels = build_hierarchy(problem.A, config.hierarchy.num_levels,
                                 reference=config.hierarchy.reference,
                                 launch=config.device.launch_config())

        print(f"mg-transfer {__version__} ({memory.backend} backend)")
        for level in levels:
            print(f"  {format_level(level)}")

        status = 0
        if args.verify:
            mirror_hierarchy(problem.A)
            for result in verify_hierarchy(problem.A):
                print(f"  verify {result.level}: {'ok' if result.passed else 'FAILED'}")
                for failure in result.failures:
                    print(f"    - {failure}")
                if not result.passed:
                    status = 1
    except (ValueError, MemoryError, RuntimeError) as e:
        logger.error(f"Hierarchy construction failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        status = 1
    finally:
        if problem is not None:
            for vector in (problem.b, problem.x, problem.xexact):
                vector.release()
            release_hierarchy(problem.A)
        memory.cleanup()

    return status


if __name__ == '__main__':
    sys.exit(main())
