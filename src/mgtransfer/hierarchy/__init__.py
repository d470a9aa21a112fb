"""Construction, host mirroring and teardown of the multigrid hierarchy."""

from .coarse_problem import CoarseProblem, generate_coarse_problem, build_coarse_level
from .host_mirror import copy_problem_to_host, copy_halo_to_host, copy_coarse_problem_to_host
from .builder import build_hierarchy, mirror_hierarchy, release_hierarchy
from .verification import VerificationResult, verify_level, verify_hierarchy

__all__ = [
    "CoarseProblem",
    "generate_coarse_problem",
    "build_coarse_level",
    "copy_problem_to_host",
    "copy_halo_to_host",
    "copy_coarse_problem_to_host",
    "build_hierarchy",
    "mirror_hierarchy",
    "release_hierarchy",
    "VerificationResult",
    "verify_level",
    "verify_hierarchy"
]
