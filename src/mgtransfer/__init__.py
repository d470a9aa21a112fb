"""
Geometric multigrid grid transfers

Construction of coarse levels at half resolution for a 3D 27-point stencil
problem, the injection mappings between fine and coarse grids, and the
prolongation and restriction kernels that use them on a GPU (CuPy) or on the
host (NumPy).
"""

# Version information
from ._version import __version__

from .core import Geometry, generate_geometry, Vector, MGData, SparseMatrix, HaloData
from .gpu import DeviceMemoryManager, DeviceBuffer, LaunchConfig, check_gpu_availability
from .operators import (
    ProlongationOperator, RestrictionOperator, build_index_mapping,
    compute_prolongation, compute_restriction,
    compute_prolongation_reference, compute_restriction_reference
)
from .problem import generate_problem, setup_problem, setup_halo
from .hierarchy import (
    CoarseProblem, generate_coarse_problem, build_coarse_level,
    copy_coarse_problem_to_host, build_hierarchy, release_hierarchy
)
from .config import MGTransferConfig

# CUDA kernels need CuPy; the host backend always works
from .gpu import CUPY_AVAILABLE as GPU_AVAILABLE

__all__ = [
    "Geometry",
    "generate_geometry",
    "Vector",
    "MGData",
    "SparseMatrix",
    "HaloData",
    "DeviceMemoryManager",
    "DeviceBuffer",
    "LaunchConfig",
    "check_gpu_availability",
    "ProlongationOperator",
    "RestrictionOperator",
    "build_index_mapping",
    "compute_prolongation",
    "compute_restriction",
    "compute_prolongation_reference",
    "compute_restriction_reference",
    "generate_problem",
    "setup_problem",
    "setup_halo",
    "CoarseProblem",
    "generate_coarse_problem",
    "build_coarse_level",
    "copy_coarse_problem_to_host",
    "build_hierarchy",
    "release_hierarchy",
    "MGTransferConfig",
    "GPU_AVAILABLE"
]
