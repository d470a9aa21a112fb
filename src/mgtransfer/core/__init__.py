"""Core data structures of a multigrid level."""

from .geometry import Geometry, generate_geometry, compute_optimal_shape_xyz
from .vector import Vector
from .mg_data import MGData
from .sparse_matrix import SparseMatrix, HaloData

__all__ = [
    "Geometry",
    "generate_geometry",
    "compute_optimal_shape_xyz",
    "Vector",
    "MGData",
    "SparseMatrix",
    "HaloData"
]
