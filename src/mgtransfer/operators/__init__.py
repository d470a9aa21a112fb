"""Grid transfer operators for the multigrid hierarchy."""

from .base import BaseOperator
from .index_mapping import build_index_mapping, check_index_range, SENTINEL
from .transfer import (
    ProlongationOperator, RestrictionOperator,
    compute_prolongation, compute_restriction,
    compute_prolongation_reference, compute_restriction_reference
)

__all__ = [
    "BaseOperator",
    "build_index_mapping",
    "check_index_range",
    "SENTINEL",
    "ProlongationOperator",
    "RestrictionOperator",
    "compute_prolongation",
    "compute_restriction",
    "compute_prolongation_reference",
    "compute_restriction_reference"
]
