"""Caller-side construction of a multigrid hierarchy."""

from typing import List, Optional
import logging

from ..core.sparse_matrix import SparseMatrix
from ..gpu.cuda_kernels import LaunchConfig
from ..utils.logging_utils import log_hierarchy
from .coarse_problem import build_coarse_level
from .host_mirror import copy_problem_to_host, copy_halo_to_host, copy_coarse_problem_to_host

logger = logging.getLogger(__name__)


def build_hierarchy(
    A: SparseMatrix,
    num_levels: int,
    reference: bool = False,
    launch: Optional[LaunchConfig] = None
) -> List[SparseMatrix]:
    """
    Attach ``num_levels - 1`` coarse levels below ``A``.

    Args:
        A: Finest level, set up and without a coarse level
        num_levels: Total number of levels including ``A``
        reference: Build every level in the reference configuration
        launch: Kernel launch parameters

    Returns:
        Levels from finest to coarsest
    """
    if num_levels < 1:
        raise ValueError(f"Number of levels must be positive, got {num_levels}")
    if A.coarse is not None:
        msg = f"{A.title} already has a coarse level; release it before rebuilding"
        logger.error(msg)
        raise ValueError(msg)

    levels = [A]
    try:
        for _ in range(num_levels - 1):
            levels.append(build_coarse_level(levels[-1], reference=reference, launch=launch))
    except BaseException:
        # A had no coarse level on entry and stays set up
        A.release_coarse_levels()
        raise

    log_hierarchy(levels, logger)
    return levels


def mirror_hierarchy(A: SparseMatrix) -> None:
    """Copy every level and its transfer data to the host."""
    copy_problem_to_host(A)
    copy_halo_to_host(A)
    for level in A.levels():
        if level.coarse is not None:
            copy_coarse_problem_to_host(level)


def release_hierarchy(A: SparseMatrix) -> None:
    """Free ``A`` and every level below it."""
    count = A.number_of_levels
    A.release()
    logger.info(f"Released hierarchy of {count} levels")
