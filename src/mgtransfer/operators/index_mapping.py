"""Fine/coarse index mappings for nearest-corner injection."""

import numpy as np
from typing import Tuple, Optional, TYPE_CHECKING
import logging

from ..gpu.cuda_kernels import LaunchConfig, get_transfer_kernels

if TYPE_CHECKING:
    from ..gpu.memory_manager import DeviceMemoryManager, DeviceBuffer

logger = logging.getLogger(__name__)

SENTINEL = -1


def check_index_range(count: int, index_dtype: np.dtype, what: str) -> None:
    """Raise ValueError if ``count`` elements cannot be indexed with ``index_dtype``."""
    limit = np.iinfo(index_dtype).max
    if count <= 0 or count > limit:
        msg = (f"{what} has {count} entries, outside the range of the "
               f"{np.dtype(index_dtype)} local index type (max {limit}); "
               f"use a wider index type")
        logger.error(msg)
        raise ValueError(msg)


def build_index_mapping(
    coarse_dims: Tuple[int, int, int],
    fine_dims: Tuple[int, int, int],
    memory: 'DeviceMemoryManager',
    index_dtype: np.dtype = np.int32,
    launch: Optional[LaunchConfig] = None
) -> Tuple['DeviceBuffer', 'DeviceBuffer']:
    """
    Build the device-resident f2c and c2f arrays of one coarsening step.

    Coarse cell (ixc, iyc, izc) corresponds to fine cell (2ixc, 2iyc, 2izc).
    Both levels use the linearisation iz*(nx*ny) + iy*nx + ix.

    Args:
        coarse_dims: (nxc, nyc, nzc)
        fine_dims: (nxf, nyf, nzf), exactly twice coarse_dims
        memory: Device memory manager
        index_dtype: Local index type
        launch: Kernel launch parameters

    Returns:
        (f2c, c2f): f2c maps coarse -> fine, c2f maps fine -> coarse with
        -1 at fine cells that have no coarse counterpart
    """
    if any(f != 2 * c for c, f in zip(coarse_dims, fine_dims)):
        msg = f"Fine dimensions {fine_dims} are not twice the coarse dimensions {coarse_dims}"
        logger.error(msg)
        raise ValueError(msg)

    index_dtype = np.dtype(index_dtype)
    coarse_count = int(np.prod(coarse_dims, dtype=np.int64))
    fine_count = int(np.prod(fine_dims, dtype=np.int64))
    check_index_range(coarse_count, index_dtype, "Coarse level")
    check_index_range(fine_count, index_dtype, "Fine level")

    f2c = memory.allocate(coarse_count, index_dtype, fill=None, label="f2c")
    try:
        c2f = memory.allocate(fine_count, index_dtype, fill=SENTINEL, label="c2f")
        try:
            kernels = get_transfer_kernels(memory, launch)
            kernels.f2c_operator(tuple(coarse_dims), tuple(fine_dims), f2c.array, c2f.array)
        except BaseException:
            c2f.release()
            raise
    except BaseException:
        f2c.release()
        raise

    logger.debug(f"Built index mapping {fine_dims} -> {coarse_dims}")
    return f2c, c2f
