"""Geometric generation of the 27-point stencil operator of one level."""

import numpy as np
from typing import Optional, NamedTuple, TYPE_CHECKING
from dataclasses import dataclass
import logging

from ..core.geometry import generate_geometry
from ..core.sparse_matrix import SparseMatrix
from ..core.vector import Vector
from .halo import setup_halo

if TYPE_CHECKING:
    from ..config.settings import MGTransferConfig
    from ..gpu.memory_manager import DeviceMemoryManager

logger = logging.getLogger(__name__)

DIAGONAL_VALUE = 26.0
OFF_DIAGONAL_VALUE = -1.0

# (dz, dy, dx) offsets, z slowest; the centre entry is number 13
STENCIL_OFFSETS = np.array(
    [(dz, dy, dx) for dz in (-1, 0, 1) for dy in (-1, 0, 1) for dx in (-1, 0, 1)],
    dtype=np.int64
)
CENTER = 13


@dataclass
class StagedOperator:
    """Host CSR arrays with global column indices, awaiting halo setup."""
    row_ptr: np.ndarray
    global_columns: np.ndarray
    values: np.ndarray
    diag_idx: np.ndarray


class FineProblem(NamedTuple):
    """Finest level with its right-hand side, initial guess and exact solution."""
    A: SparseMatrix
    b: Vector
    x: Vector
    xexact: Vector


def generate_problem(
    A: SparseMatrix,
    b: Optional[Vector] = None,
    x: Optional[Vector] = None,
    xexact: Optional[Vector] = None
) -> None:
    """
    Generate the local rows of the 27-point operator for ``A.geom``.

    Neighbours outside the global grid are dropped, so boundary rows carry
    fewer non-zeros. Columns stay in global numbering (``A.staged``) until
    ``setup_halo`` localises them.

    Args:
        A: Level with geometry set and no operator yet
        b: Optional right-hand side, set to 27 - nnz(row)
        x: Optional initial guess, set to 0
        xexact: Optional exact solution, set to 1
    """
    geom = A.geom
    nx, ny, nz = geom.nx, geom.ny, geom.nz
    gnx, gny, gnz = geom.gnx, geom.gny, geom.gnz
    local_rows = geom.local_number_of_rows

    iz, iy, ix = np.meshgrid(np.arange(nz, dtype=np.int64),
                             np.arange(ny, dtype=np.int64),
                             np.arange(nx, dtype=np.int64), indexing='ij')
    giz = geom.giz0 + iz.ravel()
    giy = geom.giy0 + iy.ravel()
    gix = geom.gix0 + ix.ravel()

    ngz = giz[:, None] + STENCIL_OFFSETS[:, 0]
    ngy = giy[:, None] + STENCIL_OFFSETS[:, 1]
    ngx = gix[:, None] + STENCIL_OFFSETS[:, 2]
    valid = ((ngz >= 0) & (ngz < gnz) &
             (ngy >= 0) & (ngy < gny) &
             (ngx >= 0) & (ngx < gnx))

    columns = ngz * gnx * gny + ngy * gnx + ngx
    nnz_in_row = valid.sum(axis=1)

    row_ptr = np.zeros(local_rows + 1, dtype=np.int64)
    np.cumsum(nnz_in_row, out=row_ptr[1:])

    stencil_values = np.full(len(STENCIL_OFFSETS), OFF_DIAGONAL_VALUE, dtype=A.value_dtype)
    stencil_values[CENTER] = DIAGONAL_VALUE
    values = np.broadcast_to(stencil_values, valid.shape)[valid]

    A.staged = StagedOperator(
        row_ptr=row_ptr,
        global_columns=columns[valid],
        values=values,
        diag_idx=row_ptr[:-1] + valid[:, :CENTER].sum(axis=1)
    )

    A.total_number_of_rows = geom.total_number_of_rows
    # Neighbour pairs per axis in a line of g points: 3g - 2
    A.total_number_of_nonzeros = (3 * gnx - 2) * (3 * gny - 2) * (3 * gnz - 2)
    A.local_number_of_rows = local_rows
    A.local_number_of_columns = local_rows
    A.local_number_of_nonzeros = int(row_ptr[-1])
    A.local_to_global = giz * gnx * gny + giy * gnx + gix

    for vector, host_values in ((b, DIAGONAL_VALUE + 1.0 - nnz_in_row),
                                (x, np.zeros(local_rows)),
                                (xexact, np.ones(local_rows))):
        if vector is None:
            continue
        if vector.local_length < local_rows:
            raise ValueError(f"Vector '{vector.label}' has length {vector.local_length}, "
                             f"needs {local_rows}")
        vector.initialize_host()
        vector.values[:local_rows] = host_values
        vector.copy_to_device()

    logger.debug(f"Generated {A.title}: {local_rows} rows, {A.local_number_of_nonzeros} non-zeros")


def setup_problem(config: 'MGTransferConfig', memory: 'DeviceMemoryManager') -> FineProblem:
    """
    Build the finest level described by a configuration.

    Args:
        config: Validated package configuration
        memory: Device memory manager for the new level

    Returns:
        FineProblem with the operator set up and b, x, xexact on the device
    """
    grid = config.grid
    geom = generate_geometry(grid.size, grid.rank, grid.num_threads,
                             grid.pz, grid.zl, grid.zu,
                             grid.nx, grid.ny, grid.nz,
                             grid.npx, grid.npy, grid.npz)

    A = SparseMatrix(geom, memory,
                     index_dtype=config.device.index_dtype,
                     value_dtype=config.device.value_dtype,
                     title="level0")
    rows = geom.local_number_of_rows
    b = Vector(rows, memory, A.value_dtype, label="b")
    xexact = Vector(rows, memory, A.value_dtype, label="xexact")
    x = None

    try:
        generate_problem(A, b, None, xexact)
        setup_halo(A)
        # The initial guess also covers the ghost columns
        x = Vector(A.local_number_of_columns, memory, A.value_dtype, label="x").initialize_device()
    except BaseException:
        for vector in (b, x, xexact):
            if vector is not None:
                vector.release()
        A.release()
        raise

    logger.info(f"Set up finest level: {geom}")
    return FineProblem(A, b, x, xexact)
