"""Ghost-column bookkeeping for a distributed level."""

import numpy as np
import logging

from ..core.sparse_matrix import SparseMatrix, HaloData

logger = logging.getLogger(__name__)


def setup_halo(A: SparseMatrix) -> None:
    """
    Localise the staged operator's columns and record the halo layout.

    Owned columns become local row numbers. External columns become ghost
    columns numbered from ``local_number_of_rows``, ordered by owning rank and
    then by global index. Because the stencil is symmetric, the rows to send to
    a neighbour are exactly the local rows that reference its columns.

    On return the CSR operator, its diagonal index and the send list live on
    the device and the host staging is dropped.
    """
    staged = A.staged
    if staged is None:
        raise ValueError(f"{A.title} has no generated operator; run generate_problem first")

    geom = A.geom
    rows = A.local_number_of_rows
    gcols = staged.global_columns

    lz = gcols // (geom.gnx * geom.gny) - geom.giz0
    ly = (gcols // geom.gnx) % geom.gny - geom.giy0
    lx = gcols % geom.gnx - geom.gix0
    owned = ((lz >= 0) & (lz < geom.nz) &
             (ly >= 0) & (ly < geom.ny) &
             (lx >= 0) & (lx < geom.nx))

    local_cols = np.empty_like(gcols)
    local_cols[owned] = lz[owned] * geom.nx * geom.ny + ly[owned] * geom.nx + lx[owned]

    external = gcols[~owned]
    unique_external = np.unique(external)
    unique_ranks = np.asarray(geom.rank_of_global_row(unique_external), dtype=np.int64)

    order = np.lexsort((unique_external, unique_ranks))
    ghost_of_unique = np.empty_like(unique_external)
    ghost_of_unique[order] = rows + np.arange(len(unique_external))
    local_cols[~owned] = ghost_of_unique[np.searchsorted(unique_external, external)]

    neighbors, receive_length = np.unique(unique_ranks, return_counts=True)

    row_of_entry = np.repeat(np.arange(rows, dtype=np.int64), np.diff(staged.row_ptr))
    external_rows = row_of_entry[~owned]
    external_ranks = np.asarray(geom.rank_of_global_row(external), dtype=np.int64)

    send_lists = [np.unique(external_rows[external_ranks == neighbor]) for neighbor in neighbors]
    send_length = np.array([len(s) for s in send_lists], dtype=np.int64)
    elements_to_send = (np.concatenate(send_lists) if send_lists
                        else np.empty(0, dtype=np.int64))

    A.local_number_of_columns = rows + len(unique_external)

    limit = np.iinfo(A.index_dtype).max
    if max(A.local_number_of_columns, A.local_number_of_nonzeros) > limit:
        raise ValueError(f"{A.title} needs indices up to "
                         f"{max(A.local_number_of_columns, A.local_number_of_nonzeros)}, "
                         f"beyond the {A.index_dtype} local index type")

    memory = A.memory
    itype = A.index_dtype
    A.d_row_ptr = memory.upload(staged.row_ptr.astype(itype), label=f"{A.title}.row_ptr")
    A.d_col_ind = memory.upload(local_cols.astype(itype), label=f"{A.title}.col_ind")
    A.d_values = memory.upload(staged.values, label=f"{A.title}.values")
    A.d_diag_idx = memory.upload(staged.diag_idx.astype(itype), label=f"{A.title}.diag_idx")

    A.halo = HaloData(neighbors=neighbors, receive_length=receive_length, send_length=send_length)
    A.halo.d_elements_to_send = memory.upload(elements_to_send.astype(itype),
                                              label=f"{A.title}.elements_to_send")
    A.staged = None

    logger.debug(f"Set up halo of {A.title}: {len(neighbors)} neighbours, "
                 f"{len(unique_external)} ghost columns, {A.halo.total_to_be_sent} rows to send")
