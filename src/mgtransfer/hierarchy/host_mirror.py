"""One-directional device -> host copies of a level and its transfer data."""

import logging

from ..core.sparse_matrix import SparseMatrix
from ..core.vector import Vector

logger = logging.getLogger(__name__)


def copy_problem_to_host(A: SparseMatrix) -> None:
    """Mirror the CSR operator, diagonal index and permutation of ``A``."""
    if not A.is_setup:
        raise ValueError(f"{A.title} has no device operator to copy")

    memory = A.memory
    A.row_ptr = memory.download(A.d_row_ptr)
    A.col_ind = memory.download(A.d_col_ind)
    A.values = memory.download(A.d_values)
    A.diag_idx = memory.download(A.d_diag_idx)
    if A.d_perm is not None:
        A.perm = memory.download(A.d_perm)

    logger.debug(f"Copied operator of {A.title} to host")


def copy_halo_to_host(A: SparseMatrix) -> None:
    """Mirror the send list of ``A``."""
    if A.halo is None:
        raise ValueError(f"{A.title} has no halo to copy")
    if A.halo.d_elements_to_send is not None:
        A.halo.elements_to_send = A.memory.download(A.halo.d_elements_to_send)


def _mirror(vector: Vector) -> None:
    if vector.on_device:
        vector.copy_to_host()
    else:
        vector.initialize_host()


def copy_coarse_problem_to_host(Af: SparseMatrix) -> None:
    """
    Mirror the coarse level below ``Af`` and the transfer data to the host.

    Copies the coarse operator and halo, the ``rc``/``xc`` vectors, ``f2c``
    and ``Axf``. ``Axf`` is created on the host (zero) when the level was
    built without it.
    """
    Ac, mg_data = Af.coarse, Af.mg_data
    if Ac is None or mg_data is None:
        raise ValueError(f"{Af.title} has no coarse level to copy")

    copy_problem_to_host(Ac)
    copy_halo_to_host(Ac)

    _mirror(mg_data.rc)
    _mirror(mg_data.xc)
    if mg_data.axf is None:
        mg_data.axf = Vector(Af.local_number_of_columns, Af.memory, Af.value_dtype,
                             label=f"{Af.title}.axf")
    _mirror(mg_data.axf)

    mg_data.f2c_host = Af.memory.download(mg_data.f2c)
    logger.debug(f"Copied coarse problem of {Af.title} to host")
