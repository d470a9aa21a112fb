"""Geometric construction of the next coarser multigrid level."""

import re
import numpy as np
from typing import NamedTuple, Optional, Tuple
import logging

from ..core.geometry import generate_geometry
from ..core.mg_data import MGData
from ..core.sparse_matrix import SparseMatrix
from ..core.vector import Vector
from ..gpu.cuda_kernels import LaunchConfig
from ..operators.index_mapping import build_index_mapping, check_index_range
from ..problem.generate import generate_problem
from ..problem.halo import setup_halo
from ..utils.logging_utils import log_function_call

logger = logging.getLogger(__name__)


class CoarseProblem(NamedTuple):
    """A coarse level and the transfer data linking it to its fine level."""
    matrix: SparseMatrix
    mg_data: MGData

    def release(self) -> None:
        self.mg_data.release()
        self.matrix.release()


def _coarse_title(title: str) -> str:
    match = re.fullmatch(r"level(\d+)", title)
    if match:
        return f"level{int(match.group(1)) + 1}"
    return f"{title}/coarse"


def _validate_coarsening(Af: SparseMatrix) -> Tuple[int, int, int]:
    """Check that ``Af`` can be halved; returns the coarse local extents."""
    geom = Af.geom
    if not Af.is_setup:
        msg = f"{Af.title} has no device operator; set it up before coarsening"
        logger.error(msg)
        raise ValueError(msg)

    odd = [name for name, n in (("nx", geom.nx), ("ny", geom.ny), ("nz", geom.nz)) if n % 2]
    if odd:
        msg = (f"Cannot coarsen {Af.title}: local extents {geom.nx}x{geom.ny}x{geom.nz} "
               f"are odd in {', '.join(odd)}")
        logger.error(msg)
        raise ValueError(msg)

    if geom.has_z_split and any(nz % 2 for nz in geom.partz_nz):
        msg = f"Cannot coarsen {Af.title}: z partition sizes {geom.partz_nz} must both be even"
        logger.error(msg)
        raise ValueError(msg)

    coarse_dims = (geom.nx // 2, geom.ny // 2, geom.nz // 2)
    check_index_range(int(np.prod(coarse_dims, dtype=np.int64)), Af.index_dtype, "Coarse level")
    check_index_range(geom.local_number_of_rows, Af.index_dtype, "Fine level")
    return coarse_dims


@log_function_call
def generate_coarse_problem(
    Af: SparseMatrix,
    reference: bool = False,
    launch: Optional[LaunchConfig] = None
) -> CoarseProblem:
    """
    Build the level at half resolution below ``Af`` without attaching it.

    The coarse grid keeps the fine process grid and z partition index and
    halves every local extent (and both z partition sizes). Its operator is
    regenerated from the stencil rather than formed algebraically.

    Args:
        Af: Fine level with its operator and halo set up
        reference: Also allocate the fine Axf scratch vector used by restriction
        launch: Kernel launch parameters

    Returns:
        CoarseProblem holding the coarse level and its transfer data
    """
    geom = Af.geom
    nxc, nyc, nzc = _validate_coarsening(Af)
    memory = Af.memory

    f2c, c2f = build_index_mapping((nxc, nyc, nzc), (geom.nx, geom.ny, geom.nz),
                                   memory, Af.index_dtype, launch)
    Ac = None
    vectors = []
    try:
        if geom.has_z_split:
            zlc, zuc = geom.partz_nz[0] // 2, geom.partz_nz[1] // 2
        else:
            zlc = zuc = nzc

        geomc = generate_geometry(geom.size, geom.rank, geom.num_threads,
                                  geom.pz, zlc, zuc, nxc, nyc, nzc,
                                  geom.npx, geom.npy, geom.npz)

        Ac = SparseMatrix(geomc, memory, Af.index_dtype, Af.value_dtype,
                          title=_coarse_title(Af.title))
        generate_problem(Ac)
        setup_halo(Ac)

        rc = Vector(Ac.local_number_of_rows, memory, Af.value_dtype, label=f"{Ac.title}.rc")
        vectors.append(rc)
        rc.initialize_device()
        xc = Vector(Ac.local_number_of_columns, memory, Af.value_dtype, label=f"{Ac.title}.xc")
        vectors.append(xc)
        xc.initialize_device()

        axf = None
        if reference:
            axf = Vector(Af.local_number_of_columns, memory, Af.value_dtype,
                         label=f"{Af.title}.axf")
            vectors.append(axf)
            axf.initialize_device()

        mg_data = MGData(f2c=f2c, c2f=c2f, rc=rc, xc=xc, axf=axf)
    except BaseException:
        for vector in vectors:
            vector.release()
        if Ac is not None:
            Ac.release()
        c2f.release()
        f2c.release()
        raise

    logger.info(f"Generated coarse level {Ac.title}: {geomc}")
    return CoarseProblem(Ac, mg_data)


def build_coarse_level(
    Af: SparseMatrix,
    reference: bool = False,
    launch: Optional[LaunchConfig] = None
) -> SparseMatrix:
    """
    Generate the coarse level below ``Af`` and attach it.

    Returns:
        The attached coarse level
    """
    if Af.coarse is not None:
        msg = f"{Af.title} already has a coarse level"
        logger.error(msg)
        raise ValueError(msg)

    problem = generate_coarse_problem(Af, reference=reference, launch=launch)
    try:
        return Af.attach_coarse_level(problem)
    except BaseException:
        problem.release()
        raise
