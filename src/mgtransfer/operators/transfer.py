"""Grid transfer operators between a level and its coarse child."""

from typing import TYPE_CHECKING, Optional
import logging

from .base import BaseOperator
from ..gpu.cuda_kernels import LaunchConfig, HostTransferKernels, get_transfer_kernels

if TYPE_CHECKING:
    from ..core.sparse_matrix import SparseMatrix
    from ..core.vector import Vector
    from ..core.mg_data import MGData

logger = logging.getLogger(__name__)


def _transfer_data(Af: 'SparseMatrix') -> 'MGData':
    if Af.mg_data is None or Af.coarse is None:
        msg = f"{Af.title} has no coarse level attached"
        logger.error(msg)
        raise ValueError(msg)
    return Af.mg_data


def _check_vector(Af: 'SparseMatrix', vector: 'Vector') -> None:
    if vector.local_length < Af.local_number_of_rows:
        raise ValueError(f"Vector '{vector.label}' has length {vector.local_length}, "
                         f"{Af.title} has {Af.local_number_of_rows} rows")
    # Kernels are compiled for one value type and read every operand with it
    if vector.dtype != Af.value_dtype:
        msg = (f"Vector '{vector.label}' has dtype {vector.dtype}, "
               f"{Af.title} uses {Af.value_dtype}")
        logger.error(msg)
        raise ValueError(msg)


def compute_prolongation(Af: 'SparseMatrix', xf: 'Vector',
                         launch: Optional[LaunchConfig] = None) -> None:
    """
    Add the coarse correction into the fine solution, on the device.

    For every coarse row i: ``xf[perm_f[f2c[i]]] += xc[perm_c[i]]``. Fine
    points that are not images of coarse points are left unchanged.

    Args:
        Af: Fine level whose ``mg_data.xc`` holds the solved coarse correction
        xf: Fine solution vector, updated in place
        launch: Kernel launch parameters
    """
    mg_data = _transfer_data(Af)
    _check_vector(Af, xf)
    if not xf.on_device or not mg_data.xc.on_device:
        raise ValueError("Prolongation needs xf and xc on the device")

    kernels = get_transfer_kernels(Af.memory, launch)
    kernels.prolongation(
        mg_data.rc.local_length,
        mg_data.f2c.array,
        mg_data.xc.d_values.array,
        xf.d_values.array,
        Af.device_permutation(),
        Af.coarse.device_permutation()
    )


def compute_restriction(Af: 'SparseMatrix', rf: 'Vector',
                        launch: Optional[LaunchConfig] = None) -> None:
    """
    Inject the fine residual ``rf - Axf`` into the coarse residual, on the device.

    For every coarse row i: ``rc[perm_c[i]] = rf[j] - Axf[j]`` with
    ``j = perm_f[f2c[i]]``. ``mg_data.axf`` must hold A*x of the fine level,
    which requires a level built in the reference configuration.

    Args:
        Af: Fine level with a coarse level attached
        rf: Fine right-hand side vector
        launch: Kernel launch parameters
    """
    mg_data = _transfer_data(Af)
    _check_vector(Af, rf)
    if mg_data.axf is None or not mg_data.axf.on_device:
        raise ValueError(f"{Af.title} has no device Axf vector; build it with reference=True")
    _check_vector(Af, mg_data.axf)
    if not rf.on_device:
        raise ValueError("Restriction needs rf on the device")

    kernels = get_transfer_kernels(Af.memory, launch)
    kernels.restriction(
        mg_data.rc.local_length,
        mg_data.f2c.array,
        rf.d_values.array,
        mg_data.axf.d_values.array,
        mg_data.rc.d_values.array,
        Af.device_permutation(),
        Af.coarse.device_permutation()
    )


def _host_transfer_arrays(Af: 'SparseMatrix'):
    mg_data = _transfer_data(Af)
    if mg_data.f2c_host is None:
        raise ValueError(f"Transfer data of {Af.title} has not been copied to the host")
    return mg_data, Af.host_permutation(), Af.coarse.host_permutation()


def compute_prolongation_reference(Af: 'SparseMatrix', xf: 'Vector') -> None:
    """Host-side prolongation on the mirrored arrays (``xf.values``, ``xc.values``)."""
    mg_data, perm_fine, perm_coarse = _host_transfer_arrays(Af)
    _check_vector(Af, xf)
    if not xf.on_host or not mg_data.xc.on_host:
        raise ValueError("Reference prolongation needs xf and xc on the host")

    HostTransferKernels().prolongation(
        len(mg_data.f2c_host), mg_data.f2c_host, mg_data.xc.values, xf.values,
        perm_fine, perm_coarse
    )


def compute_restriction_reference(Af: 'SparseMatrix', rf: 'Vector') -> None:
    """Host-side restriction on the mirrored arrays (``rf.values``, ``axf.values``)."""
    mg_data, perm_fine, perm_coarse = _host_transfer_arrays(Af)
    _check_vector(Af, rf)
    if not rf.on_host or mg_data.axf is None or not mg_data.axf.on_host:
        raise ValueError("Reference restriction needs rf and Axf on the host")
    _check_vector(Af, mg_data.axf)

    HostTransferKernels().restriction(
        len(mg_data.f2c_host), mg_data.f2c_host, rf.values, mg_data.axf.values,
        mg_data.rc.values, perm_fine, perm_coarse
    )


class ProlongationOperator(BaseOperator):
    """
    Prolongation by injection: coarse correction -> coincident fine points.

    Implements I_h^{2h} as the transpose of nearest-corner injection, so the
    fine points between coarse points receive no correction.
    """

    def __init__(self, method: str = "injection", reference: bool = False,
                 launch: Optional[LaunchConfig] = None):
        """
        Initialize prolongation operator.

        Args:
            method: Prolongation method (only 'injection')
            reference: Run on the host mirrors instead of the device
            launch: Kernel launch parameters for the device path
        """
        super().__init__(f"Prolongation({method}{', reference' if reference else ''})")
        if method != "injection":
            raise ValueError(f"Unknown prolongation method: {method}")
        self.method = method
        self.reference = reference
        self.launch = launch

    def can_apply(self, fine_level: 'SparseMatrix') -> bool:
        mg_data = fine_level.mg_data
        if mg_data is None or fine_level.coarse is None:
            return False
        if self.reference:
            return mg_data.f2c_host is not None and mg_data.xc.on_host
        return mg_data.xc.on_device

    def apply(self, fine_level: 'SparseMatrix', vector: 'Vector') -> None:
        if self.reference:
            compute_prolongation_reference(fine_level, vector)
        else:
            compute_prolongation(fine_level, vector, self.launch)
        logger.debug(f"Applied {self.name} on {fine_level.title}")


class RestrictionOperator(BaseOperator):
    """
    Restriction by injection of the fine residual ``rf - Axf``.
    """

    def __init__(self, method: str = "injection", reference: bool = False,
                 launch: Optional[LaunchConfig] = None):
        super().__init__(f"Restriction({method}{', reference' if reference else ''})")
        if method != "injection":
            raise ValueError(f"Unknown restriction method: {method}")
        self.method = method
        self.reference = reference
        self.launch = launch

    def can_apply(self, fine_level: 'SparseMatrix') -> bool:
        mg_data = fine_level.mg_data
        if mg_data is None or fine_level.coarse is None or mg_data.axf is None:
            return False
        if self.reference:
            return mg_data.f2c_host is not None and mg_data.axf.on_host and mg_data.rc.on_host
        return mg_data.axf.on_device

    def apply(self, fine_level: 'SparseMatrix', vector: 'Vector') -> None:
        if self.reference:
            compute_restriction_reference(fine_level, vector)
        else:
            compute_restriction(fine_level, vector, self.launch)
        logger.debug(f"Applied {self.name} on {fine_level.title}")
