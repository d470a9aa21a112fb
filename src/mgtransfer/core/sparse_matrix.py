"""One level of the multigrid hierarchy: geometry, operator and coarse child."""

import numpy as np
import scipy.sparse as sp
from typing import Optional, Iterator, Any, TYPE_CHECKING
from dataclasses import dataclass
import logging

if TYPE_CHECKING:
    from ..gpu.memory_manager import DeviceMemoryManager, DeviceBuffer
    from .geometry import Geometry
    from .mg_data import MGData

logger = logging.getLogger(__name__)


@dataclass
class HaloData:
    """
    Ghost-exchange bookkeeping of one level.

    Ghost columns are numbered from ``local_number_of_rows`` upwards, grouped
    by neighbour in the order of ``neighbors``.
    """
    neighbors: np.ndarray
    receive_length: np.ndarray
    send_length: np.ndarray
    d_elements_to_send: Optional['DeviceBuffer'] = None
    elements_to_send: Optional[np.ndarray] = None

    @property
    def num_neighbors(self) -> int:
        return len(self.neighbors)

    @property
    def total_to_be_sent(self) -> int:
        return int(np.sum(self.send_length))

    def release(self) -> None:
        if self.d_elements_to_send is not None:
            self.d_elements_to_send.release()
        self.elements_to_send = None


class SparseMatrix:
    """
    A grid level and its sparse operator.

    The operator lives on the device in CSR form (``d_row_ptr``, ``d_col_ind``,
    ``d_values``); host copies exist only after an explicit host mirror.
    A level owns at most one coarser level and its transfer data; both are set
    once through ``attach_coarse_level`` and are read-only afterwards.
    """

    def __init__(
        self,
        geom: 'Geometry',
        memory: 'DeviceMemoryManager',
        index_dtype: np.dtype = np.int32,
        value_dtype: np.dtype = np.float64,
        title: str = ""
    ):
        """
        Initialize an empty level.

        Args:
            geom: Geometry of this level
            memory: Device memory manager owning this level's buffers
            index_dtype: Local index type (int32 or int64)
            value_dtype: Floating point type of operator and vectors
            title: Name used in log messages
        """
        index_dtype = np.dtype(index_dtype)
        if index_dtype not in (np.dtype(np.int32), np.dtype(np.int64)):
            raise ValueError(f"Unsupported local index type: {index_dtype}")

        self.geom = geom
        self.memory = memory
        self.index_dtype = index_dtype
        self.value_dtype = np.dtype(value_dtype)
        self.title = title or f"level({geom.nx}x{geom.ny}x{geom.nz})"

        self.total_number_of_rows = 0
        self.total_number_of_nonzeros = 0
        self.local_number_of_rows = 0
        self.local_number_of_columns = 0
        self.local_number_of_nonzeros = 0
        self.local_to_global: Optional[np.ndarray] = None

        # Host staging written by problem generation, consumed by halo setup
        self.staged: Optional[Any] = None

        self.d_row_ptr: Optional['DeviceBuffer'] = None
        self.d_col_ind: Optional['DeviceBuffer'] = None
        self.d_values: Optional['DeviceBuffer'] = None
        self.d_diag_idx: Optional['DeviceBuffer'] = None

        self.row_ptr: Optional[np.ndarray] = None
        self.col_ind: Optional[np.ndarray] = None
        self.values: Optional[np.ndarray] = None
        self.diag_idx: Optional[np.ndarray] = None

        self.halo: Optional[HaloData] = None

        self.d_perm: Optional['DeviceBuffer'] = None
        self.perm: Optional[np.ndarray] = None
        self._d_identity: Optional['DeviceBuffer'] = None

        self._coarse: Optional['SparseMatrix'] = None
        self._mg_data: Optional['MGData'] = None

    @property
    def coarse(self) -> Optional['SparseMatrix']:
        """The next coarser level, if one has been attached."""
        return self._coarse

    @property
    def mg_data(self) -> Optional['MGData']:
        """Transfer data towards the coarser level, if attached."""
        return self._mg_data

    @property
    def is_setup(self) -> bool:
        """True once the operator and halo live on the device."""
        return self.d_values is not None and self.halo is not None

    def attach_coarse_level(self, problem) -> 'SparseMatrix':
        """
        Make a freshly built coarse problem this level's child.

        Args:
            problem: CoarseProblem produced for this level

        Returns:
            The attached coarse level
        """
        if self._coarse is not None:
            raise ValueError(f"{self.title} already has a coarse level")

        coarse, mg_data = problem.matrix, problem.mg_data
        if any(level is self for level in coarse.levels()):
            raise ValueError("Attaching this coarse level would create a cycle")
        if mg_data.fine_size != self.local_number_of_rows:
            raise ValueError(f"Transfer data covers {mg_data.fine_size} fine rows, "
                             f"{self.title} has {self.local_number_of_rows}")
        if mg_data.coarse_size != coarse.local_number_of_rows:
            raise ValueError(f"Transfer data covers {mg_data.coarse_size} coarse rows, "
                             f"{coarse.title} has {coarse.local_number_of_rows}")

        self._coarse = coarse
        self._mg_data = mg_data
        logger.debug(f"Attached {coarse.title} below {self.title}")
        return coarse

    def levels(self) -> Iterator['SparseMatrix']:
        """Iterate from this level down to the coarsest attached one."""
        level = self
        while level is not None:
            yield level
            level = level._coarse

    @property
    def number_of_levels(self) -> int:
        return sum(1 for _ in self.levels())

    def set_permutation(self, perm: np.ndarray, validate: bool = True) -> None:
        """
        Install a row reordering (logical row -> stored row).

        Args:
            perm: Host array of length local_number_of_rows
            validate: Check that ``perm`` is a bijection on the local rows
        """
        perm = np.asarray(perm)
        if perm.shape != (self.local_number_of_rows,):
            raise ValueError(f"Permutation has shape {perm.shape}, "
                             f"expected ({self.local_number_of_rows},)")
        if validate and not np.array_equal(np.sort(perm), np.arange(self.local_number_of_rows)):
            raise ValueError(f"Permutation of {self.title} is not a bijection on its local rows")

        if self.d_perm is not None:
            self.d_perm.release()
        self.d_perm = self.memory.upload(perm.astype(self.index_dtype), label=f"{self.title}.perm")
        self.perm = None

    def device_permutation(self):
        """Device permutation array, the identity when none is installed."""
        if self.d_perm is not None:
            return self.d_perm.array
        if self._d_identity is None:
            self._d_identity = self.memory.upload(
                np.arange(self.local_number_of_rows, dtype=self.index_dtype),
                label=f"{self.title}.identity")
        return self._d_identity.array

    def host_permutation(self) -> np.ndarray:
        """Host permutation array, the identity when none is installed."""
        if self.perm is not None:
            return self.perm
        if self.d_perm is not None:
            raise ValueError(f"Permutation of {self.title} has not been copied to the host")
        return np.arange(self.local_number_of_rows, dtype=self.index_dtype)

    def to_scipy(self) -> sp.csr_matrix:
        """Host mirror of the operator as a SciPy CSR matrix."""
        if self.values is None:
            raise ValueError(f"Operator of {self.title} has not been copied to the host")
        return sp.csr_matrix(
            (self.values, self.col_ind, self.row_ptr),
            shape=(self.local_number_of_rows, self.local_number_of_columns)
        )

    def release_coarse_levels(self) -> None:
        """Free the transfer data and every coarser level, keeping this level."""
        if self._coarse is not None:
            self._coarse.release()
        if self._mg_data is not None:
            self._mg_data.release()
        self._coarse = None
        self._mg_data = None

    def release(self) -> None:
        """Free this level's device buffers, its transfer data and all coarser levels."""
        self.release_coarse_levels()

        for buffer in (self.d_row_ptr, self.d_col_ind, self.d_values, self.d_diag_idx,
                       self.d_perm, self._d_identity):
            if buffer is not None:
                buffer.release()
        if self.halo is not None:
            self.halo.release()

        self.row_ptr = self.col_ind = self.values = self.diag_idx = self.perm = None
        self.staged = None
        logger.debug(f"Released {self.title}")

    def __repr__(self) -> str:
        return (f"SparseMatrix(title='{self.title}', rows={self.local_number_of_rows}, "
                f"cols={self.local_number_of_columns}, nnz={self.local_number_of_nonzeros}, "
                f"coarse={'yes' if self._coarse is not None else 'no'})")
