"""Grid transfer kernels for the multigrid hierarchy.

Every kernel is a parallel-for over an index space: one work unit per coarse
cell, each writing slots that no other unit writes. ``TransferKernels`` runs
them as CUDA kernels through CuPy; ``HostTransferKernels`` runs the same index
space vectorised with NumPy.
"""

import numpy as np
from typing import Tuple, Dict, Any, Optional
from dataclasses import dataclass
import logging

try:
    import cupy as cp
    CUPY_AVAILABLE = True
except ImportError:
    CUPY_AVAILABLE = False
    cp = None

logger = logging.getLogger(__name__)

_CTYPES = {
    np.dtype(np.int32): "int",
    np.dtype(np.int64): "long long",
    np.dtype(np.float32): "float",
    np.dtype(np.float64): "double",
}


@dataclass(frozen=True)
class LaunchConfig:
    """
    Execution-domain parameters for the transfer kernels.

    Block shapes only affect performance; grid shapes are derived so the
    launch exactly covers the index space.
    """
    f2c_block: Tuple[int, int, int] = (2, 2, 2)
    transfer_block: int = 1024

    def __post_init__(self):
        if len(self.f2c_block) != 3 or min(self.f2c_block) < 1:
            raise ValueError(f"f2c_block must be three positive ints, got {self.f2c_block}")
        if self.transfer_block < 1:
            raise ValueError(f"transfer_block must be positive, got {self.transfer_block}")

    def grid_3d(self, extents: Tuple[int, int, int]) -> Tuple[int, int, int]:
        """Blocks per axis covering (nx, ny, nz)."""
        return tuple((n - 1) // b + 1 for n, b in zip(extents, self.f2c_block))

    def grid_1d(self, n: int) -> Tuple[int]:
        """Blocks covering a flat index space of length n."""
        return ((n - 1) // self.transfer_block + 1,)


_F2C_KERNEL = '''
typedef {index_t} index_t;

extern "C" __global__
void f2c_operator_kernel(
    const index_t nxc,
    const index_t nyc,
    const index_t nzc,
    const index_t nxf,
    const index_t nyf,
    const index_t nzf,
    index_t* f2c,
    index_t* c2f
) {{
    index_t ixc = blockIdx.x * blockDim.x + threadIdx.x;
    index_t iyc = blockIdx.y * blockDim.y + threadIdx.y;
    index_t izc = blockIdx.z * blockDim.z + threadIdx.z;

    if (izc >= nzc || iyc >= nyc || ixc >= nxc) {{
        return;
    }}

    index_t ixf = ixc << 1;
    index_t iyf = iyc << 1;
    index_t izf = izc << 1;

    index_t coarse_row = izc * nxc * nyc + iyc * nxc + ixc;
    index_t fine_row = izf * nxf * nyf + iyf * nxf + ixf;

    f2c[coarse_row] = fine_row;
    c2f[fine_row] = coarse_row;
}}
'''

_PROLONGATION_KERNEL = '''
typedef {index_t} index_t;
typedef {value_t} value_t;

extern "C" __global__
void prolongation_kernel(
    const index_t size,
    const index_t* f2c,
    const value_t* coarse,
    value_t* fine,
    const index_t* perm_fine,
    const index_t* perm_coarse
) {{
    index_t idx_coarse = (index_t)blockIdx.x * blockDim.x + threadIdx.x;

    if (idx_coarse >= size) {{
        return;
    }}

    index_t idx_fine = f2c[idx_coarse];

    fine[perm_fine[idx_fine]] += coarse[perm_coarse[idx_coarse]];
}}
'''

_RESTRICTION_KERNEL = '''
typedef {index_t} index_t;
typedef {value_t} value_t;

extern "C" __global__
void restriction_kernel(
    const index_t size,
    const index_t* f2c,
    const value_t* rf,
    const value_t* axf,
    value_t* rc,
    const index_t* perm_fine,
    const index_t* perm_coarse
) {{
    index_t idx_coarse = (index_t)blockIdx.x * blockDim.x + threadIdx.x;

    if (idx_coarse >= size) {{
        return;
    }}

    index_t idx_fine = perm_fine[f2c[idx_coarse]];

    rc[perm_coarse[idx_coarse]] = rf[idx_fine] - axf[idx_fine];
}}
'''


class CUDAKernels:
    """
    Base class for CUDA kernel implementations.

    Provides kernel compilation and caching.
    """

    def __init__(self, device_id: int = 0, launch: Optional[LaunchConfig] = None):
        """Initialize CUDA kernels."""
        if not CUPY_AVAILABLE:
            raise ImportError("CuPy is required for CUDA kernels")

        self.device_id = device_id
        self.launch = launch or LaunchConfig()
        self.compiled_kernels: Dict[str, Any] = {}

        logger.debug(f"CUDA kernels initialized for device {device_id}")

    def compile_kernel(self, kernel_name: str, kernel_code: str, cache_key: str) -> Any:
        """Compile and cache CUDA kernel."""
        if cache_key in self.compiled_kernels:
            return self.compiled_kernels[cache_key]

        try:
            with cp.cuda.Device(self.device_id):
                kernel = cp.RawKernel(kernel_code, kernel_name)
                kernel.compile()
        except cp.cuda.compiler.CompileException as e:
            logger.error(f"Failed to compile kernel {kernel_name}: {e}")
            raise RuntimeError(f"Failed to compile kernel {kernel_name}") from e

        self.compiled_kernels[cache_key] = kernel
        logger.debug(f"Compiled CUDA kernel: {cache_key}")
        return kernel

    def _launch(self, kernel: Any, name: str, grid: Tuple[int, ...],
                block: Tuple[int, ...], args: Tuple[Any, ...]) -> None:
        try:
            with cp.cuda.Device(self.device_id):
                kernel(grid, block, args)
                cp.cuda.Device(self.device_id).synchronize()
        except (cp.cuda.runtime.CUDARuntimeError, cp.cuda.driver.CUDADriverError) as e:
            logger.error(f"Kernel {name} failed (grid={grid}, block={block}): {e}")
            raise RuntimeError(f"Kernel {name} failed: {e}") from e

        logger.debug(f"Launched {name}: grid={grid}, block={block}")


class TransferKernels(CUDAKernels):
    """CUDA kernels for the index mapping and grid transfer operations."""

    def _kernel(self, name: str, template: str, index_dtype: np.dtype,
                value_dtype: Optional[np.dtype] = None) -> Any:
        index_t = _CTYPES[np.dtype(index_dtype)]
        value_t = _CTYPES[np.dtype(value_dtype)] if value_dtype is not None else ""
        code = template.format(index_t=index_t, value_t=value_t)
        return self.compile_kernel(name, code, f"{name}<{index_t},{value_t}>")

    def f2c_operator(self, coarse_dims: Tuple[int, int, int], fine_dims: Tuple[int, int, int],
                     f2c: 'cp.ndarray', c2f: 'cp.ndarray') -> None:
        """
        Fill f2c and c2f for nearest-corner injection.

        Args:
            coarse_dims: (nxc, nyc, nzc)
            fine_dims: (nxf, nyf, nzf)
            f2c: Coarse-indexed output array
            c2f: Fine-indexed output array, pre-filled with -1
        """
        itype = f2c.dtype.type
        kernel = self._kernel("f2c_operator_kernel", _F2C_KERNEL, f2c.dtype)
        args = tuple(itype(n) for n in coarse_dims) + tuple(itype(n) for n in fine_dims) + (f2c, c2f)
        self._launch(kernel, "f2c_operator_kernel",
                     self.launch.grid_3d(coarse_dims), self.launch.f2c_block, args)

    def prolongation(self, size: int, f2c: 'cp.ndarray', coarse: 'cp.ndarray',
                     fine: 'cp.ndarray', perm_fine: 'cp.ndarray',
                     perm_coarse: 'cp.ndarray') -> None:
        """fine[perm_fine[f2c[i]]] += coarse[perm_coarse[i]] for i < size."""
        if size == 0:
            return
        kernel = self._kernel("prolongation_kernel", _PROLONGATION_KERNEL, f2c.dtype, fine.dtype)
        args = (f2c.dtype.type(size), f2c, coarse, fine, perm_fine, perm_coarse)
        self._launch(kernel, "prolongation_kernel",
                     self.launch.grid_1d(size), (self.launch.transfer_block,), args)

    def restriction(self, size: int, f2c: 'cp.ndarray', rf: 'cp.ndarray', axf: 'cp.ndarray',
                    rc: 'cp.ndarray', perm_fine: 'cp.ndarray',
                    perm_coarse: 'cp.ndarray') -> None:
        """rc[perm_coarse[i]] = (rf - axf)[perm_fine[f2c[i]]] for i < size."""
        if size == 0:
            return
        kernel = self._kernel("restriction_kernel", _RESTRICTION_KERNEL, f2c.dtype, rc.dtype)
        args = (f2c.dtype.type(size), f2c, rf, axf, rc, perm_fine, perm_coarse)
        self._launch(kernel, "restriction_kernel",
                     self.launch.grid_1d(size), (self.launch.transfer_block,), args)


class HostTransferKernels:
    """The transfer kernels over the same index spaces, vectorised with NumPy."""

    def __init__(self, launch: Optional[LaunchConfig] = None):
        self.launch = launch or LaunchConfig()

    def f2c_operator(self, coarse_dims: Tuple[int, int, int], fine_dims: Tuple[int, int, int],
                     f2c: np.ndarray, c2f: np.ndarray) -> None:
        nxc, nyc, nzc = coarse_dims
        nxf, nyf, _ = fine_dims

        izc, iyc, ixc = np.meshgrid(np.arange(nzc, dtype=np.int64),
                                    np.arange(nyc, dtype=np.int64),
                                    np.arange(nxc, dtype=np.int64), indexing='ij')
        coarse_rows = (izc * nxc * nyc + iyc * nxc + ixc).ravel()
        fine_rows = ((2 * izc) * nxf * nyf + (2 * iyc) * nxf + 2 * ixc).ravel()

        f2c[coarse_rows] = fine_rows
        c2f[fine_rows] = coarse_rows
        logger.debug(f"Ran host f2c_operator over {coarse_rows.size} coarse cells")

    def prolongation(self, size: int, f2c: np.ndarray, coarse: np.ndarray, fine: np.ndarray,
                     perm_fine: np.ndarray, perm_coarse: np.ndarray) -> None:
        idx_coarse = np.arange(size)
        # Targets are distinct, so a buffered fancy-index add is exact
        fine[perm_fine[f2c[idx_coarse]]] += coarse[perm_coarse[idx_coarse]]
        logger.debug(f"Ran host prolongation over {size} coarse cells")

    def restriction(self, size: int, f2c: np.ndarray, rf: np.ndarray, axf: np.ndarray,
                    rc: np.ndarray, perm_fine: np.ndarray, perm_coarse: np.ndarray) -> None:
        idx_coarse = np.arange(size)
        idx_fine = perm_fine[f2c[idx_coarse]]
        rc[perm_coarse[idx_coarse]] = rf[idx_fine] - axf[idx_fine]
        logger.debug(f"Ran host restriction over {size} coarse cells")


_kernel_cache: Dict[Tuple[str, int, LaunchConfig], Any] = {}


def get_transfer_kernels(memory, launch: Optional[LaunchConfig] = None):
    """
    Get the transfer kernels matching a memory manager's backend.

    Args:
        memory: DeviceMemoryManager whose buffers the kernels operate on
        launch: Execution-domain parameters (default LaunchConfig())

    Returns:
        TransferKernels or HostTransferKernels
    """
    launch = launch or LaunchConfig()
    key = (memory.backend, memory.device_id, launch)
    if key not in _kernel_cache:
        if memory.on_device:
            _kernel_cache[key] = TransferKernels(memory.device_id, launch)
        else:
            _kernel_cache[key] = HostTransferKernels(launch)
    return _kernel_cache[key]
