"""Device memory management for multigrid transfer data."""

import numpy as np
from typing import Dict, Tuple, Optional, Any, Union
import logging
from dataclasses import dataclass

try:
    import cupy as cp
    CUPY_AVAILABLE = True
except ImportError:
    CUPY_AVAILABLE = False
    cp = None

logger = logging.getLogger(__name__)

BACKENDS = ("auto", "cuda", "host")


@dataclass
class DeviceBuffer:
    """
    Owning handle for one device-resident array.

    The array is dropped on ``release()``; releasing twice is a no-op, so a
    buffer may be released both from an error path and from its owner.
    """
    array: Any
    label: str = ""
    device_id: int = 0
    manager: Optional['DeviceMemoryManager'] = None
    released: bool = False

    @property
    def size(self) -> int:
        """Number of elements."""
        return int(self.array.size)

    @property
    def nbytes(self) -> int:
        """Size of the buffer in bytes."""
        return int(self.array.nbytes)

    @property
    def dtype(self) -> np.dtype:
        """Data type of the buffer."""
        return self.array.dtype

    def release(self) -> None:
        """Drop the device array."""
        if self.released:
            return
        if self.manager is not None:
            self.manager._on_release(self)
        self.array = None
        self.released = True

    def __enter__(self) -> 'DeviceBuffer':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __len__(self) -> int:
        return self.size


class DeviceMemoryManager:
    """
    Allocation and host/device transfer for one accelerator device.

    The ``cuda`` backend keeps arrays in GPU memory through CuPy. The ``host``
    backend keeps them in NumPy arrays but still treats them as a separate
    address space: uploads and downloads always copy.
    """

    def __init__(self, backend: str = "auto", device_id: int = 0):
        """
        Initialize device memory manager.

        Args:
            backend: Execution backend ('auto', 'cuda', 'host')
            device_id: GPU device ID (ignored by the host backend)
        """
        if backend not in BACKENDS:
            raise ValueError(f"Unknown backend: {backend}")

        if backend == "auto":
            backend = "cuda" if _cuda_device_present() else "host"
        elif backend == "cuda" and not CUPY_AVAILABLE:
            raise ImportError("CuPy is required for the cuda backend")

        self.backend = backend
        self.device_id = device_id
        self.xp = cp if backend == "cuda" else np

        self.stats = {
            'total_allocations': 0,
            'total_allocated_bytes': 0,
            'releases': 0,
            'live_buffers': 0,
            'live_bytes': 0,
            'device_transfers': 0
        }

        logger.info(f"Device memory manager initialized: backend={backend}, device={device_id}")

    @property
    def on_device(self) -> bool:
        """True when buffers live in GPU memory."""
        return self.backend == "cuda"

    def allocate(
        self,
        shape: Union[Tuple[int, ...], int],
        dtype: np.dtype = np.float64,
        fill: Optional[Union[int, float]] = 0,
        label: str = ""
    ) -> DeviceBuffer:
        """
        Allocate a device buffer.

        Args:
            shape: Array shape
            dtype: Array data type
            fill: Initial value for every element (None leaves it uninitialized)
            label: Name used in diagnostics

        Returns:
            Owning buffer handle
        """
        if isinstance(shape, int):
            shape = (shape,)
        dtype = np.dtype(dtype)

        try:
            if self.on_device:
                with cp.cuda.Device(self.device_id):
                    if fill is None:
                        array = cp.empty(shape, dtype=dtype)
                    else:
                        array = cp.full(shape, fill, dtype=dtype)
            else:
                if fill is None:
                    array = np.empty(shape, dtype=dtype)
                else:
                    array = np.full(shape, fill, dtype=dtype)
        except MemoryError as e:
            # cupy.cuda.memory.OutOfMemoryError derives from MemoryError
            logger.error(f"Device allocation failed for '{label}' {shape} {dtype}: {e}")
            raise MemoryError(f"Device allocation failed for '{label}': {e}") from e

        return self._track(array, label)

    def upload(self, host_array: np.ndarray, label: str = "") -> DeviceBuffer:
        """Copy a host array into a new device buffer."""
        host_array = np.asarray(host_array)
        try:
            if self.on_device:
                with cp.cuda.Device(self.device_id):
                    array = cp.asarray(host_array)
            else:
                array = np.array(host_array, copy=True)
        except MemoryError as e:
            logger.error(f"Device allocation failed for '{label}' {host_array.shape}: {e}")
            raise MemoryError(f"Device allocation failed for '{label}': {e}") from e

        self.stats['device_transfers'] += 1
        logger.debug(f"Uploaded '{label}': {host_array.shape}, {host_array.dtype}")
        return self._track(array, label)

    def download(self, buffer: DeviceBuffer) -> np.ndarray:
        """Copy a device buffer into a new host array."""
        if buffer.released:
            raise ValueError(f"Cannot download released buffer '{buffer.label}'")

        if self.on_device:
            with cp.cuda.Device(self.device_id):
                host_array = cp.asnumpy(buffer.array)
        else:
            host_array = np.array(buffer.array, copy=True)

        self.stats['device_transfers'] += 1
        logger.debug(f"Downloaded '{buffer.label}': {host_array.shape}, {host_array.dtype}")
        return host_array

    def synchronize(self) -> None:
        """Block until all queued device work has completed."""
        if self.on_device:
            cp.cuda.Device(self.device_id).synchronize()

    def get_statistics(self) -> Dict[str, Any]:
        """Get allocation statistics."""
        return {
            **self.stats,
            'backend': self.backend,
            'device_id': self.device_id,
            'live_mb': self.stats['live_bytes'] / (1024 * 1024)
        }

    def cleanup(self) -> None:
        """Return cached device blocks to the driver."""
        if self.on_device:
            with cp.cuda.Device(self.device_id):
                cp.get_default_memory_pool().free_all_blocks()
        logger.info(f"Device memory manager cleanup completed: "
                    f"{self.stats['live_buffers']} buffers still live")

    def _track(self, array: Any, label: str) -> DeviceBuffer:
        buffer = DeviceBuffer(array=array, label=label, device_id=self.device_id, manager=self)
        self.stats['total_allocations'] += 1
        self.stats['total_allocated_bytes'] += buffer.nbytes
        self.stats['live_buffers'] += 1
        self.stats['live_bytes'] += buffer.nbytes
        return buffer

    def _on_release(self, buffer: DeviceBuffer) -> None:
        self.stats['releases'] += 1
        self.stats['live_buffers'] -= 1
        self.stats['live_bytes'] -= buffer.nbytes

    def __repr__(self) -> str:
        return f"DeviceMemoryManager(backend='{self.backend}', device_id={self.device_id})"


def _cuda_device_present() -> bool:
    if not CUPY_AVAILABLE:
        return False
    try:
        return cp.cuda.runtime.getDeviceCount() > 0
    except cp.cuda.runtime.CUDARuntimeError:
        return False


def check_gpu_availability() -> Dict[str, Any]:
    """Check GPU availability and capabilities."""
    info = {
        'cupy_available': CUPY_AVAILABLE,
        'gpu_count': 0,
        'devices': [],
        'error': None
    }

    if not CUPY_AVAILABLE:
        info['error'] = "CuPy not installed"
        return info

    try:
        info['gpu_count'] = cp.cuda.runtime.getDeviceCount()

        for device_id in range(info['gpu_count']):
            with cp.cuda.Device(device_id):
                device_props = cp.cuda.runtime.getDeviceProperties(device_id)
                meminfo = cp.cuda.runtime.memGetInfo()

                info['devices'].append({
                    'device_id': device_id,
                    'name': device_props['name'].decode(),
                    'compute_capability': f"{device_props['major']}.{device_props['minor']}",
                    'total_memory_mb': meminfo[1] / (1024 * 1024),
                    'free_memory_mb': meminfo[0] / (1024 * 1024),
                    'max_threads_per_block': device_props['maxThreadsPerBlock']
                })

    except cp.cuda.runtime.CUDARuntimeError as e:
        info['error'] = str(e)

    return info
