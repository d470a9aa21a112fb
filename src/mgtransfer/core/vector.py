"""Dense vectors with explicit host and device representations."""

import numpy as np
from typing import Optional, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from ..gpu.memory_manager import DeviceMemoryManager, DeviceBuffer

logger = logging.getLogger(__name__)


class Vector:
    """
    Dense real vector of a declared logical length.

    ``d_values`` (device) and ``values`` (host) are created independently by
    ``initialize_device`` and ``initialize_host``. Data only moves between
    them through ``copy_to_host`` and ``copy_to_device``.
    """

    def __init__(self, local_length: int, memory: 'DeviceMemoryManager',
                 dtype: np.dtype = np.float64, label: str = "vector"):
        if local_length < 0:
            raise ValueError(f"Vector length must be non-negative, got {local_length}")

        self.local_length = int(local_length)
        self.memory = memory
        self.dtype = np.dtype(dtype)
        self.label = label
        self.values: Optional[np.ndarray] = None
        self.d_values: Optional['DeviceBuffer'] = None

    @property
    def on_device(self) -> bool:
        return self.d_values is not None and not self.d_values.released

    @property
    def on_host(self) -> bool:
        return self.values is not None

    def initialize_device(self) -> 'Vector':
        """Allocate the zero-filled device representation."""
        if self.on_device:
            self.d_values.release()
        self.d_values = self.memory.allocate(self.local_length, self.dtype, fill=0, label=self.label)
        return self

    def initialize_host(self) -> 'Vector':
        """Allocate the zero-filled host representation."""
        self.values = np.zeros(self.local_length, dtype=self.dtype)
        return self

    def copy_to_host(self) -> np.ndarray:
        """Overwrite the host representation with the device values."""
        if not self.on_device:
            raise ValueError(f"Vector '{self.label}' has no device values to copy")
        self.values = self.memory.download(self.d_values)
        return self.values

    def copy_to_device(self) -> 'Vector':
        """Overwrite the device representation with the host values."""
        if not self.on_host:
            raise ValueError(f"Vector '{self.label}' has no host values to copy")
        if self.on_device:
            self.d_values.release()
        self.d_values = self.memory.upload(self.values, label=self.label)
        return self

    def zero(self) -> None:
        """Zero every existing representation."""
        if self.on_device:
            self.d_values.array.fill(0)
        if self.on_host:
            self.values.fill(0)

    def fill(self, value: float) -> None:
        """Set every element of every existing representation to ``value``."""
        if self.on_device:
            self.d_values.array.fill(value)
        if self.on_host:
            self.values.fill(value)

    def release(self) -> None:
        """Free the device representation and drop the host one."""
        if self.d_values is not None:
            self.d_values.release()
            self.d_values = None
        self.values = None

    def __len__(self) -> int:
        return self.local_length

    def __repr__(self) -> str:
        return (f"Vector(label='{self.label}', length={self.local_length}, "
                f"device={self.on_device}, host={self.on_host})")
