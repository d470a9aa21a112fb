"""Device memory and kernel layer for grid transfers."""

from .memory_manager import DeviceBuffer, DeviceMemoryManager, check_gpu_availability, CUPY_AVAILABLE
from .cuda_kernels import LaunchConfig, TransferKernels, HostTransferKernels, get_transfer_kernels

__all__ = [
    "DeviceBuffer",
    "DeviceMemoryManager",
    "check_gpu_availability",
    "CUPY_AVAILABLE",
    "LaunchConfig",
    "TransferKernels",
    "HostTransferKernels",
    "get_transfer_kernels"
]
