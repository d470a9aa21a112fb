"""
Test Suite for mg-transfer

Unit tests cover the geometry, problem generation, halo setup, index
mappings, transfer kernels and coarse-level assembly on the host backend.
Integration tests build complete hierarchies and verify them end to end.
CUDA tests run only when CuPy and a device are present.
"""

import numpy as np
import sys
from pathlib import Path

# Add src directory to path for imports
test_dir = Path(__file__).parent
src_dir = test_dir.parent / 'src'
sys.path.insert(0, str(src_dir))

from mgtransfer.core.geometry import generate_geometry
from mgtransfer.core.sparse_matrix import SparseMatrix
from mgtransfer.gpu.memory_manager import DeviceMemoryManager
from mgtransfer.problem.generate import generate_problem
from mgtransfer.problem.halo import setup_halo

# Test configuration
TEST_CONFIG = {
    'backend': 'host',
    'seed': 1234,
    'scenario_f2c': [0, 2, 8, 10, 32, 34, 40, 42],
}


def make_level(nx=4, ny=4, nz=4, size=1, rank=0, pz=0, zl=0, zu=0,
               npx=0, npy=0, npz=0, memory=None, index_dtype=np.int32,
               value_dtype=np.float64, title="level0"):
    """Build a fully set-up level (operator and halo on the device)."""
    memory = memory or DeviceMemoryManager(TEST_CONFIG['backend'])
    geom = generate_geometry(size, rank, 1, pz, zl, zu, nx, ny, nz, npx, npy, npz)
    A = SparseMatrix(geom, memory, index_dtype, value_dtype, title=title)
    generate_problem(A)
    setup_halo(A)
    return A


def upload_values(vector, values):
    """Overwrite a vector's host and device representations with ``values``."""
    vector.initialize_host()
    vector.values[:] = values
    vector.copy_to_device()
    return vector


__all__ = ['TEST_CONFIG', 'make_level', 'upload_values']
