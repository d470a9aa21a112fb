"""Checks of the injection mapping and a prolongation smoke test per level."""

import numpy as np
from typing import List, Dict, Any
import logging
from dataclasses import dataclass, field

from ..core.sparse_matrix import SparseMatrix
from ..core.vector import Vector
from ..operators.index_mapping import SENTINEL
from ..operators.transfer import compute_prolongation, compute_prolongation_reference

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    """Outcome of verifying one fine level against its coarse child."""
    level: str
    passed: bool
    failures: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)


def verify_level(Af: SparseMatrix) -> VerificationResult:
    """
    Verify the transfer data of ``Af`` on the host.

    Checks that ``c2f[f2c[i]] == i``, that ``c2f`` holds the sentinel
    everywhere else, that ``f2c`` is injective, and that prolongating an
    all-ones correction into zeros sets exactly the coarse-coincident entries.
    The device prolongation must agree bitwise with the host reference.
    """
    if Af.mg_data is None or Af.mg_data.f2c_host is None:
        raise ValueError(f"{Af.title} has no host transfer data; mirror it first")

    mg_data = Af.mg_data
    memory = Af.memory
    failures = []

    f2c = mg_data.f2c_host.astype(np.int64)
    c2f = memory.download(mg_data.c2f).astype(np.int64)
    coarse_rows = np.arange(len(f2c))

    if not np.array_equal(c2f[f2c], coarse_rows):
        failures.append("c2f[f2c[i]] != i")
    if len(np.unique(f2c)) != len(f2c):
        failures.append("f2c is not injective")
    other = np.ones(len(c2f), dtype=bool)
    other[f2c] = False
    if np.any(c2f[other] != SENTINEL):
        failures.append("c2f holds coarse indices outside the image of f2c")

    xc = mg_data.xc
    saved = xc.values.copy()
    xf = Vector(Af.local_number_of_columns, memory, Af.value_dtype, label="verify.xf")
    try:
        xf.initialize_host()
        xc.values.fill(1.0)
        compute_prolongation_reference(Af, xf)
        touched = np.flatnonzero(xf.values)
        expected = np.sort(Af.host_permutation()[f2c])
        if not np.array_equal(touched, expected) or np.any(xf.values[touched] != 1.0):
            failures.append("prolongation of ones did not touch exactly the coarse points")

        reference_values = xf.values.copy()
        xf.initialize_device()
        xc.copy_to_device()
        compute_prolongation(Af, xf)
        if not np.array_equal(xf.copy_to_host(), reference_values):
            failures.append("device prolongation differs from host reference")
    finally:
        xf.release()
        xc.values[:] = saved
        xc.copy_to_device()

    result = VerificationResult(
        level=Af.title,
        passed=not failures,
        failures=failures,
        details={'coarse_rows': len(f2c), 'fine_rows': len(c2f)}
    )
    if failures:
        logger.error(f"Verification of {Af.title} failed: {'; '.join(failures)}")
    else:
        logger.info(f"Verified {Af.title}: {len(f2c)} coarse points in {len(c2f)} fine rows")
    return result


def verify_hierarchy(A: SparseMatrix) -> List[VerificationResult]:
    """Verify every level of a mirrored hierarchy that has a coarse child."""
    return [verify_level(level) for level in A.levels() if level.coarse is not None]
