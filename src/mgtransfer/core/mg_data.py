"""Per-level multigrid transfer data."""

import numpy as np
from typing import Optional, TYPE_CHECKING
from dataclasses import dataclass
import logging

if TYPE_CHECKING:
    from ..gpu.memory_manager import DeviceBuffer
    from .vector import Vector

logger = logging.getLogger(__name__)


@dataclass
class MGData:
    """
    Transfer operators and scratch vectors connecting a level to its coarse child.

    Attributes:
        f2c: Device array, coarse row -> fine row
        c2f: Device array, fine row -> coarse row (-1 where no coarse point)
        rc: Coarse residual, coarse local rows long
        xc: Coarse correction, coarse local columns long
        axf: Fine A*x scratch (fine local columns long), reference configuration only
        f2c_host: Host mirror of f2c, created by the host mirror
    """
    f2c: 'DeviceBuffer'
    c2f: 'DeviceBuffer'
    rc: 'Vector'
    xc: 'Vector'
    axf: Optional['Vector'] = None
    f2c_host: Optional[np.ndarray] = None

    @property
    def coarse_size(self) -> int:
        """Number of coarse rows covered by the mapping."""
        return self.f2c.size

    @property
    def fine_size(self) -> int:
        """Number of fine rows covered by the mapping."""
        return self.c2f.size

    def release(self) -> None:
        """Free every buffer and vector owned by this bundle."""
        if not self.f2c.released:
            logger.debug(f"Releasing MGData ({self.coarse_size} coarse rows)")
        for buffer in (self.f2c, self.c2f):
            buffer.release()
        for vector in (self.rc, self.xc, self.axf):
            if vector is not None:
                vector.release()
        self.f2c_host = None
