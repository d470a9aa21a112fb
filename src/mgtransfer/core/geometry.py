"""Process-local geometry of one structured grid level."""

import numpy as np
from typing import Tuple, Union
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Geometry:
    """
    Local and global extents of one grid level on one process.

    The process grid is npx x npy x npz. Every process has the same local
    nx and ny; along z the processes are split into at most two groups with
    their own local nz (``partz_nz``), the group boundaries being given by
    ``partz_ids`` (exclusive upper process index of each group).
    """
    size: int
    rank: int
    num_threads: int
    nx: int
    ny: int
    nz: int
    npx: int
    npy: int
    npz: int
    pz: int
    npartz: int
    partz_ids: Tuple[int, ...]
    partz_nz: Tuple[int, ...]
    ipx: int
    ipy: int
    ipz: int
    gnx: int
    gny: int
    gnz: int
    gix0: int
    giy0: int
    giz0: int

    @property
    def local_number_of_rows(self) -> int:
        """Number of grid points owned by this process."""
        return self.nx * self.ny * self.nz

    @property
    def total_number_of_rows(self) -> int:
        """Number of grid points in the global grid."""
        return self.gnx * self.gny * self.gnz

    @property
    def has_z_split(self) -> bool:
        """True when the z direction is split into two partitions."""
        return self.pz > 0

    def rank_of_global_row(self, rows: Union[int, np.ndarray]) -> Union[int, np.ndarray]:
        """
        Map global row indices to the rank owning them.

        Args:
            rows: Global linear index or array of indices

        Returns:
            Owning rank(s), same shape as ``rows``
        """
        rows = np.asarray(rows, dtype=np.int64)
        giz = rows // (self.gnx * self.gny)
        giy = (rows // self.gnx) % self.gny
        gix = rows % self.gnx

        ipx = gix // self.nx
        ipy = giy // self.ny

        # First global z plane and first process index of each z partition
        counts = np.diff((0,) + self.partz_ids)
        plane_starts = np.concatenate(([0], np.cumsum(counts * np.asarray(self.partz_nz))))
        proc_starts = np.concatenate(([0], self.partz_ids))
        part = np.searchsorted(plane_starts, giz, side='right') - 1
        part = np.clip(part, 0, self.npartz - 1)
        ipz = proc_starts[part] + (giz - plane_starts[part]) // np.asarray(self.partz_nz)[part]

        ranks = ipx + ipy * self.npx + ipz * self.npy * self.npx
        return int(ranks) if ranks.ndim == 0 else ranks

    def __str__(self) -> str:
        return (f"Geometry(local={self.nx}x{self.ny}x{self.nz}, "
                f"global={self.gnx}x{self.gny}x{self.gnz}, "
                f"procs={self.npx}x{self.npy}x{self.npz}, rank={self.rank})")


def compute_optimal_shape_xyz(size: int) -> Tuple[int, int, int]:
    """
    Factor ``size`` processes into the most cube-like npx x npy x npz grid.

    Ties are broken towards npx <= npy <= npz.
    """
    if size < 1:
        raise ValueError(f"Number of processes must be positive, got {size}")

    best = (1, 1, size)
    best_score = None
    for npx in range(1, size + 1):
        if size % npx:
            continue
        for npy in range(npx, size // npx + 1):
            if (size // npx) % npy:
                continue
            npz = size // (npx * npy)
            if npz < npy:
                continue
            score = (npz - npx, npx * npy + npy * npz + npx * npz)
            if best_score is None or score < best_score:
                best, best_score = (npx, npy, npz), score

    logger.debug(f"Optimal process grid for {size} processes: {best}")
    return best


def generate_geometry(
    size: int,
    rank: int,
    num_threads: int,
    pz: int,
    zl: int,
    zu: int,
    nx: int,
    ny: int,
    nz: int,
    npx: int = 0,
    npy: int = 0,
    npz: int = 0
) -> Geometry:
    """
    Build the geometry of one level on one process.

    Args:
        size: Number of processes
        rank: This process's rank
        num_threads: Threads per process
        pz: z process index where the z partition changes (0 for no split)
        zl: Local nz of the processes below pz
        zu: Local nz of the processes at or above pz
        nx, ny, nz: Local grid extents of this process
        npx, npy, npz: Process grid (computed when not a valid factorization)

    Returns:
        Immutable geometry descriptor
    """
    if min(nx, ny, nz) < 1:
        raise ValueError(f"Local grid extents must be positive, got {nx}x{ny}x{nz}")
    if not 0 <= rank < size:
        raise ValueError(f"Rank {rank} outside [0, {size})")

    if pz == 0:
        zl = nz
        zu = nz

    if npx * npy * npz <= 0 or npx * npy * npz > size:
        npx, npy, npz = compute_optimal_shape_xyz(size)

    if pz == 0:
        partz_ids = (npz,)
        partz_nz = (nz,)
    else:
        if not 0 < pz < npz:
            raise ValueError(f"z partition index pz={pz} must lie in (0, npz={npz})")
        partz_ids = (pz, npz)
        partz_nz = (zl, zu)

    ipz = rank // (npx * npy)
    ipy = (rank - ipz * npx * npy) // npx
    ipx = rank % npx

    if pz > 0 and nz != (zl if ipz < pz else zu):
        raise ValueError(f"Local nz={nz} of rank {rank} does not match its z partition "
                         f"(zl={zl}, zu={zu}, pz={pz})")

    gnx = npx * nx
    gny = npy * ny

    gnz = 0
    previous = 0
    for part_id, part_nz in zip(partz_ids, partz_nz):
        gnz += (part_id - previous) * part_nz
        previous = part_id

    giz0 = 0
    previous = 0
    for part_id, part_nz in zip(partz_ids, partz_nz):
        if ipz < part_id:
            giz0 += (ipz - previous) * part_nz
            break
        giz0 += (part_id - previous) * part_nz
        previous = part_id

    geom = Geometry(
        size=size, rank=rank, num_threads=num_threads,
        nx=nx, ny=ny, nz=nz,
        npx=npx, npy=npy, npz=npz,
        pz=pz, npartz=len(partz_ids), partz_ids=partz_ids, partz_nz=partz_nz,
        ipx=ipx, ipy=ipy, ipz=ipz,
        gnx=gnx, gny=gny, gnz=gnz,
        gix0=ipx * nx, giy0=ipy * ny, giz0=giz0
    )

    logger.debug(f"Generated {geom}")
    return geom
