"""
Hierarchy Visualization Module

Plots of the injection pattern that links a fine level to its coarse child.

Functions:
    plot_injection_pattern: Mark the coarse-coincident fine cells of one z plane
    plot_hierarchy_sizes: Bar chart of rows per level
"""

import numpy as np
import matplotlib.pyplot as plt
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.sparse_matrix import SparseMatrix

LEVEL_COLORS = ['#2563eb', '#dc2626', '#059669', '#d97706', '#7c3aed']
GRID_COLOR = '#6b7280'


def injection_mask(level: 'SparseMatrix', z_index: int) -> np.ndarray:
    """
    Boolean (ny, nx) mask of fine cells in plane ``z_index`` that carry a coarse point.

    Requires the level's transfer data to be mirrored to the host.
    """
    mg_data = level.mg_data
    if mg_data is None or mg_data.f2c_host is None:
        raise ValueError(f"{level.title} has no host transfer data; mirror it first")

    geom = level.geom
    if not 0 <= z_index < geom.nz:
        raise ValueError(f"z index {z_index} outside [0, {geom.nz})")

    plane = geom.nx * geom.ny
    fine_rows = mg_data.f2c_host.astype(np.int64)
    in_plane = fine_rows[fine_rows // plane == z_index] - z_index * plane

    mask = np.zeros(plane, dtype=bool)
    mask[in_plane] = True
    return mask.reshape(geom.ny, geom.nx)


def plot_injection_pattern(level: 'SparseMatrix', z_index: int = 0,
                           ax: Optional[plt.Axes] = None,
                           title: Optional[str] = None) -> plt.Axes:
    """
    Draw the fine cells of one z plane, highlighting those injected from the coarse grid.

    Args:
        level: Fine level with a mirrored coarse level
        z_index: Local z plane to draw
        ax: Axes to draw into (a new figure is created when None)
        title: Plot title

    Returns:
        The axes drawn into
    """
    mask = injection_mask(level, z_index)
    ny, nx = mask.shape

    if ax is None:
        _, ax = plt.subplots(figsize=(5, 5))

    iy, ix = np.nonzero(~mask)
    ax.scatter(ix, iy, s=20, facecolors='none', edgecolors=GRID_COLOR,
               label='fine only')
    iy, ix = np.nonzero(mask)
    ax.scatter(ix, iy, s=40, color=LEVEL_COLORS[1], label='coarse point')

    ax.set_xlim(-0.5, nx - 0.5)
    ax.set_ylim(-0.5, ny - 0.5)
    ax.set_aspect('equal')
    ax.set_xlabel('ix')
    ax.set_ylabel('iy')
    ax.set_title(title or f'{level.title}: injection at iz={z_index}')
    ax.legend(loc='upper right', fontsize=8)
    return ax


def plot_hierarchy_sizes(levels: List['SparseMatrix'],
                         ax: Optional[plt.Axes] = None) -> plt.Axes:
    """Bar chart of local rows per level on a log scale."""
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 4))

    rows = [level.local_number_of_rows for level in levels]
    colors = [LEVEL_COLORS[i % len(LEVEL_COLORS)] for i in range(len(levels))]
    ax.bar([level.title for level in levels], rows, color=colors)
    ax.set_yscale('log')
    ax.set_ylabel('local rows')
    ax.set_title('Multigrid hierarchy')
    return ax
