"""Unit tests for level geometry."""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from mgtransfer.core.geometry import generate_geometry, compute_optimal_shape_xyz


class TestProcessGrid:
    """Test the process grid factorisation."""

    def test_single_process(self):
        assert compute_optimal_shape_xyz(1) == (1, 1, 1)

    def test_cube(self):
        assert compute_optimal_shape_xyz(8) == (2, 2, 2)

    def test_non_cube(self):
        """Most cube-like factorisation with npx <= npy <= npz."""
        assert compute_optimal_shape_xyz(12) == (2, 2, 3)
        assert compute_optimal_shape_xyz(2) == (1, 1, 2)

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            compute_optimal_shape_xyz(0)


class TestGenerateGeometry:
    """Test geometry construction."""

    def test_single_process_geometry(self):
        """One process owns the whole grid."""
        geom = generate_geometry(1, 0, 1, 0, 0, 0, 4, 6, 8)

        assert (geom.npx, geom.npy, geom.npz) == (1, 1, 1)
        assert (geom.gnx, geom.gny, geom.gnz) == (4, 6, 8)
        assert (geom.gix0, geom.giy0, geom.giz0) == (0, 0, 0)
        assert geom.partz_ids == (1,)
        assert geom.partz_nz == (8,)
        assert geom.local_number_of_rows == 192
        assert geom.total_number_of_rows == 192
        assert not geom.has_z_split

    def test_process_coordinates(self):
        """Rank decomposes x fastest, then y, then z."""
        geom = generate_geometry(8, 5, 1, 0, 0, 0, 2, 2, 2)

        assert (geom.ipx, geom.ipy, geom.ipz) == (1, 0, 1)
        assert (geom.gix0, geom.giy0, geom.giz0) == (2, 0, 2)
        assert (geom.gnx, geom.gny, geom.gnz) == (4, 4, 4)

    def test_explicit_process_grid(self):
        geom = generate_geometry(4, 3, 1, 0, 0, 0, 2, 2, 2, npx=4, npy=1, npz=1)

        assert (geom.npx, geom.npy, geom.npz) == (4, 1, 1)
        assert geom.ipx == 3
        assert geom.gnx == 8

    def test_z_split_offsets(self):
        """Lower partitions are zl planes thick, upper ones zu."""
        geoms = [generate_geometry(4, rank, 1, 2, 6, 4, 2, 2, 6 if rank < 2 else 4,
                                    npx=1, npy=1, npz=4)
                 for rank in range(4)]

        for geom in geoms:
            assert geom.gnz == 2 * 6 + 2 * 4
            assert geom.partz_ids == (2, 4)
            assert geom.partz_nz == (6, 4)
            assert geom.has_z_split

        assert [geom.giz0 for geom in geoms] == [0, 6, 12, 16]

    def test_z_split_mismatched_nz(self):
        """Local nz must equal the thickness of the process's partition."""
        with pytest.raises(ValueError, match="z partition"):
            generate_geometry(4, 3, 1, 2, 6, 4, 2, 2, 6, npx=1, npy=1, npz=4)

    def test_invalid_partition_index(self):
        with pytest.raises(ValueError, match="pz"):
            generate_geometry(2, 0, 1, 2, 4, 4, 2, 2, 4)

    def test_invalid_extents(self):
        with pytest.raises(ValueError, match="positive"):
            generate_geometry(1, 0, 1, 0, 0, 0, 0, 4, 4)

    def test_invalid_rank(self):
        with pytest.raises(ValueError, match="Rank"):
            generate_geometry(2, 2, 1, 0, 0, 0, 4, 4, 4)


class TestRankOfGlobalRow:
    """Test the global row -> owning rank map."""

    def test_uniform_partition(self):
        geom = generate_geometry(8, 0, 1, 0, 0, 0, 2, 2, 2)
        # Global row of (gix, giy, giz) = (3, 0, 2) lives on ipx=1, ipy=0, ipz=1
        row = 2 * 16 + 0 * 4 + 3
        assert geom.rank_of_global_row(row) == 5

    def test_scalar_returns_int(self):
        geom = generate_geometry(1, 0, 1, 0, 0, 0, 4, 4, 4)
        assert isinstance(geom.rank_of_global_row(10), int)

    def test_z_split_partition(self):
        """Planes 0-11 belong to ranks 0-1 (6 each), 12-19 to ranks 2-3 (4 each)."""
        geom = generate_geometry(4, 0, 1, 2, 6, 4, 2, 2, 6, npx=1, npy=1, npz=4)
        planes = np.array([0, 5, 6, 11, 12, 15, 16, 19])
        rows = planes * geom.gnx * geom.gny

        ranks = geom.rank_of_global_row(rows)
        np.testing.assert_array_equal(ranks, [0, 0, 1, 1, 2, 2, 3, 3])
