"""Unit tests for coarse-level assembly."""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from mgtransfer.gpu.memory_manager import DeviceMemoryManager
from mgtransfer.hierarchy import coarse_problem
from mgtransfer.hierarchy.coarse_problem import generate_coarse_problem, build_coarse_level
from mgtransfer.hierarchy.host_mirror import copy_coarse_problem_to_host

from tests import TEST_CONFIG, make_level


@pytest.fixture
def memory():
    return DeviceMemoryManager("host")


class TestGenerateCoarseProblem:
    """Test construction of the next coarser level."""

    def test_halves_every_axis(self, memory):
        Af = make_level(8, 4, 6, memory=memory)
        Ac, mg_data = generate_coarse_problem(Af)

        assert (Ac.geom.nx, Ac.geom.ny, Ac.geom.nz) == (4, 2, 3)
        assert Ac.local_number_of_rows == 24
        assert Ac.is_setup
        assert mg_data.coarse_size == 24
        assert mg_data.fine_size == 192

    def test_does_not_attach(self, memory):
        Af = make_level(4, 4, 4, memory=memory)
        generate_coarse_problem(Af)

        assert Af.coarse is None
        assert Af.mg_data is None

    def test_scenario_4x4x4(self, memory):
        Af = make_level(4, 4, 4, memory=memory)
        Ac, mg_data = generate_coarse_problem(Af)

        np.testing.assert_array_equal(memory.download(mg_data.f2c), TEST_CONFIG['scenario_f2c'])
        assert Ac.title == "level1"
        assert Ac.index_dtype == Af.index_dtype
        assert Ac.value_dtype == Af.value_dtype

    def test_vector_sizes(self, memory):
        """rc has coarse rows, xc coarse columns; Axf only in the reference configuration."""
        Af = make_level(4, 4, 4, size=2, rank=0, memory=memory)
        Ac, mg_data = generate_coarse_problem(Af)

        assert mg_data.rc.local_length == Ac.local_number_of_rows == 8
        assert mg_data.xc.local_length == Ac.local_number_of_columns == 12
        assert mg_data.rc.on_device and mg_data.xc.on_device
        assert mg_data.axf is None

        _, mg_data = generate_coarse_problem(Af, reference=True)
        assert mg_data.axf.local_length == Af.local_number_of_columns == 80
        assert mg_data.axf.on_device

    def test_z_split_halves_partitions(self, memory):
        """Partition sizes (6, 4) become (3, 2)."""
        for rank, nz in ((0, 6), (1, 4)):
            Af = make_level(2, 2, nz, size=2, rank=rank, pz=1, zl=6, zu=4, memory=memory)
            Ac, _ = generate_coarse_problem(Af)

            assert Ac.geom.partz_nz == (3, 2)
            assert Ac.geom.pz == 1
            assert Ac.geom.nz == nz // 2
            assert Ac.geom.gnz == 5

    def test_no_split_stays_unsplit(self, memory):
        Af = make_level(4, 4, 4, memory=memory)
        Ac, _ = generate_coarse_problem(Af)

        assert not Ac.geom.has_z_split
        assert Ac.geom.partz_nz == (2,)

    def test_keeps_process_grid(self, memory):
        Af = make_level(4, 4, 4, size=8, rank=6, memory=memory)
        Ac, _ = generate_coarse_problem(Af)

        assert (Ac.geom.npx, Ac.geom.npy, Ac.geom.npz) == (2, 2, 2)
        assert (Ac.geom.ipx, Ac.geom.ipy, Ac.geom.ipz) == (Af.geom.ipx, Af.geom.ipy, Af.geom.ipz)
        assert Ac.geom.gix0 == Af.geom.gix0 // 2

    @pytest.mark.parametrize("dims", [(3, 4, 4), (4, 5, 4), (4, 4, 7)])
    def test_odd_dimension_fails_before_allocation(self, memory, dims):
        Af = make_level(*dims, memory=memory)
        before = memory.get_statistics()['total_allocations']

        with pytest.raises(ValueError, match="odd"):
            generate_coarse_problem(Af)
        assert memory.get_statistics()['total_allocations'] == before

    def test_odd_z_partition_fails_before_allocation(self, memory):
        Af = make_level(2, 2, 6, size=2, rank=0, pz=1, zl=6, zu=3, memory=memory)
        before = memory.get_statistics()['total_allocations']

        with pytest.raises(ValueError, match="z partition"):
            generate_coarse_problem(Af)
        assert memory.get_statistics()['total_allocations'] == before

    def test_failure_releases_everything(self, memory, monkeypatch):
        Af = make_level(4, 4, 4, memory=memory)
        live = memory.get_statistics()['live_buffers']

        def broken_halo(A):
            raise RuntimeError("halo setup failed")

        monkeypatch.setattr(coarse_problem, "setup_halo", broken_halo)
        with pytest.raises(RuntimeError, match="halo"):
            generate_coarse_problem(Af)

        assert memory.get_statistics()['live_buffers'] == live
        assert Af.coarse is None

    def test_out_of_memory(self, memory, monkeypatch):
        """Allocation failure surfaces as MemoryError with nothing leaked."""
        Af = make_level(4, 4, 4, memory=memory)
        live = memory.get_statistics()['live_buffers']
        allocate = memory.allocate

        def allocate_until_xc(shape, dtype=np.float64, fill=0, label=""):
            if label.endswith(".xc"):
                raise MemoryError(f"Device allocation failed for '{label}'")
            return allocate(shape, dtype, fill, label)

        monkeypatch.setattr(memory, "allocate", allocate_until_xc)
        with pytest.raises(MemoryError):
            generate_coarse_problem(Af)

        assert memory.get_statistics()['live_buffers'] == live


class TestBuildCoarseLevel:
    """Test generation plus attachment."""

    def test_attaches(self, memory):
        Af = make_level(4, 4, 4, memory=memory)
        Ac = build_coarse_level(Af)

        assert Af.coarse is Ac
        assert Af.mg_data.coarse_size == Ac.local_number_of_rows

    def test_second_build_fails(self, memory):
        Af = make_level(4, 4, 4, memory=memory)
        build_coarse_level(Af)
        before = memory.get_statistics()['total_allocations']

        with pytest.raises(ValueError, match="already"):
            build_coarse_level(Af)
        assert memory.get_statistics()['total_allocations'] == before

    def test_int64_indices(self, memory):
        Af = make_level(4, 4, 4, memory=memory, index_dtype=np.int64)
        Ac = build_coarse_level(Af)

        assert Ac.index_dtype == np.int64
        assert Af.mg_data.f2c.dtype == np.int64


class TestHostMirror:
    """Test copying a coarse problem to the host."""

    def test_copy_coarse_problem_to_host(self, memory):
        Af = make_level(4, 4, 4, memory=memory)
        Ac = build_coarse_level(Af)
        copy_coarse_problem_to_host(Af)
        mg_data = Af.mg_data

        np.testing.assert_array_equal(mg_data.f2c_host, TEST_CONFIG['scenario_f2c'])
        assert len(mg_data.rc.values) == Ac.local_number_of_rows
        assert len(mg_data.xc.values) == Ac.local_number_of_columns
        assert len(mg_data.axf.values) == Af.local_number_of_columns
        assert Ac.row_ptr is not None and Ac.values is not None
        assert Ac.halo.elements_to_send is not None

    def test_creates_host_axf(self, memory):
        """Axf is created on the host only; no device buffer is allocated."""
        Af = make_level(4, 4, 4, memory=memory)
        build_coarse_level(Af)
        copy_coarse_problem_to_host(Af)

        assert Af.mg_data.axf.on_host
        assert not Af.mg_data.axf.on_device
        np.testing.assert_array_equal(Af.mg_data.axf.values, 0.0)

    def test_mirrors_coarse_permutation(self, memory):
        Af = make_level(4, 4, 4, memory=memory)
        Ac = build_coarse_level(Af)
        perm = np.arange(8)[::-1]
        Ac.set_permutation(perm)
        copy_coarse_problem_to_host(Af)

        np.testing.assert_array_equal(Ac.host_permutation(), perm)

    def test_requires_coarse_level(self, memory):
        Af = make_level(2, 2, 2, memory=memory)
        with pytest.raises(ValueError):
            copy_coarse_problem_to_host(Af)
