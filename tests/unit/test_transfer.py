"""Unit tests for prolongation and restriction."""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from mgtransfer.core.vector import Vector
from mgtransfer.gpu.memory_manager import DeviceMemoryManager
from mgtransfer.hierarchy.builder import mirror_hierarchy
from mgtransfer.hierarchy.coarse_problem import build_coarse_level
from mgtransfer.operators.transfer import (
    ProlongationOperator, RestrictionOperator,
    compute_prolongation, compute_restriction,
    compute_prolongation_reference, compute_restriction_reference
)

from tests import TEST_CONFIG, make_level, upload_values


@pytest.fixture
def memory():
    return DeviceMemoryManager("host")


@pytest.fixture
def rng():
    return np.random.default_rng(TEST_CONFIG['seed'])


@pytest.fixture
def two_levels(memory):
    Af = make_level(4, 4, 4, memory=memory)
    build_coarse_level(Af)
    return Af


def prolongate(Af, coarse_values, fine_values=None):
    """Run the device prolongation and return the fine vector on the host."""
    upload_values(Af.mg_data.xc, coarse_values)
    xf = Vector(Af.local_number_of_columns, Af.memory, label="xf")
    upload_values(xf, 0.0 if fine_values is None else fine_values)
    compute_prolongation(Af, xf)
    return xf.copy_to_host()


class TestProlongation:
    """Test coarse correction scatter-add."""

    def test_zero_correction_is_identity(self, two_levels, rng):
        """Adding a zero correction leaves xf bitwise unchanged."""
        xf0 = rng.standard_normal(64)
        result = prolongate(two_levels, 0.0, xf0)

        assert np.array_equal(result, xf0)

    def test_ones_touch_coarse_points(self, two_levels):
        """All-ones correction into zeros sets exactly the 8 coincident points."""
        result = prolongate(two_levels, 1.0)

        np.testing.assert_array_equal(np.flatnonzero(result), TEST_CONFIG['scenario_f2c'])
        np.testing.assert_array_equal(result[TEST_CONFIG['scenario_f2c']], 1.0)

    def test_adds_to_existing_values(self, two_levels):
        result = prolongate(two_levels, np.arange(8.0), np.full(64, 2.0))
        f2c = TEST_CONFIG['scenario_f2c']

        np.testing.assert_array_equal(result[f2c], 2.0 + np.arange(8.0))
        mask = np.ones(64, dtype=bool)
        mask[f2c] = False
        np.testing.assert_array_equal(result[mask], 2.0)

    def test_linearity(self, two_levels, rng):
        """P(a*u + v) = a*P(u) + P(v)."""
        u = rng.standard_normal(8)
        v = rng.standard_normal(8)
        a = 3.0

        np.testing.assert_allclose(prolongate(two_levels, a * u + v),
                                   a * prolongate(two_levels, u) + prolongate(two_levels, v))

    def test_permutations(self, two_levels, rng):
        """xf[perm_f[f2c[i]]] += xc[perm_c[i]]."""
        Af = two_levels
        perm_f = rng.permutation(64)
        perm_c = rng.permutation(8)
        Af.set_permutation(perm_f)
        Af.coarse.set_permutation(perm_c)

        xc = rng.standard_normal(8)
        result = prolongate(Af, xc)

        f2c = np.array(TEST_CONFIG['scenario_f2c'])
        expected = np.zeros(64)
        expected[perm_f[f2c]] = xc[perm_c]
        np.testing.assert_array_equal(result, expected)

    def test_reference_matches_device(self, two_levels, rng):
        Af = two_levels
        Af.set_permutation(rng.permutation(64))
        xc = rng.standard_normal(8)
        xf0 = rng.standard_normal(64)
        device = prolongate(Af, xc, xf0)

        mirror_hierarchy(Af)
        xf = Vector(64, Af.memory).initialize_host()
        xf.values[:] = xf0
        Af.mg_data.xc.values[:] = xc
        compute_prolongation_reference(Af, xf)

        assert np.array_equal(xf.values, device)

    def test_requires_coarse_level(self, memory):
        Af = make_level(2, 2, 2, memory=memory)
        xf = Vector(8, memory).initialize_device()
        with pytest.raises(ValueError, match="no coarse level"):
            compute_prolongation(Af, xf)

    def test_short_vector(self, two_levels):
        xf = Vector(10, two_levels.memory).initialize_device()
        with pytest.raises(ValueError, match="length"):
            compute_prolongation(two_levels, xf)

    def test_value_dtype_mismatch(self, memory):
        """A float64 vector is rejected by a float32 level on both paths."""
        Af = make_level(4, 4, 4, memory=memory, value_dtype=np.float32)
        build_coarse_level(Af)
        upload_values(Af.mg_data.xc, 1.0)
        xf = upload_values(Vector(64, memory, np.float64), 0.0)

        with pytest.raises(ValueError, match="dtype"):
            compute_prolongation(Af, xf)
        np.testing.assert_array_equal(xf.copy_to_host(), 0.0)

        mirror_hierarchy(Af)
        with pytest.raises(ValueError, match="dtype"):
            compute_prolongation_reference(Af, xf)

    def test_reference_requires_mirror(self, two_levels):
        xf = Vector(64, two_levels.memory).initialize_host()
        with pytest.raises(ValueError, match="host"):
            compute_prolongation_reference(two_levels, xf)


class TestRestriction:
    """Test residual injection."""

    def test_restriction(self, memory, rng):
        """rc[i] = rf[f2c[i]] - Axf[f2c[i]]."""
        Af = make_level(4, 4, 4, memory=memory)
        build_coarse_level(Af, reference=True)
        mg_data = Af.mg_data

        rf_values = rng.standard_normal(64)
        axf_values = rng.standard_normal(64)
        rf = upload_values(Vector(64, memory), rf_values)
        upload_values(mg_data.axf, axf_values)

        compute_restriction(Af, rf)

        f2c = np.array(TEST_CONFIG['scenario_f2c'])
        np.testing.assert_array_equal(mg_data.rc.copy_to_host(), rf_values[f2c] - axf_values[f2c])

    def test_restriction_with_permutations(self, memory, rng):
        Af = make_level(4, 4, 4, memory=memory)
        build_coarse_level(Af, reference=True)
        perm_f = rng.permutation(64)
        perm_c = rng.permutation(8)
        Af.set_permutation(perm_f)
        Af.coarse.set_permutation(perm_c)

        rf_values = rng.standard_normal(64)
        rf = upload_values(Vector(64, memory), rf_values)
        compute_restriction(Af, rf)

        f2c = np.array(TEST_CONFIG['scenario_f2c'])
        expected = np.empty(8)
        expected[perm_c] = rf_values[perm_f[f2c]]
        np.testing.assert_array_equal(Af.mg_data.rc.copy_to_host(), expected)

    def test_value_dtype_mismatch(self, memory):
        Af = make_level(4, 4, 4, memory=memory, value_dtype=np.float32)
        build_coarse_level(Af, reference=True)
        rf = upload_values(Vector(64, memory, np.float64), 1.0)

        with pytest.raises(ValueError, match="dtype"):
            compute_restriction(Af, rf)
        np.testing.assert_array_equal(Af.mg_data.rc.copy_to_host(), 0.0)

        mirror_hierarchy(Af)
        with pytest.raises(ValueError, match="dtype"):
            compute_restriction_reference(Af, rf)

        rf32 = upload_values(Vector(64, memory, np.float32), 1.0)
        compute_restriction(Af, rf32)
        np.testing.assert_array_equal(Af.mg_data.rc.copy_to_host(), 1.0)

    def test_requires_axf(self, two_levels):
        rf = Vector(64, two_levels.memory).initialize_device()
        with pytest.raises(ValueError, match="reference=True"):
            compute_restriction(two_levels, rf)

    def test_reference_matches_device(self, memory, rng):
        Af = make_level(4, 4, 4, memory=memory)
        build_coarse_level(Af, reference=True)
        rf_values = rng.standard_normal(64)
        axf_values = rng.standard_normal(64)
        upload_values(Af.mg_data.axf, axf_values)
        compute_restriction(Af, upload_values(Vector(64, memory), rf_values))
        device = Af.mg_data.rc.copy_to_host()

        mirror_hierarchy(Af)
        Af.mg_data.rc.values[:] = 0.0
        rf = Vector(64, memory).initialize_host()
        rf.values[:] = rf_values
        compute_restriction_reference(Af, rf)

        assert np.array_equal(Af.mg_data.rc.values, device)


class TestTransferOperators:
    """Test the operator wrappers."""

    def test_prolongation_operator(self, two_levels):
        op = ProlongationOperator()
        upload_values(two_levels.mg_data.xc, 1.0)
        xf = Vector(64, two_levels.memory).initialize_device()

        assert op.can_apply(two_levels)
        op.apply(two_levels, xf)
        assert xf.copy_to_host().sum() == 8.0

    def test_cannot_apply_without_coarse_level(self, memory):
        A = make_level(2, 2, 2, memory=memory)
        assert not ProlongationOperator().can_apply(A)
        assert not RestrictionOperator().can_apply(A)

    def test_restriction_operator_needs_axf(self, memory):
        Af = make_level(4, 4, 4, memory=memory)
        build_coarse_level(Af)
        assert not RestrictionOperator().can_apply(Af)

        Af2 = make_level(4, 4, 4, memory=memory)
        build_coarse_level(Af2, reference=True)
        assert RestrictionOperator().can_apply(Af2)

    def test_reference_operator_needs_mirror(self, two_levels):
        op = ProlongationOperator(reference=True)
        assert not op.can_apply(two_levels)

        mirror_hierarchy(two_levels)
        assert op.can_apply(two_levels)

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown"):
            ProlongationOperator(method="trilinear")
        with pytest.raises(ValueError, match="Unknown"):
            RestrictionOperator(method="full_weighting")

    def test_names(self):
        assert str(ProlongationOperator()) == "Prolongation(injection)"
        assert "reference" in str(RestrictionOperator(reference=True))
