"""Unit tests for configuration handling."""

import logging
import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from mgtransfer.config.settings import (
    MGTransferConfig, GridConfig, DeviceConfig, HierarchyConfig, LoggingConfig,
    create_default_config
)
from mgtransfer.gpu.cuda_kernels import LaunchConfig
from mgtransfer.gpu.memory_manager import DeviceMemoryManager
from mgtransfer.problem.generate import setup_problem


class TestSections:
    """Test validation of the individual sections."""

    def test_defaults_are_valid(self):
        config = create_default_config()
        config.validate()

        assert config.device.index_dtype == "int32"
        assert config.hierarchy.num_levels == 4

    def test_grid_validation(self):
        with pytest.raises(ValueError, match="positive"):
            GridConfig(nx=0).validate()
        with pytest.raises(ValueError, match="Rank"):
            GridConfig(size=2, rank=2).validate()
        with pytest.raises(ValueError, match="zl and zu"):
            GridConfig(pz=1, zl=0, zu=4).validate()

    def test_device_validation(self):
        with pytest.raises(ValueError, match="backend"):
            DeviceConfig(backend="opencl").validate()
        with pytest.raises(ValueError, match="index dtype"):
            DeviceConfig(index_dtype="int16").validate()
        with pytest.raises(ValueError, match="value dtype"):
            DeviceConfig(value_dtype="float16").validate()

    def test_launch_config(self):
        launch = DeviceConfig(f2c_block=(4, 4, 2), transfer_block=256).launch_config()

        assert launch == LaunchConfig(f2c_block=(4, 4, 2), transfer_block=256)
        assert launch.grid_1d(1000) == (4,)

    def test_hierarchy_validation(self):
        with pytest.raises(ValueError):
            HierarchyConfig(num_levels=0).validate()

    def test_hierarchy_fields(self):
        """Only fields the hierarchy builder reads are accepted."""
        assert MGTransferConfig().to_dict()['hierarchy'] == {'num_levels': 4, 'reference': False}
        with pytest.raises(TypeError):
            MGTransferConfig.from_dict({'hierarchy': {'validate_permutations': False}})

    def test_logging_validation(self):
        LoggingConfig(level="debug").validate()
        with pytest.raises(ValueError):
            LoggingConfig(level="VERBOSE").validate()


class TestMGTransferConfig:
    """Test the complete configuration."""

    def test_divisibility_warning(self, caplog):
        config = MGTransferConfig(grid=GridConfig(nx=12, ny=16, nz=16),
                                  hierarchy=HierarchyConfig(num_levels=4))
        with caplog.at_level(logging.WARNING):
            config.validate()

        assert "not divisible by 8" in caplog.text

    def test_from_dict(self):
        config = MGTransferConfig.from_dict({
            'grid': {'nx': 8, 'ny': 8, 'nz': 8},
            'device': {'backend': 'host', 'f2c_block': [4, 2, 2]},
        })

        assert config.grid.nx == 8
        assert config.device.f2c_block == (4, 2, 2)
        assert config.hierarchy == HierarchyConfig()

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown configuration section"):
            MGTransferConfig.from_dict({'solver': {}})

    def test_yaml_round_trip(self, tmp_path):
        config = MGTransferConfig()
        config.grid.nx = 32
        config.device.backend = "host"
        config.hierarchy.reference = True

        path = tmp_path / "config.yaml"
        config.to_yaml(path)
        loaded = MGTransferConfig.from_file(path)

        assert loaded.to_dict() == config.to_dict()

    def test_json_round_trip(self, tmp_path):
        config = MGTransferConfig()
        config.device.index_dtype = "int64"

        path = tmp_path / "config.json"
        config.to_json(path)
        loaded = MGTransferConfig.from_file(path)

        assert loaded.device.index_dtype == "int64"
        assert loaded.device.f2c_block == (2, 2, 2)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            MGTransferConfig.from_yaml(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(ValueError, match="format"):
            MGTransferConfig.from_file(tmp_path / "config.toml")


class TestSetupProblem:
    """Test building the finest level from a configuration."""

    def test_setup_problem(self):
        config = MGTransferConfig(grid=GridConfig(nx=4, ny=4, nz=2),
                                  device=DeviceConfig(backend="host", index_dtype="int64"))
        memory = DeviceMemoryManager("host")
        problem = setup_problem(config, memory)

        assert problem.A.title == "level0"
        assert problem.A.local_number_of_rows == 32
        assert problem.A.index_dtype == np.int64
        assert len(problem.b) == 32
        assert len(problem.x) == problem.A.local_number_of_columns
        np.testing.assert_array_equal(problem.xexact.copy_to_host(), 1.0)

    def test_setup_problem_failure_releases(self):
        config = MGTransferConfig(grid=GridConfig(nx=4, ny=4, nz=4, size=2, rank=1, pz=1, zl=4, zu=2))
        memory = DeviceMemoryManager("host")

        with pytest.raises(ValueError):
            setup_problem(config, memory)
        assert memory.get_statistics()['live_buffers'] == 0
