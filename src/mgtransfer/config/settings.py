"""Configuration classes for building a multigrid hierarchy."""

import json
import yaml
from dataclasses import dataclass, asdict, field
from typing import Dict, Any, Tuple, Optional, Union
from pathlib import Path
import logging

from ..gpu.cuda_kernels import LaunchConfig
from ..gpu.memory_manager import BACKENDS
from ..utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class GridConfig:
    """Local grid extents and process layout of the finest level."""
    nx: int = 16
    ny: int = 16
    nz: int = 16
    npx: int = 0
    npy: int = 0
    npz: int = 0
    pz: int = 0
    zl: int = 0
    zu: int = 0
    size: int = 1
    rank: int = 0
    num_threads: int = 1

    def validate(self) -> None:
        """Validate grid configuration."""
        if min(self.nx, self.ny, self.nz) < 1:
            raise ValueError(f"Grid extents must be positive, got {self.nx}x{self.ny}x{self.nz}")

        if self.size < 1:
            raise ValueError("Number of processes must be positive")

        if not 0 <= self.rank < self.size:
            raise ValueError(f"Rank {self.rank} outside [0, {self.size})")

        if self.num_threads < 1:
            raise ValueError("Number of threads must be positive")

        if self.pz < 0:
            raise ValueError("z partition index must be non-negative")

        if self.pz > 0 and min(self.zl, self.zu) < 1:
            raise ValueError("zl and zu must be positive when the z split is used")


@dataclass
class DeviceConfig:
    """Execution backend and kernel launch parameters."""
    backend: str = "auto"
    device_id: int = 0
    index_dtype: str = "int32"
    value_dtype: str = "float64"
    f2c_block: Tuple[int, int, int] = (2, 2, 2)
    transfer_block: int = 1024

    def validate(self) -> None:
        """Validate device configuration."""
        if self.backend not in BACKENDS:
            raise ValueError(f"Invalid backend: {self.backend}")

        if self.device_id < 0:
            raise ValueError("Device ID must be non-negative")

        if self.index_dtype not in ["int32", "int64"]:
            raise ValueError(f"Unsupported index dtype: {self.index_dtype}")

        if self.value_dtype not in ["float32", "float64"]:
            raise ValueError(f"Unsupported value dtype: {self.value_dtype}")

        # LaunchConfig checks block shapes
        self.launch_config()

    def launch_config(self) -> LaunchConfig:
        return LaunchConfig(f2c_block=tuple(self.f2c_block), transfer_block=self.transfer_block)


@dataclass
class HierarchyConfig:
    """How many levels to build and in which configuration."""
    num_levels: int = 4
    reference: bool = False

    def validate(self) -> None:
        """Validate hierarchy configuration."""
        if self.num_levels < 1:
            raise ValueError("Must have at least 1 grid level")


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_output: Optional[str] = None
    console_output: bool = True

    def validate(self) -> None:
        """Validate logging configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid logging level: {self.level}")


_SECTIONS = {
    'grid': GridConfig,
    'device': DeviceConfig,
    'hierarchy': HierarchyConfig,
    'logging': LoggingConfig,
}


@dataclass
class MGTransferConfig:
    """Complete configuration for building and exercising a hierarchy."""
    grid: GridConfig = field(default_factory=GridConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    hierarchy: HierarchyConfig = field(default_factory=HierarchyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Validate all configuration sections."""
        self.grid.validate()
        self.device.validate()
        self.hierarchy.validate()
        self.logging.validate()

        # Cross-validation
        factor = 2 ** (self.hierarchy.num_levels - 1)
        extents = [self.grid.nx, self.grid.ny, self.grid.nz]
        if self.grid.pz > 0:
            extents += [self.grid.zl, self.grid.zu]
        if any(n % factor for n in extents):
            logger.warning(f"Grid extents {extents} are not divisible by {factor}; "
                           f"{self.hierarchy.num_levels} levels cannot be built")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'MGTransferConfig':
        """Create configuration from dictionary."""
        config = cls()

        for name, section in (config_dict or {}).items():
            if name not in _SECTIONS:
                raise ValueError(f"Unknown configuration section: {name}")
            setattr(config, name, _SECTIONS[name](**section))

        if isinstance(config.device.f2c_block, list):
            config.device.f2c_block = tuple(config.device.f2c_block)
        return config

    @classmethod
    def from_json(cls, json_path: Union[str, Path]) -> 'MGTransferConfig':
        """Load configuration from JSON file."""
        json_path = Path(json_path)

        if not json_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {json_path}")

        with open(json_path, 'r') as f:
            config = cls.from_dict(json.load(f))
        config.validate()

        logger.info(f"Loaded configuration from {json_path}")
        return config

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> 'MGTransferConfig':
        """Load configuration from YAML file."""
        yaml_path = Path(yaml_path)

        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            config = cls.from_dict(yaml.safe_load(f))
        config.validate()

        logger.info(f"Loaded configuration from {yaml_path}")
        return config

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'MGTransferConfig':
        """Load configuration from a .json, .yaml or .yml file."""
        suffix = Path(path).suffix.lower()
        if suffix == ".json":
            return cls.from_json(path)
        if suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        raise ValueError(f"Unsupported configuration format: {suffix}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        config_dict = {name: asdict(getattr(self, name)) for name in _SECTIONS}
        config_dict['device']['f2c_block'] = list(self.device.f2c_block)
        return config_dict

    def to_json(self, json_path: Union[str, Path], indent: int = 2) -> None:
        """Save configuration to JSON file."""
        json_path = Path(json_path)
        json_path.parent.mkdir(parents=True, exist_ok=True)

        with open(json_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=indent)

        logger.info(f"Saved configuration to {json_path}")

    def to_yaml(self, yaml_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        yaml_path = Path(yaml_path)
        yaml_path.parent.mkdir(parents=True, exist_ok=True)

        with open(yaml_path, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, indent=2)

        logger.info(f"Saved configuration to {yaml_path}")

    def setup_logging(self) -> None:
        """Configure the root logger from the logging section."""
        self.logging.validate()
        setup_logging(level=self.logging.level.upper(),
                      format_string=self.logging.format,
                      log_file=self.logging.file_output,
                      console_output=self.logging.console_output)

    def __str__(self) -> str:
        g = self.grid
        return (f"MGTransferConfig(grid={g.nx}x{g.ny}x{g.nz}, procs={g.size}, "
                f"levels={self.hierarchy.num_levels}, backend={self.device.backend})")


def create_default_config() -> MGTransferConfig:
    """Create default configuration."""
    return MGTransferConfig()
