"""Configuration of the multigrid transfer package."""

from .settings import (
    GridConfig, DeviceConfig, HierarchyConfig, LoggingConfig,
    MGTransferConfig, create_default_config
)

__all__ = [
    "GridConfig",
    "DeviceConfig",
    "HierarchyConfig",
    "LoggingConfig",
    "MGTransferConfig",
    "create_default_config"
]
