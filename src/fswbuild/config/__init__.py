"""Configuration modules for fswbuild."""

from .config_headers import generate_config_includefile
from .mission_context import (
    MISSION_CACHE_FILENAME,
    LogicalTarget,
    MissionCacheError,
    MissionContext,
    load_mission_context,
    write_mission_cache,
)
from .toolchain_config import ToolchainConfig, ToolchainConfigError

__all__ = [
    "MISSION_CACHE_FILENAME",
    "LogicalTarget",
    "MissionCacheError",
    "MissionContext",
    "load_mission_context",
    "write_mission_cache",
    "ToolchainConfig",
    "ToolchainConfigError",
    "generate_config_includefile",
]
