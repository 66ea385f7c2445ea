"""
Build system components for fswbuild.

This module provides the architecture build implementation including:
- Directory scopes and build recipes
- Module builders (PSP modules, apps, tables, unit tests)
- Architecture preparation and processing
- Build step execution and staging
"""

from .context import ArchBuildContext
from .executor import BuildExecutor, BuildStepError
from .graph import (
    BuildGraph,
    BuildTarget,
    CustomCommand,
    DuplicateTargetError,
    InstallRule,
    LinkMode,
    RegisteredTest,
    TargetType,
)
from .install_hooks import InstallHooks, get_install_hooks, register_install_hooks
from .installer import StagingInstaller
from .orchestrator import ArchBuildOrchestrator, ArchBuildResult
from .scope import DirectoryBuilder, DirectoryScope, RecipeError

__all__ = [
    "ArchBuildContext",
    "ArchBuildOrchestrator",
    "ArchBuildResult",
    "BuildExecutor",
    "BuildGraph",
    "BuildStepError",
    "BuildTarget",
    "CustomCommand",
    "DirectoryBuilder",
    "DirectoryScope",
    "DuplicateTargetError",
    "InstallHooks",
    "InstallRule",
    "LinkMode",
    "RecipeError",
    "RegisteredTest",
    "StagingInstaller",
    "TargetType",
    "get_install_hooks",
    "register_install_hooks",
]
