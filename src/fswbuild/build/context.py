"""Architecture build context.

All state shared by the components of one architecture build lives here and is
passed explicitly: the read-only mission variables, the toolchain, the
selectors resolved by the preparer, the per-application install destinations
and the graph being declared.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..config.mission_context import LogicalTarget, MissionContext
from ..config.toolchain_config import ToolchainConfig
from ..errors import ConfigurationError
from .graph import BuildGraph
from .install_hooks import InstallHooks
from .modules import AppInstallation

DEFAULT_INSTALL_SUBDIR = "cf"


@dataclass
class ArchBuildContext:
    """Mutable state of one architecture build.

    Attributes:
        mission: Mission variables (never modified)
        toolchain: Compiler and target-system description
        arch: Architecture being built (TARGETSYSTEM)
        binary_dir: Build directory of this architecture
        graph: Build graph under construction
        psp_name: Platform support package selector
        os_type: OS abstraction layer selector
        target_systems: Architectures processed by this build (narrowed by prepare)
        install_subdir: Staging subdirectory for apps and tables
        install_hooks: Active install strategy
        app_installation: Link mode and destinations for the app being configured
        app_destinations: Logical Target names each application is installed to
        logical_targets: Targets sharing the architecture being processed
        core_library: Core executive variant being configured, if any
    """

    mission: MissionContext
    toolchain: ToolchainConfig
    arch: str
    binary_dir: Path
    graph: BuildGraph = field(default_factory=BuildGraph)
    psp_name: Optional[str] = None
    os_type: Optional[str] = None
    target_systems: List[str] = field(default_factory=list)
    install_subdir: Optional[str] = None
    install_hooks: InstallHooks = field(default_factory=InstallHooks)
    app_installation: AppInstallation = field(default_factory=AppInstallation.static)
    app_destinations: Dict[str, List[str]] = field(default_factory=dict)
    logical_targets: List[LogicalTarget] = field(default_factory=list)
    core_library: Optional[str] = None

    @classmethod
    def create(
        cls,
        mission: MissionContext,
        toolchain: ToolchainConfig,
        arch: str,
        binary_dir: Path,
    ) -> "ArchBuildContext":
        """Create a context seeded from the mission variables."""
        return cls(
            mission=mission,
            toolchain=toolchain,
            arch=arch,
            binary_dir=Path(binary_dir),
            psp_name=toolchain.get_variable("CFE_SYSTEM_PSPNAME") or mission.get("CFE_SYSTEM_PSPNAME"),
            os_type=toolchain.get_variable("OSAL_SYSTEM_OSTYPE") or mission.get("OSAL_SYSTEM_OSTYPE"),
            target_systems=mission.get_list("TGTSYS_LIST"),
            install_subdir=mission.get("INSTALL_SUBDIR") or None,
        )

    def lookup(self, name: str) -> Optional[str]:
        """Resolve a variable from the toolchain file first, then the mission."""
        return self.toolchain.get_variable(name) or self.mission.get(name)

    @property
    def mission_source_dir(self) -> Path:
        return self.mission.require_path("MISSION_SOURCE_DIR")

    @property
    def mission_defs(self) -> Path:
        return self.mission.require_path("MISSION_DEFS")

    @property
    def mission_binary_dir(self) -> Path:
        return self.mission.binary_dir

    def module_dir(self, module: str) -> Path:
        return self.mission.module_dir(module)

    def require_psp(self) -> str:
        if not self.psp_name:
            raise ConfigurationError("CFE_SYSTEM_PSPNAME is not set for this architecture")
        return self.psp_name

    @property
    def staging_subdir(self) -> str:
        return self.install_subdir or DEFAULT_INSTALL_SUBDIR
