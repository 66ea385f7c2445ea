"""
Architecture processor.

Declares everything one architecture builds, in this order:

1. Skip the architecture when no Logical Target references it
2. Resolve the names of the targets sharing it
3. Include the PSP build options, then configure the OS layer (OSAL) first;
   it determines compiler flags for everything after it
4. Configure mission dependencies other than the OS layer and core executive
5. Configure one driver per PSP module
6. Configure static-only applications
7. Configure the PSP itself
8. Compute which Logical Targets each application is installed to
9. Configure loadable applications with those destinations
10. Configure the core executive unit-test stubs when unit tests are enabled
11. Per target, configure the core executive once per platform-config and link
    the target's core executable

Any failed check raises and aborts the whole architecture build.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List

from ..config.config_headers import generate_config_includefile
from ..config.mission_context import LogicalTarget
from ..errors import ConfigurationError, MissingPathError
from .context import DEFAULT_INSTALL_SUBDIR, ArchBuildContext
from .modules import AppInstallation
from .scope import DirectoryBuilder

logger = logging.getLogger(__name__)

# Handled explicitly by the processor, never as plain mission dependencies
SPECIAL_DEPENDENCIES = ("cfe-core", "osal")

CORE_EXECUTIVE_MODULE = "cfe-core"
TARGET_SOURCE_SUBDIR = Path("cfe") / "cmake" / "target"

_DEFINE_FLAG = re.compile(r"-D[A-Za-z0-9_=]+")


def resolve_app_destinations(targets: List[LogicalTarget], apps: List[str]) -> Dict[str, List[str]]:
    """Map every application to the Logical Targets that install it.

    Args:
        targets: Logical Targets of the architecture, in order
        apps: Loadable applications declared for the architecture

    Returns:
        Dictionary of app name -> target names (empty list when not installed)
    """
    destinations: Dict[str, List[str]] = {app: [] for app in apps}
    for target in targets:
        for app in target.apps:
            destinations.setdefault(app, [])
            if target.name not in destinations[app]:
                destinations[app].append(target.name)
    return destinations


def _append_documentation_inputs(context: ArchBuildContext, builder: DirectoryBuilder) -> None:
    """Tell the documentation build about the selected OS and PSP sources."""
    source_dir = context.mission_source_dir
    doc_dir = context.mission_binary_dir / "doc"
    doc_dir.mkdir(parents=True, exist_ok=True)

    flags = " ".join(builder.get_current_cflags())
    macros = " ".join(m[2:] for m in _DEFINE_FLAG.findall(flags))

    _append_missing_lines(
        doc_dir / "mission-content.doxyfile",
        [
            f"PREDEFINED += {macros}",
            f"INPUT += {source_dir / 'osal' / 'src' / 'os' / context.os_type}",
            f"INPUT += {source_dir / 'psp' / 'fsw' / context.psp_name}",
        ],
    )
    _append_missing_lines(
        doc_dir / "cfe-usersguide.doxyfile",
        [f"INPUT += {source_dir / 'psp' / 'fsw' / context.psp_name / 'src'}"],
    )


def _append_missing_lines(path: Path, lines: List[str]) -> None:
    """Append the lines a file does not already contain, so reconfiguring is a no-op."""
    existing = set(path.read_text(encoding="utf-8").splitlines()) if path.is_file() else set()
    missing = [line for line in lines if line not in existing]
    if missing:
        with open(path, "a", encoding="utf-8") as f:
            f.writelines(f"{line}\n" for line in missing)


def _configure_core_library(context: ArchBuildContext, builder: DirectoryBuilder, target: LogicalTarget) -> None:
    """Generate the platform headers and configure one core executive variant."""
    core_library = target.core_library
    include_dir = context.binary_dir / core_library / "inc"

    generate_config_includefile(
        include_dir / "cfe_msgids.h", "msgids.h", target.platform, [context.mission_defs]
    )
    generate_config_includefile(
        include_dir / "cfe_platform_cfg.h", "platform_cfg.h", target.platform, [context.mission_defs]
    )

    context.core_library = core_library
    try:
        core_builder = DirectoryBuilder(context, builder.scope.child(builder.source_dir, builder.binary_dir))
        core_builder.include_directories(include_dir)
        core_builder.add_subdirectory(context.mission_source_dir / "cfe" / "fsw" / "cfe-core", core_library)
    finally:
        context.core_library = None

    if not context.graph.has_target(core_library):
        raise ConfigurationError(
            f"Core executive recipe did not declare library {core_library}"
        )


def _configure_core_executable(
    context: ArchBuildContext,
    builder: DirectoryBuilder,
    target: LogicalTarget,
    static_apps: List[str],
    psp_modules: List[str],
) -> None:
    """Declare core-<target> and hand it to the executable install hook."""
    target_dir = context.mission_source_dir / TARGET_SOURCE_SUBDIR
    sources = sorted((target_dir / "src").glob("*.c"))
    if not sources:
        raise MissingPathError(f"No core executable sources in {target_dir / 'src'}", target_dir / "src")

    exe_builder = DirectoryBuilder(context, builder.scope.child(target_dir, context.binary_dir / target.name))
    exe_builder.include_directories(context.binary_dir / target.core_library / "inc")
    exe_builder.add_definitions(
        f"CFE_CPU_ID_VALUE={target.target_id}",
        f'CFE_CPU_NAME_VALUE="{target.name}"',
    )

    exe = exe_builder.add_executable(target.executable, *sources)
    exe.link(target.core_library, f"psp-{context.psp_name}", "osal", *static_apps, *psp_modules)
    context.install_hooks.exec_install(exe_builder, target.name)


def process_arch(context: ArchBuildContext, builder: DirectoryBuilder, sysvar: str) -> bool:
    """
    Declare the complete build of one architecture.

    Args:
        context: Architecture build context
        builder: Top-level builder of the architecture build
        sysvar: Architecture identifier (TGTSYS_<sysvar>)

    Returns:
        True if the architecture was processed, False if no target uses it

    Raises:
        FswBuildError: On the first failed check
    """
    mission = context.mission

    targets = mission.logical_targets(sysvar)
    if not targets:
        logger.debug(f"No targets use architecture {sysvar}; skipping")
        return False

    context.logical_targets = targets
    psp_name = context.require_psp()
    source_dir = context.mission_source_dir

    # Compiler flags and options selected by the PSP
    builder.include(source_dir / "psp" / "fsw" / psp_name / "make" / "build_options.py")

    # Generated wrapper headers
    builder.include_directories(context.mission_binary_dir / "inc", context.binary_dir / "inc")

    # OS layer first: it also settles compiler flags used by everything after it
    builder.add_subdirectory(source_dir / "osal", "osal")
    logger.info(f"PSP Selection: {psp_name}")

    builder.include_directories(
        source_dir / "osal" / "src" / "os" / "inc",
        source_dir / "psp" / "fsw" / "inc",
        source_dir / "cfe" / "fsw" / "cfe-core" / "src" / "inc",
        source_dir / TARGET_SOURCE_SUBDIR / "inc",
    )

    _append_documentation_inputs(context, builder)

    # The PSP or OS layer may have chosen a staging subdirectory
    if not context.install_subdir:
        context.install_subdir = DEFAULT_INSTALL_SUBDIR

    for dep in mission.get_list("MISSION_DEPS"):
        if dep not in SPECIAL_DEPENDENCIES:
            builder.add_subdirectory(context.module_dir(dep), dep)

    apps = mission.get_list(f"TGTSYS_{sysvar}_APPS")
    static_apps = mission.get_list(f"TGTSYS_{sysvar}_STATICAPPS")
    psp_modules = mission.get_list(f"TGTSYS_{sysvar}_PSPMODULES")

    # Apps and the PSP include cfe_platform_cfg.h; only possible with one CPU
    if len(targets) == 1:
        builder.include_directories(context.binary_dir / targets[0].core_library / "inc")

    for module in psp_modules:
        logger.info(f"Building PSP Module: {module}")
        builder.add_subdirectory(context.module_dir(module), f"psp/{module}")

    context.app_installation = AppInstallation.static()
    for app in static_apps:
        logger.info(f"Building Static App: {app}")
        builder.add_subdirectory(context.module_dir(app), f"apps/{app}")

    builder.add_subdirectory(source_dir / "psp", f"psp/{psp_name}")

    context.app_destinations = resolve_app_destinations(targets, apps)

    # All apps link against the first target's core variant
    core_variant = targets[0].core_library
    for app in apps:
        context.app_installation = AppInstallation.for_destinations(context.app_destinations[app])
        logger.info(f"Building App: {app} install={';'.join(context.app_destinations[app])}")
        builder.add_subdirectory(context.module_dir(app), f"apps/{app}")

        if context.graph.has_target(app):
            app_target = context.graph.get_target(app)
            app_target.set_properties(NO_SONAME=True)
            app_target.link(core_variant, "osal", f"psp-{psp_name}")

    context.app_installation = AppInstallation.static()

    if mission.get_bool("ENABLE_UNIT_TESTS"):
        builder.add_subdirectory(context.module_dir(CORE_EXECUTIVE_MODULE) / "ut-stubs", "ut_cfe_core_stubs")

    for target in targets:
        if not context.graph.has_target(target.core_library):
            _configure_core_library(context, builder, target)
        _configure_core_executable(context, builder, target, static_apps, psp_modules)

    return True
