"""Architecture preparer.

Runs once per architecture build before any subdirectory is configured:

- checks that a PSP and an OS type are selected (a cross toolchain must supply
  them; recognized native hosts get defaults)
- generates the osconfig.h wrapper from the mission definitions
- adds the SIMULATION define when building for simulated hardware
- narrows the list of architectures to process down to this one
"""

import logging
from typing import Dict, Tuple

from ..config.config_headers import generate_config_includefile
from ..config.mission_context import is_true
from ..errors import ConfigurationError, UnsupportedEnvironmentError
from .context import ArchBuildContext
from .scope import DirectoryScope

logger = logging.getLogger(__name__)

DEFAULT_OSCONFIG = "default"

# Native host system -> (PSP name, OS type)
NATIVE_SELECTORS: Dict[str, Tuple[str, str]] = {
    "Linux": ("pc-linux", "posix"),
    "CYGWIN": ("pc-linux", "posix"),
    "Darwin": ("pc-linux", "posix"),
}


def resolve_selectors(context: ArchBuildContext) -> Tuple[str, str]:
    """
    Determine the PSP name and OS type for this architecture.

    Args:
        context: Architecture build context

    Returns:
        (psp_name, os_type)

    Raises:
        ConfigurationError: If cross-compiling and either selector is unset
        UnsupportedEnvironmentError: If building natively on an unknown host
    """
    if context.psp_name and context.os_type:
        return context.psp_name, context.os_type

    toolchain = context.toolchain
    if toolchain.crosscompiling:
        missing = [
            name
            for name, value in (
                ("CFE_SYSTEM_PSPNAME", context.psp_name),
                ("OSAL_SYSTEM_OSTYPE", context.os_type),
            )
            if not value
        ]
        raise ConfigurationError(
            f"Cross-compile toolchain {toolchain.description} must define "
            + " and ".join(missing)
        )

    if toolchain.system_name not in NATIVE_SELECTORS:
        raise UnsupportedEnvironmentError(
            "Do not know how to set CFE_SYSTEM_PSPNAME and OSAL_SYSTEM_OSTYPE "
            + f"on {toolchain.system_name} system"
        )

    # Native defaults apply to the whole pair, as the outer pass expects
    return NATIVE_SELECTORS[toolchain.system_name]


def prepare(context: ArchBuildContext, scope: DirectoryScope) -> None:
    """Set up the prerequisites of an architecture build.

    Args:
        context: Architecture build context (selectors and target list updated)
        scope: Top-level directory scope of the architecture build
    """
    context.psp_name, context.os_type = resolve_selectors(context)

    osconfig = context.lookup("OSAL_SYSTEM_OSCONFIG") or DEFAULT_OSCONFIG
    generate_config_includefile(
        context.binary_dir / "inc" / "osconfig.h",
        "osconfig.h",
        [osconfig, context.arch],
        [context.mission_defs],
    )

    # Sources may #ifdef around hardware that is faked in simulation
    simulation = context.lookup("SIMULATION")
    if is_true(simulation):
        scope.definitions.append(f"SIMULATION={simulation}")

    context.target_systems = [context.arch]
    logger.info(f"Architecture {context.arch}: PSP={context.psp_name} OS={context.os_type}")
