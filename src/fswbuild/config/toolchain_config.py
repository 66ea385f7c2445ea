"""
Toolchain configuration for one architecture build.

A toolchain file plays the role of a cross-compile toolchain description: it
names the compiler and archiver, the target system, and may supply selector
variables (PSP name, OS type) that the architecture preparer requires.

Example toolchain-arm-rtems.ini:
    [toolchain]
    system_name = RTEMS
    c_compiler = arm-rtems5-gcc
    archiver = arm-rtems5-ar
    c_flags = -mcpu=cortex-a9 -O2

    [variables]
    CFE_SYSTEM_PSPNAME = generic-rtems
    OSAL_SYSTEM_OSTYPE = rtems

Without a toolchain file the build is native to the host.
"""

import configparser
import platform
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ConfigurationError, MissingPathError


class ToolchainConfigError(ConfigurationError):
    """Exception raised for toolchain file errors."""

    pass


TOOLCHAIN_SECTION = "toolchain"
VARIABLES_SECTION = "variables"


def host_system_name() -> str:
    """Return the host system name, with Cygwin variants folded into 'CYGWIN'."""
    name = platform.system()
    if name.upper().startswith("CYGWIN"):
        return "CYGWIN"
    return name


@dataclass
class ToolchainConfig:
    """Compiler and target-system description for an architecture build.

    Attributes:
        system_name: Target system name (e.g. 'Linux', 'RTEMS')
        crosscompiling: True when building for a system other than the host
        c_compiler: C compiler executable
        archiver: Static library archiver executable
        c_flags: Base C compiler flags for every source in this architecture
        link_flags: Base linker flags
        variables: Extra variables supplied by the toolchain file
        source: Toolchain file path (None for native builds)
    """

    system_name: str
    crosscompiling: bool = False
    c_compiler: str = "cc"
    archiver: str = "ar"
    c_flags: List[str] = field(default_factory=list)
    link_flags: List[str] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)
    source: Optional[Path] = None

    @classmethod
    def native(cls) -> "ToolchainConfig":
        """Toolchain for a native host build."""
        return cls(system_name=host_system_name())

    @classmethod
    def from_file(cls, path: Path) -> "ToolchainConfig":
        """
        Load a toolchain INI file.

        Args:
            path: Path to the toolchain file

        Returns:
            Parsed ToolchainConfig

        Raises:
            MissingPathError: If the file does not exist
            ToolchainConfigError: If the file cannot be parsed
        """
        path = Path(path)
        if not path.is_file():
            raise MissingPathError(f"Toolchain file not found: {path}", path)

        parser = configparser.ConfigParser(interpolation=configparser.ExtendedInterpolation())
        # Variable names are case sensitive
        parser.optionxform = str  # type: ignore[assignment]

        try:
            parser.read(path, encoding="utf-8")
        except configparser.Error as e:
            raise ToolchainConfigError(f"Failed to parse {path}: {e}") from e

        if TOOLCHAIN_SECTION not in parser:
            raise ToolchainConfigError(f"Toolchain file {path} has no [{TOOLCHAIN_SECTION}] section")

        section = parser[TOOLCHAIN_SECTION]
        system_name = section.get("system_name", "").strip()

        # Naming a target system implies a cross build unless stated otherwise
        try:
            crosscompiling = section.getboolean("crosscompiling", fallback=bool(system_name))
        except ValueError as e:
            raise ToolchainConfigError(f"Invalid crosscompiling value in {path}: {e}") from e

        variables = {}
        if VARIABLES_SECTION in parser:
            variables = {key: value.strip() for key, value in parser[VARIABLES_SECTION].items()}

        return cls(
            system_name=system_name or host_system_name(),
            crosscompiling=crosscompiling,
            c_compiler=section.get("c_compiler", "cc").strip() or "cc",
            archiver=section.get("archiver", "ar").strip() or "ar",
            c_flags=shlex.split(section.get("c_flags", "")),
            link_flags=shlex.split(section.get("link_flags", "")),
            variables=variables,
            source=path,
        )

    def get_variable(self, name: str) -> Optional[str]:
        value = self.variables.get(name)
        return value or None

    @property
    def description(self) -> str:
        """Human-readable name of the toolchain used in error messages."""
        if self.source is not None:
            return str(self.source)
        return f"native {self.system_name} toolchain"
