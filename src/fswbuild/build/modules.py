"""Module builders.

Thin wrappers that recipes call to declare PSP drivers, applications and unit
test libraries with the metadata each kind of module needs.

Link mode for applications is explicit: the architecture processor sets an
AppInstallation on the context before configuring each app. An app with at
least one install destination is a loadable module installed to every
destination; an app without destinations is a static library.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple, Union

from ..errors import ConfigurationError
from .graph import BuildTarget, LinkMode
from .tables import TABLES_TARGET_SUFFIX

if TYPE_CHECKING:
    from .scope import DirectoryBuilder

logger = logging.getLogger(__name__)

SourceArg = Union[str, Path]

PSP_MODULE_DEFINE = "_CFE_PSP_MODULE_"
UNIT_TEST_LIB_PREFIX = "utl_"
COVERAGE_FLAGS = ["-pg", "--coverage"]


@dataclass(frozen=True)
class AppInstallation:
    """Link mode and install destinations for the application being configured.

    Attributes:
        link_mode: STATIC or MODULE
        destinations: Logical Target names the module is installed to
    """

    link_mode: LinkMode = LinkMode.STATIC
    destinations: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.link_mode is LinkMode.MODULE and not self.destinations:
            raise ConfigurationError("A loadable module needs at least one install destination")
        if self.link_mode is LinkMode.STATIC and self.destinations:
            raise ConfigurationError("A statically linked app cannot have install destinations")

    @classmethod
    def static(cls) -> "AppInstallation":
        return cls(LinkMode.STATIC, ())

    @classmethod
    def for_destinations(cls, destinations: Iterable[str]) -> "AppInstallation":
        """Loadable module when there is any destination, static otherwise."""
        destinations = tuple(destinations)
        if destinations:
            return cls(LinkMode.MODULE, destinations)
        return cls.static()


def merge_flags(existing: Optional[Sequence[str]], extra: Sequence[str]) -> List[str]:
    """Append flags to a previously set property value.

    An unset property (None) is treated as empty rather than as a value.
    Flags already present are not repeated.
    """
    if existing is None:
        merged: List[str] = []
    elif isinstance(existing, str):
        merged = existing.split()
    else:
        merged = list(existing)
    for flag in extra:
        if flag not in merged:
            merged.append(flag)
    return merged


def add_psp_module(builder: "DirectoryBuilder", name: str, *sources: SourceArg) -> BuildTarget:
    """Declare a PSP driver module; always a static library.

    Every driver gets the PSP shared include directory and the PSP module
    define.
    """
    builder.include_directories(builder.context.mission_source_dir / "psp" / "fsw" / "shared")
    builder.add_definitions(PSP_MODULE_DEFINE)
    return builder.add_library(name, LinkMode.STATIC, *sources)


def add_cfe_app(builder: "DirectoryBuilder", name: str, *sources: SourceArg) -> BuildTarget:
    """Declare an application or library using the active AppInstallation.

    One module is built a single way per architecture: it cannot be static for
    one target and loadable for another.
    """
    installation = builder.context.app_installation
    target = builder.add_library(name, installation.link_mode, *sources)

    # Tables may be declared before the app itself
    umbrella = f"{name}{TABLES_TARGET_SUFFIX}"
    if builder.graph.has_target(umbrella):
        target.add_dependency(umbrella)

    if installation.link_mode is LinkMode.MODULE:
        builder.context.install_hooks.app_install(builder, name, installation.destinations)

    return target


def add_unit_test_lib(builder: "DirectoryBuilder", name: str, *sources: SourceArg) -> BuildTarget:
    """Declare the library under test (utl_<name>) with coverage instrumentation."""
    target = builder.add_library(f"{UNIT_TEST_LIB_PREFIX}{name}", LinkMode.STATIC, *sources)
    target.set_properties(
        COMPILE_FLAGS=merge_flags(target.get_property("COMPILE_FLAGS"), COVERAGE_FLAGS),
        LINK_FLAGS=merge_flags(target.get_property("LINK_FLAGS"), COVERAGE_FLAGS),
    )
    return target
