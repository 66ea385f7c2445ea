"""Install strategy hooks.

Two hooks decide how finished artifacts reach the per-target staging tree:

- exec_install(builder, cpu_name): stage the linked core executable
- app_install(builder, app_name, destinations): stage a loadable application

Callers only ever go through ``context.install_hooks``, so a platform replaces
either hook without touching calling code. Platforms register replacements by
PSP name, and a PSP's build_options recipe may swap them at configure time:

    def configure(build):
        build.override_install_hooks(exec_install=install_elf_and_symbols)
"""

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, Dict, Optional, Sequence

from .graph import InstallRule

if TYPE_CHECKING:
    from .scope import DirectoryBuilder

logger = logging.getLogger(__name__)

ExecInstallHook = Callable[["DirectoryBuilder", str], None]
AppInstallHook = Callable[["DirectoryBuilder", str, Sequence[str]], None]


def default_exec_install(builder: "DirectoryBuilder", cpu_name: str) -> None:
    """Stage core-<cpu> into a directory named after the CPU."""
    builder.install_targets(f"core-{cpu_name}", destination=cpu_name)


def default_app_install(builder: "DirectoryBuilder", app_name: str, destinations: Sequence[str]) -> None:
    """Stage a loadable app as <dest>/<install_subdir>/<app_name><suffix>."""
    target = builder.graph.get_target(app_name)

    # Drop the "lib" prefix so the module file is named after the app
    target.set_properties(PREFIX="", OUTPUT_NAME=app_name)

    for destination in destinations:
        builder.install_targets(app_name, destination=f"{destination}/{builder.context.staging_subdir}")


@dataclass(frozen=True)
class InstallHooks:
    """The active pair of install hooks."""

    exec_install: ExecInstallHook = default_exec_install
    app_install: AppInstallHook = default_app_install

    def replace(
        self,
        exec_install: Optional[ExecInstallHook] = None,
        app_install: Optional[AppInstallHook] = None,
    ) -> "InstallHooks":
        """Return a copy with the given hooks swapped in."""
        changes = {}
        if exec_install is not None:
            changes["exec_install"] = exec_install
        if app_install is not None:
            changes["app_install"] = app_install
        return replace(self, **changes)


_PLATFORM_HOOKS: Dict[str, InstallHooks] = {}


def register_install_hooks(
    psp_name: str,
    exec_install: Optional[ExecInstallHook] = None,
    app_install: Optional[AppInstallHook] = None,
) -> InstallHooks:
    """Register platform-specific hooks for a PSP; unspecified hooks keep the default."""
    hooks = InstallHooks().replace(exec_install=exec_install, app_install=app_install)
    _PLATFORM_HOOKS[psp_name] = hooks
    logger.debug(f"Registered install hooks for PSP {psp_name}")
    return hooks


def unregister_install_hooks(psp_name: str) -> None:
    _PLATFORM_HOOKS.pop(psp_name, None)


def get_install_hooks(psp_name: Optional[str]) -> InstallHooks:
    """Hooks selected for a PSP, or the defaults."""
    if psp_name and psp_name in _PLATFORM_HOOKS:
        return _PLATFORM_HOOKS[psp_name]
    return InstallHooks()
