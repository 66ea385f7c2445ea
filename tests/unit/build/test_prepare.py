"""
Unit tests for the architecture preparer.
"""

import pytest

from fswbuild.build.prepare import prepare, resolve_selectors
from fswbuild.build.scope import DirectoryScope
from fswbuild.config.toolchain_config import ToolchainConfig
from fswbuild.errors import ConfigurationError, UnsupportedEnvironmentError

NO_SELECTORS = {"CFE_SYSTEM_PSPNAME": "", "OSAL_SYSTEM_OSTYPE": ""}


class TestResolveSelectors:
    """Test PSP / OS selector resolution."""

    def test_cross_build_without_selectors_is_fatal(self, make_context, cross_toolchain):
        context = make_context(toolchain=cross_toolchain, **NO_SELECTORS)

        with pytest.raises(ConfigurationError) as exc_info:
            resolve_selectors(context)

        message = str(exc_info.value)
        assert "toolchain-arm-rtems.ini" in message
        assert "CFE_SYSTEM_PSPNAME" in message
        assert "OSAL_SYSTEM_OSTYPE" in message

    def test_cross_build_names_only_missing_selector(self, make_context, cross_toolchain):
        cross_toolchain.variables["CFE_SYSTEM_PSPNAME"] = "generic-rtems"
        context = make_context(toolchain=cross_toolchain, **NO_SELECTORS)

        with pytest.raises(ConfigurationError) as exc_info:
            resolve_selectors(context)

        assert "OSAL_SYSTEM_OSTYPE" in str(exc_info.value)
        assert "CFE_SYSTEM_PSPNAME" not in str(exc_info.value)

    def test_toolchain_variables_take_precedence(self, make_context, cross_toolchain):
        cross_toolchain.variables.update(CFE_SYSTEM_PSPNAME="generic-rtems", OSAL_SYSTEM_OSTYPE="rtems")
        context = make_context(toolchain=cross_toolchain)

        assert resolve_selectors(context) == ("generic-rtems", "rtems")

    def test_native_defaults(self, make_context):
        context = make_context(**NO_SELECTORS)
        assert resolve_selectors(context) == ("pc-linux", "posix")

    def test_unknown_native_host(self, make_context):
        context = make_context(toolchain=ToolchainConfig(system_name="Haiku"), **NO_SELECTORS)

        with pytest.raises(UnsupportedEnvironmentError, match="Haiku"):
            resolve_selectors(context)


class TestPrepare:
    """Test architecture preparation."""

    @pytest.fixture
    def scope(self, mission):
        return DirectoryScope(mission.source, mission.binary / "cpu1-linux")

    def test_cross_failure_happens_before_any_output(self, make_context, cross_toolchain, scope):
        context = make_context(toolchain=cross_toolchain, **NO_SELECTORS)

        with pytest.raises(ConfigurationError):
            prepare(context, scope)

        assert not (context.binary_dir / "inc" / "osconfig.h").exists()
        assert context.graph.targets == {}

    def test_generates_osconfig(self, arch_context, scope, mission):
        prepare(arch_context, scope)

        osconfig = arch_context.binary_dir / "inc" / "osconfig.h"
        assert "default_osconfig.h" in osconfig.read_text()
        assert arch_context.psp_name == "pc-linux"
        assert arch_context.os_type == "posix"
        assert arch_context.target_systems == ["cpu1-linux"]

    def test_architecture_osconfig_wins(self, make_context, scope, mission):
        mission.write("sample_defs/flight_osconfig.h", "")
        mission.write("sample_defs/cpu1-linux_osconfig.h", "")
        context = make_context(OSAL_SYSTEM_OSCONFIG="flight")

        prepare(context, scope)

        assert "cpu1-linux_osconfig.h" in (context.binary_dir / "inc" / "osconfig.h").read_text()

    def test_osconfig_profile(self, make_context, scope, mission):
        mission.write("sample_defs/flight_osconfig.h", "")
        context = make_context(OSAL_SYSTEM_OSCONFIG="flight")

        prepare(context, scope)

        assert "flight_osconfig.h" in (context.binary_dir / "inc" / "osconfig.h").read_text()

    def test_simulation_define(self, make_context, scope):
        prepare(make_context(SIMULATION="native"), scope)
        assert "SIMULATION=native" in scope.definitions

    def test_no_simulation_define_when_false(self, make_context, scope):
        prepare(make_context(SIMULATION="OFF"), scope)
        assert not any(d.startswith("SIMULATION") for d in scope.definitions)
