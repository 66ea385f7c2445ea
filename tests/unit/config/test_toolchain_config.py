"""
Unit tests for toolchain file parsing.
"""

from unittest.mock import patch

import pytest

from fswbuild.config.toolchain_config import ToolchainConfig, ToolchainConfigError, host_system_name
from fswbuild.errors import ConfigurationError, MissingPathError


class TestToolchainConfig:
    """Test suite for ToolchainConfig."""

    @pytest.fixture
    def toolchain_path(self, tmp_path):
        return tmp_path / "toolchain-arm-rtems.ini"

    def test_cross_toolchain(self, toolchain_path):
        toolchain_path.write_text(
            """
[toolchain]
system_name = RTEMS
c_compiler = arm-rtems5-gcc
archiver = arm-rtems5-ar
c_flags = -mcpu=cortex-a9 -O2
link_flags = -qrtems

[variables]
CFE_SYSTEM_PSPNAME = generic-rtems
OSAL_SYSTEM_OSTYPE = rtems
"""
        )

        toolchain = ToolchainConfig.from_file(toolchain_path)

        assert toolchain.system_name == "RTEMS"
        assert toolchain.crosscompiling is True
        assert toolchain.c_compiler == "arm-rtems5-gcc"
        assert toolchain.archiver == "arm-rtems5-ar"
        assert toolchain.c_flags == ["-mcpu=cortex-a9", "-O2"]
        assert toolchain.link_flags == ["-qrtems"]
        assert toolchain.get_variable("CFE_SYSTEM_PSPNAME") == "generic-rtems"
        assert toolchain.get_variable("OSAL_SYSTEM_OSTYPE") == "rtems"
        assert toolchain.description == str(toolchain_path)

    def test_explicit_crosscompiling_override(self, toolchain_path):
        toolchain_path.write_text("[toolchain]\nsystem_name = Linux\ncrosscompiling = no\nc_compiler = gcc-12\n")

        toolchain = ToolchainConfig.from_file(toolchain_path)

        assert toolchain.crosscompiling is False
        assert toolchain.c_compiler == "gcc-12"
        assert toolchain.archiver == "ar"

    def test_variable_names_keep_case(self, toolchain_path):
        toolchain_path.write_text("[toolchain]\nsystem_name = RTEMS\n[variables]\nSIMULATION = native\n")

        toolchain = ToolchainConfig.from_file(toolchain_path)

        assert toolchain.get_variable("SIMULATION") == "native"
        assert toolchain.get_variable("simulation") is None

    def test_empty_variable_reads_as_unset(self, toolchain_path):
        toolchain_path.write_text("[toolchain]\nsystem_name = RTEMS\n[variables]\nCFE_SYSTEM_PSPNAME =\n")
        assert ToolchainConfig.from_file(toolchain_path).get_variable("CFE_SYSTEM_PSPNAME") is None

    def test_missing_file(self, toolchain_path):
        with pytest.raises(MissingPathError):
            ToolchainConfig.from_file(toolchain_path)

    def test_missing_toolchain_section(self, toolchain_path):
        toolchain_path.write_text("[variables]\nA = 1\n")
        with pytest.raises(ToolchainConfigError, match=r"\[toolchain\]"):
            ToolchainConfig.from_file(toolchain_path)

    def test_malformed_file(self, toolchain_path):
        toolchain_path.write_text("not an ini file\n")
        with pytest.raises(ConfigurationError):
            ToolchainConfig.from_file(toolchain_path)

    def test_invalid_crosscompiling(self, toolchain_path):
        toolchain_path.write_text("[toolchain]\ncrosscompiling = maybe\n")
        with pytest.raises(ToolchainConfigError, match="crosscompiling"):
            ToolchainConfig.from_file(toolchain_path)


class TestNativeToolchain:
    """Test native host detection."""

    def test_native_defaults(self):
        with patch("fswbuild.config.toolchain_config.platform.system", return_value="Linux"):
            toolchain = ToolchainConfig.native()

        assert toolchain.system_name == "Linux"
        assert toolchain.crosscompiling is False
        assert toolchain.c_compiler == "cc"
        assert toolchain.source is None
        assert toolchain.description == "native Linux toolchain"

    def test_cygwin_is_normalized(self):
        with patch("fswbuild.config.toolchain_config.platform.system", return_value="CYGWIN_NT-10.0"):
            assert host_system_name() == "CYGWIN"
