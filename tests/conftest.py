"""
Shared fixtures for the fswbuild test suite.

Builds a small mission on disk: OS layer, PSP with one driver module, core
executive, a loadable app with a table, a static library app and the unit
test entry point, plus the mission cache the outer build pass would write.
"""

from pathlib import Path
from textwrap import dedent
from typing import Dict, Optional, Union

import pytest

from fswbuild.build.context import ArchBuildContext
from fswbuild.build.scope import DirectoryBuilder, DirectoryScope
from fswbuild.config.mission_context import load_mission_context, write_mission_cache
from fswbuild.config.toolchain_config import ToolchainConfig

C_STUB = "int {name}(void) {{ return 0; }}\n"


class MissionTree:
    """A throwaway mission source tree plus its mission binary directory."""

    def __init__(self, root: Path):
        self.root = root
        self.source = root / "mission"
        self.defs = self.source / "sample_defs"
        self.binary = root / "build"
        self.binary.mkdir(parents=True, exist_ok=True)
        self.variables: Dict[str, Union[str, list]] = {
            "MISSION_SOURCE_DIR": str(self.source),
            "MISSION_DEFS": str(self.defs),
            "MISSION_DEPS": ["cfe-core", "osal"],
            "TGTSYS_LIST": ["cpu1-linux"],
            "TGTSYS_cpu1-linux": ["1"],
            "TGT1_NAME": "cpu1",
            "TGT1_APPLIST": ["sample_app"],
            "TGTSYS_cpu1-linux_APPS": ["sample_app"],
            "TGTSYS_cpu1-linux_STATICAPPS": ["sample_lib"],
            "TGTSYS_cpu1-linux_PSPMODULES": ["timebase"],
            "CFE_SYSTEM_PSPNAME": "pc-linux",
            "OSAL_SYSTEM_OSTYPE": "posix",
            "ENABLE_UNIT_TESTS": "FALSE",
            "osal_MISSION_DIR": str(self.source / "osal"),
            "cfe-core_MISSION_DIR": str(self.source / "cfe" / "fsw" / "cfe-core"),
            "sample_app_MISSION_DIR": str(self.source / "apps" / "sample_app"),
            "sample_lib_MISSION_DIR": str(self.source / "apps" / "sample_lib"),
            "ci_lab_MISSION_DIR": str(self.source / "apps" / "ci_lab"),
            "timebase_MISSION_DIR": str(self.source / "psp" / "fsw" / "modules" / "timebase"),
            "utexec_MISSION_DIR": str(self.source / "tools" / "utexec"),
        }

    def write(self, relpath: Union[str, Path], content: str = "") -> Path:
        path = self.source / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def write_c(self, relpath: Union[str, Path], symbol: str) -> Path:
        return self.write(relpath, C_STUB.format(name=symbol))

    def write_recipe(self, directory: Union[str, Path], body: str, filename: str = "build_recipe.py") -> Path:
        """Write a recipe file whose configure() runs the given body."""
        lines = dedent(body).strip().splitlines() or ["pass"]
        content = "from fswbuild.build import LinkMode\n\n\ndef configure(build):\n"
        content += "".join(f"    {line}\n" for line in lines)
        return self.write(Path(directory) / filename, content)

    def write_cache(self, **overrides: Union[str, list]) -> Path:
        variables = dict(self.variables)
        variables.update(overrides)
        return write_mission_cache(self.binary, variables)

    def populate(self) -> "MissionTree":
        # Mission definitions
        self.write("sample_defs/default_osconfig.h", "#define OS_MAX_TASKS 64\n")
        self.write("sample_defs/default_msgids.h", "#define CFE_MSGIDS 1\n")
        self.write("sample_defs/default_platform_cfg.h", "#define CFE_PLATFORM 0\n")
        self.write("sample_defs/cpu1_platform_cfg.h", "#define CFE_PLATFORM 1\n")

        # OS abstraction layer
        self.write("osal/src/os/inc/osapi.h", "")
        self.write_c("osal/src/os/shared/osapi.c", "OS_API_Init")
        self.write_recipe(
            "osal",
            """
            build.include_directories("src/os/inc")
            build.add_library("osal", LinkMode.STATIC, "src/os/shared/osapi.c")
            """,
        )

        # Platform support package
        self.write("psp/fsw/inc/cfe_psp.h", "")
        self.write("psp/fsw/shared/cfe_psp_module.h", "")
        self.write_c("psp/fsw/pc-linux/src/cfe_psp_start.c", "CFE_PSP_Start")
        self.write_recipe(
            "psp/fsw/pc-linux/make",
            """
            build.add_definitions("-D_LINUX_OS_")
            """,
            filename="build_options.py",
        )
        self.write_recipe(
            "psp",
            """
            psp = build.context.psp_name
            build.add_library(f"psp-{psp}", LinkMode.STATIC, f"fsw/{psp}/src/cfe_psp_start.c")
            """,
        )
        self.write_c("psp/fsw/modules/timebase/timebase.c", "timebase_Init")
        self.write_recipe(
            "psp/fsw/modules/timebase",
            """
            build.add_psp_module("timebase", "timebase.c")
            """,
        )

        # Core executive
        self.write("cfe/fsw/cfe-core/src/inc/cfe.h", "")
        self.write_c("cfe/fsw/cfe-core/src/es/cfe_es_api.c", "CFE_ES_Main")
        self.write_recipe(
            "cfe/fsw/cfe-core",
            """
            build.add_library(build.context.core_library, LinkMode.STATIC, "src/es/cfe_es_api.c")
            """,
        )
        self.write_c("cfe/fsw/cfe-core/ut-stubs/ut_es_stubs.c", "UT_ES_Stub")
        self.write_recipe(
            "cfe/fsw/cfe-core/ut-stubs",
            """
            build.add_library("ut_cfe_core_stubs", LinkMode.STATIC, "ut_es_stubs.c")
            """,
        )
        self.write("cfe/cmake/target/inc/target_config.h", "")
        self.write(
            "cfe/cmake/target/src/target_config.c",
            "static const int cpu_id = CFE_CPU_ID_VALUE;\n"
            "int main(void) { return cpu_id - CFE_CPU_ID_VALUE; }\n",
        )

        # Applications
        self.write_c("apps/sample_app/fsw/src/sample_app.c", "SAMPLE_AppMain")
        self.write_c("apps/sample_app/fsw/tables/sample_app_tbl.c", "SAMPLE_Table")
        self.write_recipe(
            "apps/sample_app",
            """
            build.include_directories("fsw/src")
            build.add_cfe_app("sample_app", "fsw/src/sample_app.c")
            build.add_cfe_tables("sample_app", "fsw/tables/sample_app_tbl.c")
            """,
        )
        self.write_c("apps/ci_lab/fsw/src/ci_lab_app.c", "CI_Lab_AppMain")
        self.write_recipe(
            "apps/ci_lab",
            """
            build.add_cfe_app("ci_lab", "fsw/src/ci_lab_app.c")
            """,
        )
        self.write_c("apps/sample_lib/fsw/src/sample_lib.c", "SAMPLE_LibInit")
        self.write_recipe(
            "apps/sample_lib",
            """
            build.add_cfe_app("sample_lib", "fsw/src/sample_lib.c")
            """,
        )

        # Unit test entry point
        self.write("tools/utexec/inc/utassert.h", "")
        self.write_c("tools/utexec/src/utexec.c", "UtExec")

        self.write_cache()
        return self


@pytest.fixture
def mission(tmp_path) -> MissionTree:
    """A populated mission tree with its cache written."""
    return MissionTree(tmp_path).populate()


@pytest.fixture
def native_toolchain() -> ToolchainConfig:
    """Native Linux toolchain, independent of the machine running the tests."""
    return ToolchainConfig(system_name="Linux")


@pytest.fixture
def cross_toolchain(tmp_path) -> ToolchainConfig:
    """Cross toolchain for an RTEMS target with no selector variables."""
    return ToolchainConfig(
        system_name="RTEMS",
        crosscompiling=True,
        c_compiler="arm-rtems5-gcc",
        archiver="arm-rtems5-ar",
        source=tmp_path / "toolchain-arm-rtems.ini",
    )


@pytest.fixture
def make_context(mission, native_toolchain):
    """Factory for an architecture context; keyword overrides rewrite the cache first."""

    def _make(toolchain: Optional[ToolchainConfig] = None, arch: str = "cpu1-linux", **overrides):
        if overrides:
            mission.write_cache(**overrides)
        return ArchBuildContext.create(
            load_mission_context(mission.binary),
            toolchain or native_toolchain,
            arch,
            mission.binary / arch,
        )

    return _make


@pytest.fixture
def arch_context(make_context) -> ArchBuildContext:
    return make_context()


@pytest.fixture
def builder(arch_context, mission) -> DirectoryBuilder:
    """Top-level builder of the cpu1-linux architecture build."""
    scope = DirectoryScope(source_dir=mission.source, binary_dir=arch_context.binary_dir)
    return DirectoryBuilder(arch_context, scope)
