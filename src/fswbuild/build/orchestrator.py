"""
Architecture build orchestrator.

Ties the phases of one architecture build together:

1. Load the mission variables written by the outer build pass
2. Load the toolchain file (or describe the native host)
3. Prepare the architecture (selectors, osconfig.h, SIMULATION)
4. Process every target system, declaring the build graph
5. Write the build plan
6. Optionally execute the graph, stage install rules and run tests
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..config.mission_context import load_mission_context
from ..config.toolchain_config import ToolchainConfig
from ..errors import FswBuildError
from .context import ArchBuildContext
from .executor import BuildExecutor
from .graph import BuildGraph
from .install_hooks import get_install_hooks
from .installer import StagingInstaller
from .prepare import prepare
from .processor import process_arch
from .scope import DirectoryBuilder, DirectoryScope

logger = logging.getLogger(__name__)

BUILD_PLAN_FILENAME = "build_plan.json"
STAGING_SUBDIR = "exe"


@dataclass
class ArchBuildResult:
    """Result of configuring or building one architecture."""

    success: bool
    arch: str
    build_dir: Optional[Path]
    graph: Optional[BuildGraph]
    processed: List[str]
    build_time: float
    message: str
    plan_path: Optional[Path] = None
    installed: List[Path] = field(default_factory=list)
    test_results: Dict[str, int] = field(default_factory=dict)


class ArchBuildOrchestrator:
    """
    Orchestrates the build of one architecture (one TARGETSYSTEM).

    Example usage:
        orchestrator = ArchBuildOrchestrator()
        result = orchestrator.build(Path("build"), "cpu1-linux", jobs=4)
        if not result.success:
            print(result.message)
    """

    def __init__(self, verbose: bool = False):
        """
        Initialize orchestrator.

        Args:
            verbose: Show executor progress and per-step details
        """
        self.verbose = verbose

    def _declare(
        self,
        mission_binary_dir: Path,
        arch: str,
        build_dir: Optional[Path],
        toolchain_file: Optional[Path],
    ) -> Tuple[ArchBuildContext, List[str]]:
        """Run phases 1-5 and return the declared context and processed systems."""
        mission_binary_dir = Path(mission_binary_dir).resolve()

        logger.info("[1/5] Loading mission context...")
        mission = load_mission_context(mission_binary_dir)

        logger.info("[2/5] Loading toolchain...")
        if toolchain_file is not None:
            toolchain = ToolchainConfig.from_file(Path(toolchain_file))
        else:
            toolchain = ToolchainConfig.native()
        logger.debug(f"      Toolchain: {toolchain.description}")

        build_dir = Path(build_dir).resolve() if build_dir is not None else mission_binary_dir / arch
        build_dir.mkdir(parents=True, exist_ok=True)

        context = ArchBuildContext.create(mission, toolchain, arch, build_dir)

        # Toolchain flags apply to every source of the architecture
        root_scope = DirectoryScope(
            source_dir=context.mission_source_dir,
            binary_dir=build_dir,
            compile_options=list(toolchain.c_flags),
        )

        logger.info("[3/5] Preparing architecture...")
        prepare(context, root_scope)
        context.install_hooks = get_install_hooks(context.psp_name)

        logger.info("[4/5] Processing target systems...")
        builder = DirectoryBuilder(context, root_scope)
        processed = []
        for sysvar in context.target_systems:
            if process_arch(context, builder, sysvar):
                processed.append(sysvar)

        logger.info("[5/5] Writing build plan...")
        self.write_plan(context.graph, build_dir)
        return context, processed

    @staticmethod
    def write_plan(graph: BuildGraph, build_dir: Path) -> Path:
        plan_path = Path(build_dir) / BUILD_PLAN_FILENAME
        with open(plan_path, "w", encoding="utf-8") as f:
            json.dump(graph.to_dict(), f, indent=2)
        return plan_path

    def _failure(self, arch: str, start_time: float, message: str) -> ArchBuildResult:
        return ArchBuildResult(
            success=False,
            arch=arch,
            build_dir=None,
            graph=None,
            processed=[],
            build_time=time.time() - start_time,
            message=message,
        )

    def configure(
        self,
        mission_binary_dir: Path,
        arch: str,
        build_dir: Optional[Path] = None,
        toolchain_file: Optional[Path] = None,
    ) -> ArchBuildResult:
        """
        Declare the build graph of an architecture without building it.

        Args:
            mission_binary_dir: Mission binary directory holding the cache
            arch: Architecture to configure
            build_dir: Architecture build directory (default: <mission-binary>/<arch>)
            toolchain_file: Toolchain INI file (default: native build)

        Returns:
            ArchBuildResult with the declared graph and the plan path
        """
        start_time = time.time()
        try:
            context, processed = self._declare(mission_binary_dir, arch, build_dir, toolchain_file)
        except FswBuildError as e:
            return self._failure(arch, start_time, str(e))
        except Exception as e:
            logger.debug("Unexpected configure failure", exc_info=True)
            return self._failure(arch, start_time, f"Unexpected error: {e}")

        return ArchBuildResult(
            success=True,
            arch=arch,
            build_dir=context.binary_dir,
            graph=context.graph,
            processed=processed,
            build_time=time.time() - start_time,
            message="Configuration successful",
            plan_path=context.binary_dir / BUILD_PLAN_FILENAME,
        )

    def build(
        self,
        mission_binary_dir: Path,
        arch: str,
        build_dir: Optional[Path] = None,
        toolchain_file: Optional[Path] = None,
        jobs: Optional[int] = None,
        staging_dir: Optional[Path] = None,
        run_tests: bool = False,
    ) -> ArchBuildResult:
        """
        Declare, execute and stage the build of an architecture.

        Args:
            mission_binary_dir: Mission binary directory holding the cache
            arch: Architecture to build
            build_dir: Architecture build directory (default: <mission-binary>/<arch>)
            toolchain_file: Toolchain INI file (default: native build)
            jobs: Parallel build steps (default: logical CPU count)
            staging_dir: Staging root (default: <build-dir>/exe)
            run_tests: Run registered unit tests after building

        Returns:
            ArchBuildResult with build status, staged files and test results
        """
        start_time = time.time()
        try:
            context, processed = self._declare(mission_binary_dir, arch, build_dir, toolchain_file)

            executor = BuildExecutor(context.graph, context.toolchain, jobs=jobs, show_progress=self.verbose)
            executor.run()

            staging_root = Path(staging_dir) if staging_dir is not None else context.binary_dir / STAGING_SUBDIR
            installed = StagingInstaller().install(context.graph, staging_root)

            test_results = executor.run_tests() if run_tests else {}
        except FswBuildError as e:
            return self._failure(arch, start_time, str(e))
        except Exception as e:
            logger.debug("Unexpected build failure", exc_info=True)
            return self._failure(arch, start_time, f"Unexpected error: {e}")

        failed_tests = sorted(name for name, code in test_results.items() if code != 0)
        if failed_tests:
            message = f"{len(failed_tests)} of {len(test_results)} tests failed: {', '.join(failed_tests)}"
        else:
            message = "Build successful"

        return ArchBuildResult(
            success=not failed_tests,
            arch=arch,
            build_dir=context.binary_dir,
            graph=context.graph,
            processed=processed,
            build_time=time.time() - start_time,
            message=message,
            plan_path=context.binary_dir / BUILD_PLAN_FILENAME,
            installed=installed,
            test_results=test_results,
        )
