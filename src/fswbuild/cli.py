"""
Command-line interface for fswbuild.

This module provides the `fswb` CLI tool for building one architecture of a
cFS mission.
"""

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from fswbuild import __version__
from fswbuild.build import ArchBuildOrchestrator, ArchBuildResult
from fswbuild.cli_utils import ErrorFormatter, PathValidator, setup_logging
from fswbuild.config import load_mission_context
from fswbuild.errors import FswBuildError


@dataclass
class ConfigureArgs:
    """Arguments for the configure command."""

    mission_binary_dir: Path
    arch: str
    toolchain: Optional[Path] = None
    build_dir: Optional[Path] = None
    verbose: bool = False


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    mission_binary_dir: Path
    arch: str
    toolchain: Optional[Path] = None
    build_dir: Optional[Path] = None
    jobs: Optional[int] = None
    stage: Optional[Path] = None
    run_tests: bool = False
    verbose: bool = False


@dataclass
class CacheArgs:
    """Arguments for the cache command."""

    mission_binary_dir: Path
    verbose: bool = False


def _print_result_summary(result: ArchBuildResult) -> None:
    if result.processed:
        print(f"Target systems: {', '.join(result.processed)}")
    if result.graph is not None:
        print(f"Targets: {len(result.graph.targets)}")
        print(f"Table commands: {len(result.graph.custom_commands)}")
        print(f"Install rules: {len(result.graph.install_rules)}")
    if result.plan_path is not None:
        print(f"Build plan: {result.plan_path}")


def configure_command(args: ConfigureArgs) -> None:
    """Declare the build of one architecture and write its build plan.

    Examples:
        fswb configure build --arch cpu1-linux
        fswb configure build --arch cpu1-rtems --toolchain toolchain-rtems.ini
    """
    print(f"fswbuild {__version__}")
    print()

    try:
        orchestrator = ArchBuildOrchestrator(verbose=args.verbose)
        print(f"Configuring architecture: {args.arch}...")
        result = orchestrator.configure(
            mission_binary_dir=args.mission_binary_dir,
            arch=args.arch,
            build_dir=args.build_dir,
            toolchain_file=args.toolchain,
        )

        if result.success:
            ErrorFormatter.print_success("Configuration successful!")
            print()
            _print_result_summary(result)
            print(f"Configure time: {result.build_time:.2f}s")
            sys.exit(0)
        else:
            ErrorFormatter.print_error("Configuration failed!", result.message)
            sys.exit(1)

    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def build_command(args: BuildArgs) -> None:
    """Build one architecture and stage its per-target output.

    Examples:
        fswb build build --arch cpu1-linux
        fswb build build --arch cpu1-linux -j 8 --run-tests
        fswb build build --arch cpu1-linux --stage /tmp/exe
    """
    print(f"fswbuild {__version__}")
    print()

    try:
        orchestrator = ArchBuildOrchestrator(verbose=args.verbose)
        print(f"Building architecture: {args.arch}...")
        result = orchestrator.build(
            mission_binary_dir=args.mission_binary_dir,
            arch=args.arch,
            build_dir=args.build_dir,
            toolchain_file=args.toolchain,
            jobs=args.jobs,
            staging_dir=args.stage,
            run_tests=args.run_tests,
        )

        if result.success:
            ErrorFormatter.print_success("Build successful!")
            print()
            _print_result_summary(result)
            print(f"Staged files: {len(result.installed)}")
            if result.test_results:
                print(f"Tests passed: {len(result.test_results)}")
            print(f"Build time: {result.build_time:.2f}s")
            sys.exit(0)
        else:
            ErrorFormatter.print_error("Build failed!", result.message)
            sys.exit(1)

    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def cache_command(args: CacheArgs) -> None:
    """List the mission variables imported from the outer build pass.

    Examples:
        fswb cache build
    """
    try:
        mission = load_mission_context(args.mission_binary_dir)
    except FswBuildError as e:
        ErrorFormatter.print_error("Cannot read mission cache", str(e))
        sys.exit(1)

    for key in mission:
        print(f"{key}={mission.get(key)}")
    sys.exit(0)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "mission_binary_dir",
        type=Path,
        help="Mission binary directory holding mission_vars.cache",
    )
    parser.add_argument(
        "-a",
        "--arch",
        required=True,
        help="Architecture (target system) to build",
    )
    parser.add_argument(
        "-t",
        "--toolchain",
        type=Path,
        default=None,
        help="Toolchain INI file (default: native host toolchain)",
    )
    parser.add_argument(
        "-B",
        "--build-dir",
        type=Path,
        default=None,
        help="Architecture build directory (default: <mission-binary-dir>/<arch>)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )


def main(argv: Optional[List[str]] = None) -> None:
    """fswbuild - cFS architecture build orchestration."""
    parser = argparse.ArgumentParser(
        prog="fswb",
        description="fswbuild - per-architecture build orchestration for cFS missions",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"fswb {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Configure command
    configure_parser = subparsers.add_parser(
        "configure",
        help="Declare the build graph and write build_plan.json",
    )
    _add_common_arguments(configure_parser)

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Configure, build and stage an architecture",
    )
    _add_common_arguments(build_parser)
    build_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Parallel build steps (default: number of CPUs)",
    )
    build_parser.add_argument(
        "--stage",
        type=Path,
        default=None,
        help="Staging root (default: <build-dir>/exe)",
    )
    build_parser.add_argument(
        "--run-tests",
        action="store_true",
        help="Run registered unit tests after building",
    )

    # Cache command
    cache_parser = subparsers.add_parser(
        "cache",
        help="List imported mission variables",
    )
    cache_parser.add_argument(
        "mission_binary_dir",
        type=Path,
        help="Mission binary directory holding mission_vars.cache",
    )
    cache_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )

    # Parse arguments
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    setup_logging(parsed_args.verbose)

    PathValidator.validate_mission_binary_dir(parsed_args.mission_binary_dir)
    if hasattr(parsed_args, "toolchain"):
        PathValidator.validate_optional_file(parsed_args.toolchain)

    # Execute command
    if parsed_args.command == "configure":
        configure_args = ConfigureArgs(
            mission_binary_dir=parsed_args.mission_binary_dir,
            arch=parsed_args.arch,
            toolchain=parsed_args.toolchain,
            build_dir=parsed_args.build_dir,
            verbose=parsed_args.verbose,
        )
        configure_command(configure_args)
    elif parsed_args.command == "build":
        build_args = BuildArgs(
            mission_binary_dir=parsed_args.mission_binary_dir,
            arch=parsed_args.arch,
            toolchain=parsed_args.toolchain,
            build_dir=parsed_args.build_dir,
            jobs=parsed_args.jobs,
            stage=parsed_args.stage,
            run_tests=parsed_args.run_tests,
            verbose=parsed_args.verbose,
        )
        build_command(build_args)
    elif parsed_args.command == "cache":
        cache_command(CacheArgs(mission_binary_dir=parsed_args.mission_binary_dir, verbose=parsed_args.verbose))


if __name__ == "__main__":
    main()
