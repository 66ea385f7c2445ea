"""Build Step Executor.

This module runs a declared BuildGraph: it compiles and links targets and runs
custom commands (table images) with bounded parallelism.

Design:
    - One step per custom command and one per target
    - A step starts only after every step it depends on has finished
    - Steps run on a thread pool; each step runs its commands in order
    - The first failure stops the build: nothing new starts, running compiler
      process trees are terminated, artifacts already produced stay in place
    - Declared outputs of a custom command must exist once it finishes
"""

import hashlib
import logging
import subprocess
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

import psutil
from tqdm import tqdm

from ..config.toolchain_config import ToolchainConfig
from ..errors import ConfigurationError, FswBuildError, MissingPathError
from .graph import BuildGraph, BuildTarget, CustomCommand, TargetType

logger = logging.getLogger(__name__)

DEFAULT_STEP_TIMEOUT = 600

LINKABLE_TYPES = (TargetType.STATIC_LIBRARY, TargetType.MODULE_LIBRARY)


class BuildStepError(FswBuildError):
    """Raised when a build step fails."""

    pass


@dataclass
class BuildStep:
    """A unit of work for the executor.

    Attributes:
        name: Unique step name
        commands: (argv, working directory) pairs run in order
        depends_on: Names of steps that must finish first
        inputs: Files that must exist before the step starts
        outputs: Files that must exist after the step finished
        directories: Directories created before the first command
    """

    name: str
    commands: List[Tuple[List[str], Path]] = field(default_factory=list)
    depends_on: Set[str] = field(default_factory=set)
    inputs: List[Path] = field(default_factory=list)
    outputs: List[Path] = field(default_factory=list)
    directories: List[Path] = field(default_factory=list)


def _as_list(value: Any) -> List[str]:
    """Normalize a flag property; unset (None) reads as empty."""
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return [str(v) for v in value]


def target_step_name(name: str) -> str:
    return f"target:{name}"


def command_step_name(command: CustomCommand) -> str:
    return f"command:{command.outputs[0]}"


class BuildExecutor:
    """Executes a BuildGraph.

    Example usage:
        executor = BuildExecutor(graph, toolchain, jobs=4)
        executor.run()
        results = executor.run_tests()
    """

    def __init__(
        self,
        graph: BuildGraph,
        toolchain: ToolchainConfig,
        jobs: Optional[int] = None,
        show_progress: bool = True,
        timeout: int = DEFAULT_STEP_TIMEOUT,
    ):
        """Initialize executor.

        Args:
            graph: Graph to execute
            toolchain: Compiler and archiver to use
            jobs: Maximum parallel steps (default: logical CPU count)
            show_progress: Whether to show a progress bar
            timeout: Per-command timeout in seconds
        """
        self.graph = graph
        self.toolchain = toolchain
        self.jobs = jobs or psutil.cpu_count(logical=True) or 1
        self.show_progress = show_progress
        self.timeout = timeout
        self._lock = threading.Lock()
        self._processes: Dict[int, subprocess.Popen] = {}
        self._aborted = threading.Event()

    # Planning

    def _producer_steps(self, files: List[Path]) -> Set[str]:
        steps = set()
        for path in files:
            command = self.graph.command_for_output(path)
            if command is not None:
                steps.add(command_step_name(command))
        return steps

    def _link_inputs(self, target: BuildTarget) -> Tuple[List[str], Set[str]]:
        """Linker arguments for a target's libraries and the steps producing them."""
        args = []
        depends = set()
        for library in target.link_libraries:
            if self.graph.has_target(library):
                dependency = self.graph.get_target(library)
                depends.add(target_step_name(library))
                if dependency.target_type in LINKABLE_TYPES:
                    args.append(str(dependency.output_path))
            else:
                args.append(f"-l{library}")
        return args, depends

    def compile_command(self, target: BuildTarget, source: Path) -> List[str]:
        """Compiler invocation for one source of a target."""
        cmd = [self.toolchain.c_compiler]
        cmd.extend(target.compile_options)
        cmd.extend(_as_list(target.get_property("COMPILE_FLAGS")))
        if target.target_type is TargetType.MODULE_LIBRARY:
            cmd.append("-fPIC")
        definitions = target.definitions + _as_list(target.get_property("COMPILE_DEFINITIONS"))
        cmd.extend(f"-D{d}" for d in definitions)
        cmd.extend(f"-I{i}" for i in target.include_dirs)
        cmd.extend(["-c", str(source), "-o", str(self.object_path(target, source))])
        return cmd

    @staticmethod
    def object_path(target: BuildTarget, source: Path) -> Path:
        """Object file of a source, mirroring its path below the target's source dir.

        Sources outside that tree get a digest of their directory in the name,
        so two sources with the same base name never share an object file.
        """
        source = Path(source)
        try:
            relative = source.relative_to(target.source_dir)
        except ValueError:
            digest = hashlib.sha1(str(source.parent).encode("utf-8")).hexdigest()[:8]
            relative = Path(f"{source.stem}-{digest}{source.suffix}")
        return target.object_dir / relative.with_suffix(".o")

    def link_command(self, target: BuildTarget, library_args: List[str]) -> List[str]:
        """Archive or link command producing the target's artifact."""
        objects = [str(self.object_path(target, s)) for s in target.sources]
        output = str(target.output_path)

        if target.target_type is TargetType.STATIC_LIBRARY:
            return [self.toolchain.archiver, "rcs", output, *objects]

        cmd = [self.toolchain.c_compiler]
        if target.target_type is TargetType.MODULE_LIBRARY:
            cmd.append("-shared")
        cmd.extend(self.toolchain.link_flags)
        cmd.extend(_as_list(target.get_property("LINK_FLAGS")))
        cmd.extend(["-o", output, *objects, *library_args])
        return cmd

    def plan(self) -> Dict[str, BuildStep]:
        """Translate the graph into executable steps.

        Raises:
            ConfigurationError: If a target depends on an unknown target
        """
        steps: Dict[str, BuildStep] = {}

        for command in self.graph.custom_commands:
            name = command_step_name(command)
            produced = self._producer_steps(command.depends)
            produced.discard(name)
            steps[name] = BuildStep(
                name=name,
                commands=[(list(argv), command.working_dir) for argv in command.commands],
                depends_on=produced,
                inputs=[d for d in command.depends if self.graph.command_for_output(d) is None],
                outputs=list(command.outputs),
                directories=[command.working_dir],
            )

        for target in self.graph.targets.values():
            step = BuildStep(name=target_step_name(target.name))
            for dependency in target.dependencies:
                if not self.graph.has_target(dependency):
                    raise ConfigurationError(f"Target {target.name} depends on unknown target {dependency}")
                step.depends_on.add(target_step_name(dependency))
            step.depends_on |= self._producer_steps(target.file_depends + target.sources)

            if target.target_type is not TargetType.UTILITY:
                library_args, library_steps = self._link_inputs(target)
                step.depends_on |= library_steps
                step.depends_on.discard(step.name)
                object_dirs = [self.object_path(target, source).parent for source in target.sources]
                step.directories = list(dict.fromkeys([target.object_dir, target.binary_dir, *object_dirs]))
                step.commands = [
                    (self.compile_command(target, source), target.binary_dir) for source in target.sources
                ]
                step.commands.append((self.link_command(target, library_args), target.binary_dir))
                step.outputs = [target.output_path]

            steps[step.name] = step

        return steps

    # Execution

    def run(self) -> List[str]:
        """Execute every step in dependency order.

        Returns:
            Names of the executed steps, in completion order

        Raises:
            BuildStepError: On the first failing step or a dependency cycle
        """
        steps = self.plan()
        remaining = dict(steps)
        done: Set[str] = set()
        completed: List[str] = []
        running: Dict[Future, str] = {}
        self._aborted.clear()

        logger.info(f"Executing {len(steps)} build steps with {self.jobs} jobs")

        with ThreadPoolExecutor(max_workers=self.jobs) as pool, tqdm(
            total=len(steps), desc="Building", unit="step", disable=not self.show_progress
        ) as progress:
            while remaining or running:
                ready = sorted(name for name, step in remaining.items() if step.depends_on <= done)
                for name in ready:
                    running[pool.submit(self._execute_step, remaining.pop(name))] = name

                if not running:
                    raise BuildStepError(
                        "Dependency cycle between build steps: " + ", ".join(sorted(remaining))
                    )

                finished, _ = wait(list(running), return_when=FIRST_COMPLETED)
                for future in finished:
                    name = running.pop(future)
                    try:
                        future.result()
                    except BaseException:
                        self._abort(running)
                        raise
                    done.add(name)
                    completed.append(name)
                    progress.update(1)

        return completed

    def _execute_step(self, step: BuildStep) -> None:
        for directory in step.directories:
            directory.mkdir(parents=True, exist_ok=True)

        for path in step.inputs:
            if not path.exists():
                raise BuildStepError(f"{step.name}: required input {path} does not exist")

        for argv, cwd in step.commands:
            self._run_command(step, argv, cwd)

        for path in step.outputs:
            if not path.exists():
                raise BuildStepError(
                    f"{step.name}: command finished but did not produce {path}. "
                    + "Check that the generated file name matches the declared output."
                )
        logger.debug(f"Finished {step.name}")

    def _run_command(self, step: BuildStep, argv: List[str], cwd: Path) -> None:
        if self._aborted.is_set():
            raise BuildStepError(f"{step.name}: build aborted")

        logger.debug(f"[{step.name}] {' '.join(argv)}")
        try:
            process = subprocess.Popen(
                argv,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError as e:
            raise BuildStepError(f"{step.name}: command not found: {argv[0]}") from e

        with self._lock:
            self._processes[process.pid] = process
        try:
            stdout, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            self._terminate_process_tree(process.pid)
            process.communicate()
            raise BuildStepError(f"{step.name}: command timed out after {self.timeout}s: {' '.join(argv)}")
        finally:
            with self._lock:
                self._processes.pop(process.pid, None)

        if process.returncode != 0:
            error_msg = f"{step.name} failed (exit code {process.returncode})\n"
            error_msg += f"command: {' '.join(argv)}\n"
            error_msg += f"stderr: {stderr}\n"
            error_msg += f"stdout: {stdout}"
            raise BuildStepError(error_msg)

        if stderr:
            logger.warning(f"[{step.name}] {stderr.strip()}")

    def _abort(self, running: Dict[Future, str]) -> None:
        """Stop scheduling, cancel queued steps and kill running commands."""
        self._aborted.set()
        for future in running:
            future.cancel()
        with self._lock:
            pids = list(self._processes)
        for pid in pids:
            self._terminate_process_tree(pid)

    @staticmethod
    def _terminate_process_tree(pid: int) -> int:
        """Terminate a process and all its children, children first.

        Returns:
            Number of processes signalled
        """
        try:
            root = psutil.Process(pid)
            processes = root.children(recursive=True) + [root]
        except psutil.NoSuchProcess:
            return 0

        signalled = []
        for proc in processes:
            try:
                proc.terminate()
                signalled.append(proc)
            except psutil.NoSuchProcess:
                pass

        _gone, alive = psutil.wait_procs(signalled, timeout=3)
        for proc in alive:
            try:
                proc.kill()
                logger.warning(f"Force killed process {proc.pid}")
            except psutil.NoSuchProcess:
                pass
        return len(signalled)

    # Tests

    def run_tests(self) -> Dict[str, int]:
        """Run every registered test executable.

        Returns:
            Dictionary of test name -> exit code

        Raises:
            MissingPathError: If a test executable has not been built
        """
        results = {}
        for test in self.graph.tests:
            program, *args = test.command
            if self.graph.has_target(program):
                executable = self.graph.get_target(program).output_path
            else:
                executable = Path(program)
            if not executable.exists():
                raise MissingPathError(f"Test executable not found: {executable}", executable)

            result = subprocess.run(
                [str(executable), *args],
                cwd=test.working_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
            status = "passed" if result.returncode == 0 else f"failed ({result.returncode})"
            logger.info(f"Test {test.name}: {status}")
            results[test.name] = result.returncode
        return results
