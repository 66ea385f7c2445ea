"""
Directory scopes and recipes.

Each source directory brought into an architecture build holds a recipe,
``build_recipe.py``, with a ``configure(build)`` function. ``build`` is a
DirectoryBuilder bound to a DirectoryScope:

    def configure(build):
        build.include_directories("fsw/src")
        build.add_cfe_app("sample_app", "fsw/src/sample_app.c")
        build.add_cfe_tables("sample_app", "fsw/tables/sample_app_tbl.c")

Include directories, definitions and compile options flow from a scope into
its subdirectories but never back to the parent. Targets capture the scope
state at the time they are declared.
"""

import hashlib
import importlib.util
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from ..errors import ConfigurationError, MissingPathError
from . import modules, tables, unit_test
from .context import ArchBuildContext
from .graph import BuildGraph, BuildTarget, InstallRule, LinkMode, RegisteredTest, TargetType
from .install_hooks import AppInstallHook, ExecInstallHook

logger = logging.getLogger(__name__)

RECIPE_FILENAME = "build_recipe.py"
RECIPE_ENTRY_POINT = "configure"

PathArg = Union[str, Path]


class RecipeError(ConfigurationError):
    """Raised when a recipe cannot be loaded or does not define configure()."""

    pass


def load_recipe(recipe_path: Path) -> Callable[["DirectoryBuilder"], None]:
    """Import a recipe file and return its configure() function.

    Raises:
        MissingPathError: If the recipe file does not exist
        RecipeError: If it cannot be imported or has no configure()
    """
    recipe_path = Path(recipe_path)
    if not recipe_path.is_file():
        raise MissingPathError(f"Build recipe not found: {recipe_path}", recipe_path)

    # Unique module name per recipe path so recipes never shadow each other
    digest = hashlib.sha1(str(recipe_path.resolve()).encode("utf-8")).hexdigest()[:12]
    spec = importlib.util.spec_from_file_location(f"fswbuild_recipe_{digest}", recipe_path)
    if spec is None or spec.loader is None:
        raise RecipeError(f"Cannot load build recipe {recipe_path}")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise RecipeError(f"Failed to import build recipe {recipe_path}: {type(e).__name__}: {e}") from e

    entry = getattr(module, RECIPE_ENTRY_POINT, None)
    if not callable(entry):
        raise RecipeError(f"Build recipe {recipe_path} does not define {RECIPE_ENTRY_POINT}(build)")
    return entry


def _format_definition(definition: str) -> str:
    return definition[2:] if definition.startswith("-D") else definition


@dataclass
class DirectoryScope:
    """Per-directory state inherited by subdirectories."""

    source_dir: Path
    binary_dir: Path
    include_dirs: List[Path] = field(default_factory=list)
    definitions: List[str] = field(default_factory=list)
    compile_options: List[str] = field(default_factory=list)

    def child(self, source_dir: Path, binary_dir: Path) -> "DirectoryScope":
        return DirectoryScope(
            source_dir=Path(source_dir),
            binary_dir=Path(binary_dir),
            include_dirs=list(self.include_dirs),
            definitions=list(self.definitions),
            compile_options=list(self.compile_options),
        )

    def current_cflags(self) -> List[str]:
        """Full compiler flags of this scope: options, then -D, then -I."""
        flags = list(self.compile_options)
        flags.extend(f"-D{d}" for d in self.definitions)
        flags.extend(f"-I{i}" for i in self.include_dirs)
        return flags


class DirectoryBuilder:
    """The API a recipe uses to declare targets in its directory scope."""

    def __init__(self, context: ArchBuildContext, scope: DirectoryScope):
        self.context = context
        self.scope = scope

    @property
    def graph(self) -> BuildGraph:
        return self.context.graph

    @property
    def source_dir(self) -> Path:
        return self.scope.source_dir

    @property
    def binary_dir(self) -> Path:
        return self.scope.binary_dir

    def resolve_source(self, path: PathArg) -> Path:
        path = Path(path)
        if not path.is_absolute():
            path = self.scope.source_dir / path
        return path

    # Scope state

    def include_directories(self, *dirs: PathArg) -> None:
        for directory in dirs:
            resolved = self.resolve_source(directory)
            if resolved not in self.scope.include_dirs:
                self.scope.include_dirs.append(resolved)

    def add_definitions(self, *definitions: str) -> None:
        for definition in definitions:
            definition = _format_definition(definition)
            if definition not in self.scope.definitions:
                self.scope.definitions.append(definition)

    def add_compile_options(self, *options: str) -> None:
        self.scope.compile_options.extend(options)

    def get_current_cflags(self) -> List[str]:
        return self.scope.current_cflags()

    # Targets

    def _resolve_sources(self, name: str, sources: Sequence[PathArg]) -> List[Path]:
        resolved = []
        for source in sources:
            path = self.resolve_source(source)
            if not path.is_file():
                raise MissingPathError(f"Cannot find source file {path} for target {name}", path)
            resolved.append(path)
        return resolved

    def _add_target(self, name: str, target_type: TargetType, sources: Sequence[PathArg]) -> BuildTarget:
        target = BuildTarget(
            name=name,
            target_type=target_type,
            source_dir=self.scope.source_dir,
            binary_dir=self.scope.binary_dir,
            sources=self._resolve_sources(name, sources),
            include_dirs=list(self.scope.include_dirs),
            definitions=list(self.scope.definitions),
            compile_options=list(self.scope.compile_options),
        )
        return self.graph.add_target(target)

    def add_library(self, name: str, link_mode: LinkMode, *sources: PathArg) -> BuildTarget:
        if not sources:
            raise ConfigurationError(f"Library {name} has no source files")
        return self._add_target(name, TargetType.for_link_mode(link_mode), sources)

    def add_executable(self, name: str, *sources: PathArg) -> BuildTarget:
        if not sources:
            raise ConfigurationError(f"Executable {name} has no source files")
        return self._add_target(name, TargetType.EXECUTABLE, sources)

    def add_custom_target(self, name: str, file_depends: Sequence[Path] = ()) -> BuildTarget:
        target = BuildTarget(
            name=name,
            target_type=TargetType.UTILITY,
            source_dir=self.scope.source_dir,
            binary_dir=self.scope.binary_dir,
            file_depends=list(file_depends),
        )
        return self.graph.add_target(target)

    def target_link_libraries(self, name: str, *libraries: str) -> None:
        self.graph.get_target(name).link(*libraries)

    def install_targets(self, name: str, destination: str) -> None:
        self.graph.add_install(InstallRule.for_target(name, destination))

    def install_files(self, path: PathArg, destination: str) -> None:
        self.graph.add_install(InstallRule.for_file(Path(path), destination))

    def add_test(self, name: str, *command: str) -> RegisteredTest:
        return self.graph.add_test(
            RegisteredTest(name=name, command=tuple(command) or (name,), working_dir=self.scope.binary_dir)
        )

    # Subdirectories

    def add_subdirectory(self, source_dir: PathArg, binary_subdir: Optional[PathArg] = None) -> "DirectoryBuilder":
        """Configure another source directory in a child scope.

        Args:
            source_dir: Directory holding a build_recipe.py
            binary_subdir: Output directory, relative to this scope's binary dir
                (defaults to the source directory name)

        Returns:
            The child builder after its recipe ran
        """
        source_dir = self.resolve_source(source_dir)
        if not source_dir.is_dir():
            raise MissingPathError(f"Subdirectory not found: {source_dir}", source_dir)

        binary_dir = self.scope.binary_dir / (binary_subdir if binary_subdir is not None else source_dir.name)
        child = DirectoryBuilder(self.context, self.scope.child(source_dir, binary_dir))

        configure = load_recipe(source_dir / RECIPE_FILENAME)
        logger.debug(f"Configuring {source_dir} -> {binary_dir}")
        configure(child)
        return child

    def include(self, recipe_path: PathArg) -> None:
        """Run a recipe file in this scope (its settings stay in this scope)."""
        configure = load_recipe(self.resolve_source(recipe_path))
        configure(self)

    # Module builders

    def add_psp_module(self, name: str, *sources: PathArg) -> BuildTarget:
        return modules.add_psp_module(self, name, *sources)

    def add_cfe_app(self, name: str, *sources: PathArg) -> BuildTarget:
        return modules.add_cfe_app(self, name, *sources)

    def add_unit_test_lib(self, name: str, *sources: PathArg) -> BuildTarget:
        return modules.add_unit_test_lib(self, name, *sources)

    def add_unit_test_exe(self, name: str, *sources: PathArg) -> BuildTarget:
        return unit_test.add_unit_test_exe(self, name, *sources)

    def add_cfe_tables(self, app_name: str, *table_sources: PathArg) -> BuildTarget:
        return tables.add_cfe_tables(self, app_name, *table_sources)

    def override_install_hooks(
        self,
        exec_install: Optional[ExecInstallHook] = None,
        app_install: Optional[AppInstallHook] = None,
    ) -> None:
        """Replace install hooks for the rest of this architecture build."""
        self.context.install_hooks = self.context.install_hooks.replace(
            exec_install=exec_install, app_install=app_install
        )
