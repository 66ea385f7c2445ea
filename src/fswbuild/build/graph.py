"""Declared build graph.

The orchestration layer never compiles anything itself. It records what has to
be built (targets), how derived files are produced (custom commands), where
finished artifacts are staged (install rules) and which executables are tests.
The BuildExecutor and StagingInstaller consume this graph afterwards.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError


class DuplicateTargetError(ConfigurationError):
    """Raised when a target name is redefined with a different definition."""

    pass


class LinkMode(Enum):
    """How a library is linked."""

    STATIC = "STATIC"
    MODULE = "MODULE"


class TargetType(Enum):
    """Kind of build target."""

    STATIC_LIBRARY = "STATIC_LIBRARY"
    MODULE_LIBRARY = "MODULE_LIBRARY"
    EXECUTABLE = "EXECUTABLE"
    UTILITY = "UTILITY"

    @classmethod
    def for_link_mode(cls, link_mode: LinkMode) -> "TargetType":
        if link_mode is LinkMode.MODULE:
            return cls.MODULE_LIBRARY
        return cls.STATIC_LIBRARY


# Default artifact naming conventions (prefix, suffix) per target type
NAMING_CONVENTIONS = {
    TargetType.STATIC_LIBRARY: ("lib", ".a"),
    TargetType.MODULE_LIBRARY: ("lib", ".so"),
    TargetType.EXECUTABLE: ("", ""),
    TargetType.UTILITY: ("", ""),
}


@dataclass
class BuildTarget:
    """A named buildable unit.

    Attributes:
        name: Unique target name
        target_type: Library, module, executable or utility
        source_dir: Directory scope the target was declared in
        binary_dir: Output directory for the target's artifacts
        sources: Source files
        include_dirs: Include directories captured from the declaring scope
        definitions: Preprocessor definitions (NAME or NAME=VALUE)
        compile_options: Compiler flags captured from the declaring scope
        link_libraries: Libraries linked into this target, in order
        dependencies: Targets that must be complete before this one starts
        file_depends: Generated files that must exist before this one starts
        properties: Free-form target properties (COMPILE_FLAGS, PREFIX, ...)
    """

    name: str
    target_type: TargetType
    source_dir: Path
    binary_dir: Path
    sources: List[Path] = field(default_factory=list)
    include_dirs: List[Path] = field(default_factory=list)
    definitions: List[str] = field(default_factory=list)
    compile_options: List[str] = field(default_factory=list)
    link_libraries: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    file_depends: List[Path] = field(default_factory=list)
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def link_mode(self) -> Optional[LinkMode]:
        if self.target_type is TargetType.STATIC_LIBRARY:
            return LinkMode.STATIC
        if self.target_type is TargetType.MODULE_LIBRARY:
            return LinkMode.MODULE
        return None

    def get_property(self, name: str) -> Any:
        """Return a property value, or None when the property is not set."""
        return self.properties.get(name)

    def set_properties(self, **properties: Any) -> None:
        self.properties.update(properties)

    def add_dependency(self, name: str) -> None:
        if name not in self.dependencies:
            self.dependencies.append(name)

    def link(self, *libraries: str) -> None:
        for library in libraries:
            if library not in self.link_libraries:
                self.link_libraries.append(library)

    @property
    def output_name(self) -> str:
        """On-disk artifact name, honoring PREFIX/SUFFIX/OUTPUT_NAME properties."""
        prefix, suffix = NAMING_CONVENTIONS[self.target_type]
        if self.get_property("PREFIX") is not None:
            prefix = self.get_property("PREFIX")
        if self.get_property("SUFFIX") is not None:
            suffix = self.get_property("SUFFIX")
        base = self.get_property("OUTPUT_NAME") or self.name
        return f"{prefix}{base}{suffix}"

    @property
    def output_path(self) -> Path:
        return self.binary_dir / self.output_name

    @property
    def object_dir(self) -> Path:
        return self.binary_dir / f"{self.name}.dir"

    def definition_signature(self) -> tuple:
        """Fields that define the target, used to detect conflicting redefinitions."""
        return (
            self.target_type,
            tuple(self.sources),
            tuple(self.file_depends),
            self.source_dir,
            self.binary_dir,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.target_type.value,
            "source_dir": str(self.source_dir),
            "binary_dir": str(self.binary_dir),
            "output": str(self.output_path),
            "sources": [str(s) for s in self.sources],
            "include_dirs": [str(i) for i in self.include_dirs],
            "definitions": list(self.definitions),
            "compile_options": list(self.compile_options),
            "link_libraries": list(self.link_libraries),
            "dependencies": list(self.dependencies),
            "file_depends": [str(f) for f in self.file_depends],
            "properties": {k: v for k, v in self.properties.items()},
        }


@dataclass
class CustomCommand:
    """Commands producing derived files, run in order in working_dir."""

    outputs: List[Path]
    commands: List[List[str]]
    working_dir: Path
    depends: List[Path] = field(default_factory=list)
    comment: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outputs": [str(o) for o in self.outputs],
            "commands": [list(c) for c in self.commands],
            "working_dir": str(self.working_dir),
            "depends": [str(d) for d in self.depends],
            "comment": self.comment,
        }


@dataclass(frozen=True)
class InstallRule:
    """Stage a target's artifact or a plain file under the staging root.

    Attributes:
        kind: 'target' or 'file'
        source: Target name (kind='target') or file path (kind='file')
        destination: Directory relative to the staging root
    """

    kind: str
    source: str
    destination: str

    @classmethod
    def for_target(cls, target_name: str, destination: str) -> "InstallRule":
        return cls(kind="target", source=target_name, destination=destination)

    @classmethod
    def for_file(cls, path: Path, destination: str) -> "InstallRule":
        return cls(kind="file", source=str(path), destination=destination)

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "source": self.source, "destination": self.destination}


@dataclass(frozen=True)
class RegisteredTest:
    """An executable registered with the test runner."""

    name: str
    command: tuple
    working_dir: Optional[Path] = None


class BuildGraph:
    """Everything one architecture build declares.

    Example:
        graph = BuildGraph()
        graph.add_target(BuildTarget("osal", TargetType.STATIC_LIBRARY, src, out))
        graph.add_install(InstallRule.for_target("core-cpu1", "cpu1"))
    """

    def __init__(self):
        self.targets: Dict[str, BuildTarget] = {}
        self.custom_commands: List[CustomCommand] = []
        self.install_rules: List[InstallRule] = []
        self.tests: List[RegisteredTest] = []

    def add_target(self, target: BuildTarget) -> BuildTarget:
        """Register a target.

        Re-adding an identical definition returns the existing target.

        Raises:
            DuplicateTargetError: If the name is taken by a different definition
        """
        existing = self.targets.get(target.name)
        if existing is not None:
            if existing.definition_signature() == target.definition_signature():
                return existing
            raise DuplicateTargetError(
                f"Target '{target.name}' is already defined in {existing.source_dir}"
            )
        self.targets[target.name] = target
        return target

    def has_target(self, name: str) -> bool:
        return name in self.targets

    def get_target(self, name: str) -> BuildTarget:
        try:
            return self.targets[name]
        except KeyError:
            raise ConfigurationError(f"Unknown target '{name}'") from None

    def add_custom_command(self, command: CustomCommand) -> CustomCommand:
        for existing in self.custom_commands:
            overlap = set(existing.outputs) & set(command.outputs)
            if overlap:
                raise DuplicateTargetError(
                    f"Output {sorted(overlap)[0]} is already produced by another command"
                )
        self.custom_commands.append(command)
        return command

    def command_for_output(self, output: Path) -> Optional[CustomCommand]:
        for command in self.custom_commands:
            if output in command.outputs:
                return command
        return None

    def add_install(self, rule: InstallRule) -> InstallRule:
        if rule not in self.install_rules:
            self.install_rules.append(rule)
        return rule

    def add_test(self, test: RegisteredTest) -> RegisteredTest:
        if any(t.name == test.name for t in self.tests):
            raise DuplicateTargetError(f"Test '{test.name}' is already registered")
        self.tests.append(test)
        return test

    def targets_of_type(self, target_type: TargetType) -> List[BuildTarget]:
        return [t for t in self.targets.values() if t.target_type is target_type]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable build plan."""
        return {
            "targets": [t.to_dict() for t in self.targets.values()],
            "custom_commands": [c.to_dict() for c in self.custom_commands],
            "install_rules": [r.to_dict() for r in self.install_rules],
            "tests": [
                {"name": t.name, "command": list(t.command), "working_dir": str(t.working_dir) if t.working_dir else None}
                for t in self.tests
            ],
        }
