"""
Mission context loader.

The outer (mission-level) build pass serializes its global variables into a
cache file in the mission binary directory. Every architecture build reads that
file back so that all cross builds see identical settings.

Cache file format (mission_vars.cache):
    MISSION_DEFS
    /opt/defs
    TGTSYS_cpu1-linux
    1;2
    INSTALL_SUBDIR
    cf

Lines alternate key / value. List-valued variables join their elements with
";" and escape a literal ";" inside an element as "\\;" and a literal
backslash as "\\\\".

Usage:
    mission = load_mission_context(Path("build"))
    defs_dir = mission.get_path("MISSION_DEFS")
    for target in mission.logical_targets("cpu1-linux"):
        print(target.name, target.core_library)
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ..errors import ConfigurationError, MissingPathError

logger = logging.getLogger(__name__)

MISSION_CACHE_FILENAME = "mission_vars.cache"

LIST_SEPARATOR = ";"
ESCAPE_CHAR = "\\"

# Values treated as false by get_bool(), compared case-insensitively
FALSE_CONSTANTS = {"", "0", "OFF", "NO", "FALSE", "N", "IGNORE", "NOTFOUND"}

# One list element: escape pairs, or any character except the separator
_LIST_ELEMENT = re.compile(r"(?:\\[\\;]|[^;])+")
_ESCAPE_PAIR = re.compile(r"\\([\\;])")


class MissionCacheError(ConfigurationError):
    """Raised when the mission cache file is malformed."""

    pass


def is_true(value: Optional[str]) -> bool:
    """Truthiness of a variable value; unset and false constants are False."""
    if value is None:
        return False
    value = value.strip().upper()
    return not (value in FALSE_CONSTANTS or value.endswith("-NOTFOUND"))


def escape_element(element: str) -> str:
    """Protect literal backslashes and separators inside a single list element."""
    element = element.replace(ESCAPE_CHAR, ESCAPE_CHAR * 2)
    return element.replace(LIST_SEPARATOR, ESCAPE_CHAR + LIST_SEPARATOR)


def unescape_element(element: str) -> str:
    """Restore escaped backslashes and separators; a lone backslash stays as is."""
    return _ESCAPE_PAIR.sub(r"\1", element)


def join_list(elements: Sequence[str]) -> str:
    """Join elements into a single list value, escaping embedded separators.

    Example:
        >>> join_list(["a", "b;c"])
        'a;b\\\\;c'
    """
    return LIST_SEPARATOR.join(escape_element(str(e)) for e in elements)


def split_list(value: Optional[str]) -> List[str]:
    """Split a list value on unescaped separators.

    Empty elements are dropped, matching how list variables expand in the
    outer build pass.

    Example:
        >>> split_list("a;b\\\\;c;;")
        ['a', 'b;c']
    """
    if not value:
        return []
    return [unescape_element(e) for e in _LIST_ELEMENT.findall(value)]


def parse_mission_cache(text: str) -> List[Tuple[str, str]]:
    """Parse cache file content into ordered (key, value) pairs.

    Args:
        text: Full content of the cache file

    Returns:
        Ordered list of (key, value) pairs as they appear in the file

    Raises:
        MissionCacheError: If the file does not hold whole key/value pairs or a
            key is empty
    """
    if text.endswith("\n"):
        text = text[:-1]
    if not text:
        return []

    lines = [line.rstrip("\r") for line in text.split("\n")]
    if len(lines) % 2 != 0:
        raise MissionCacheError(
            f"Mission cache holds {len(lines)} lines; expected alternating key/value lines"
        )

    pairs = []
    for index in range(0, len(lines), 2):
        key, value = lines[index], lines[index + 1]
        if not key.strip():
            raise MissionCacheError(f"Empty variable name on line {index + 1} of mission cache")
        pairs.append((key.strip(), value))
    return pairs


def write_mission_cache(
    path: Path,
    variables: Mapping[str, Union[str, Sequence[str]]],
) -> Path:
    """Serialize variables into the cache file format.

    This is the counterpart of the outer build pass. String values are written
    as-is; sequences are joined as list values with separators escaped.

    Args:
        path: Destination file (or directory, in which case the default cache
            file name is used)
        variables: Mapping of variable name to string or list of strings

    Returns:
        Path of the written cache file

    Raises:
        MissionCacheError: If a key or value contains a newline
    """
    path = Path(path)
    if path.is_dir():
        path = path / MISSION_CACHE_FILENAME

    lines = []
    for key, value in variables.items():
        if not isinstance(value, str):
            value = join_list(value)
        if "\n" in key or "\n" in value:
            raise MissionCacheError(f"Variable {key!r} cannot be cached: newlines are not representable")
        lines.append(key)
        lines.append(value)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n" if lines else "", encoding="utf-8")
    return path


@dataclass(frozen=True)
class LogicalTarget:
    """One CPU instance that uses an architecture's build output.

    Attributes:
        target_id: Identifier used in the TGT<id>_* variable names
        name: Target name (defaults to cpu<id>)
        platform: Platform-config profile chain used for core headers
        apps: Applications installed to this target as loadable modules
    """

    target_id: str
    name: str
    platform: Tuple[str, ...]
    apps: Tuple[str, ...] = ()

    @property
    def core_library(self) -> str:
        """Name of the core executive library for this platform-config."""
        return "cfe_core_" + "_".join(self.platform)

    @property
    def executable(self) -> str:
        return f"core-{self.name}"


@dataclass(frozen=True)
class MissionContext:
    """Read-only view of the mission-level variables.

    Attributes:
        binary_dir: Mission binary directory the cache was read from
        variables: Imported variable values
        imported_vars: Manifest of every key set by the loader, in file order
    """

    binary_dir: Path
    variables: Mapping[str, str] = field(default_factory=dict)
    imported_vars: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    @classmethod
    def from_pairs(cls, binary_dir: Path, pairs: Sequence[Tuple[str, str]]) -> "MissionContext":
        """Build a context from ordered pairs; later values win, keys recorded once."""
        values: Dict[str, str] = {}
        manifest: List[str] = []
        for key, value in pairs:
            if key not in values:
                manifest.append(key)
            values[key] = value
        return cls(binary_dir=Path(binary_dir), variables=values, imported_vars=tuple(manifest))

    def __contains__(self, key: object) -> bool:
        return key in self.variables

    def __iter__(self) -> Iterator[str]:
        return iter(self.imported_vars)

    def is_defined(self, key: str) -> bool:
        return key in self.variables

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.variables.get(key, default)

    def get_list(self, key: str) -> List[str]:
        return split_list(self.variables.get(key))

    def get_bool(self, key: str) -> bool:
        return is_true(self.variables.get(key))

    def get_path(self, key: str) -> Optional[Path]:
        value = self.variables.get(key)
        return Path(value) if value else None

    def require(self, key: str) -> str:
        """Get a variable that must be set.

        Raises:
            ConfigurationError: If the variable is undefined or empty
        """
        value = self.variables.get(key)
        if not value:
            raise ConfigurationError(f"Required mission variable {key} is not set")
        return value

    def require_path(self, key: str) -> Path:
        return Path(self.require(key))

    def module_dir(self, module: str) -> Path:
        """Source directory of a mission module (the <module>_MISSION_DIR variable)."""
        return self.require_path(f"{module}_MISSION_DIR")

    def logical_targets(self, sysvar: str) -> List[LogicalTarget]:
        """Resolve every Logical Target that references an architecture.

        Args:
            sysvar: Architecture identifier (the TGTSYS_<sysvar> suffix)

        Returns:
            Logical targets in declaration order (empty if none reference it)
        """
        targets = []
        for target_id in self.get_list(f"TGTSYS_{sysvar}"):
            name = self.get(f"TGT{target_id}_NAME") or f"cpu{target_id}"
            platform = self.get_list(f"TGT{target_id}_PLATFORM") or ["default", name]
            apps = self.get_list(f"TGT{target_id}_APPLIST")
            targets.append(
                LogicalTarget(
                    target_id=target_id,
                    name=name,
                    platform=tuple(platform),
                    apps=tuple(apps),
                )
            )
        return targets


def load_mission_context(
    binary_dir: Path,
    cache_name: str = MISSION_CACHE_FILENAME,
) -> MissionContext:
    """Load the mission variables written by the outer build pass.

    Args:
        binary_dir: Mission binary directory
        cache_name: Cache file name inside binary_dir

    Returns:
        MissionContext holding the variables and the imported-keys manifest

    Raises:
        MissingPathError: If binary_dir is not a directory or the cache is absent
        MissionCacheError: If the cache content is malformed
    """
    binary_dir = Path(binary_dir)
    logger.debug(f"--- {binary_dir}")

    if not binary_dir.is_dir():
        raise MissingPathError(
            f"BUG -- mission binary directory is not a valid directory: {binary_dir}",
            binary_dir,
        )

    cache_path = binary_dir / cache_name
    if not cache_path.is_file():
        raise MissingPathError(f"Mission cache not found: {cache_path}", cache_path)

    pairs = parse_mission_cache(cache_path.read_text(encoding="utf-8"))
    mission = MissionContext.from_pairs(binary_dir, pairs)
    logger.debug(f"Imported {len(mission.imported_vars)} mission variables from {cache_path}")
    return mission
