"""
Table image pipeline.

A table is a C source file that is compiled with the target compiler and then
converted to a binary table image by the elf2cfetbl tool. For every table of an
application and every Logical Target the application is installed to:

1. Resolve which source file to use. A mission may override any table without
   touching the application, per target or for all targets:
       <mission-defs>/tables/<target>_<name>.c
       <mission-source>/tables/<target>_<name>.c
       <mission-defs>/tables/<name>.c
       <mission-source>/tables/<name>.c
       <path as given> (absolute) or <current source dir>/<path>
2. Declare a command that compiles it with the same flags as ordinary sources
   and converts the object into <name>.tbl inside tables_<target>/.
3. Install the image into <target>/<install_subdir>.

All images of an app hang off one <app>_tables target.

The converter names its output after the table's embedded file name, which
must match the object's base name. The executor checks that every declared
output exists after the command ran, so a mismatch fails the build.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Union

from ..errors import MissingPathError
from .graph import BuildTarget, CustomCommand

if TYPE_CHECKING:
    from .scope import DirectoryBuilder

logger = logging.getLogger(__name__)

TABLE_SOURCE_SUFFIX = ".c"
TABLE_IMAGE_SUFFIX = ".tbl"
TABLE_TOOL = "elf2cfetbl"
TABLES_TARGET_SUFFIX = "_tables"


class TableSourceError(MissingPathError):
    """Raised when no source file exists for a table."""

    pass


def table_source_candidates(
    table: Union[str, Path],
    target_name: str,
    mission_defs: Path,
    mission_source_dir: Path,
    current_source_dir: Path,
) -> List[Path]:
    """List every location a table source may come from, highest priority first."""
    table = Path(table)
    name = table.stem
    tables_file = f"{name}{TABLE_SOURCE_SUFFIX}"
    target_file = f"{target_name}_{tables_file}"

    candidates = [
        Path(mission_defs) / "tables" / target_file,
        Path(mission_source_dir) / "tables" / target_file,
        Path(mission_defs) / "tables" / tables_file,
        Path(mission_source_dir) / "tables" / tables_file,
    ]
    if table.is_absolute():
        candidates.append(table)
    else:
        candidates.append(Path(current_source_dir) / table)
    return candidates


def resolve_table_source(
    table: Union[str, Path],
    target_name: str,
    mission_defs: Path,
    mission_source_dir: Path,
    current_source_dir: Path,
) -> Path:
    """
    Pick the source file for a table on a given target.

    Args:
        table: Table source as named by the application recipe
        target_name: Logical Target the image is built for
        mission_defs: Mission definitions directory
        mission_source_dir: Mission source directory
        current_source_dir: Directory of the recipe declaring the table

    Returns:
        First existing candidate

    Raises:
        TableSourceError: If none of the candidates exists
    """
    candidates = table_source_candidates(
        table, target_name, mission_defs, mission_source_dir, current_source_dir
    )
    for candidate in candidates:
        if candidate.is_file():
            logger.info(f"NOTE: Selected {candidate} as source for {Path(table).stem}")
            return candidate

    raise TableSourceError(f"ERROR: No source file for table {Path(table).stem}", candidates[-1])


def add_cfe_tables(builder: "DirectoryBuilder", app_name: str, *table_sources: Union[str, Path]) -> BuildTarget:
    """Declare table images for an application on each of its install targets.

    Every table source is resolved for every destination before any command is
    declared, so a missing table fails the build before compilation starts.

    Args:
        builder: Builder of the directory declaring the tables
        app_name: Owning application
        table_sources: Table source files (usually relative to the recipe)

    Returns:
        The <app>_tables umbrella target
    """
    context = builder.context
    destinations = context.app_installation.destinations

    # Table commands run outside the normal target flags, so capture them now
    cflags = builder.get_current_cflags()
    converter = context.mission_binary_dir / "bin" / TABLE_TOOL

    resolved = []
    for table in table_sources:
        for destination in destinations:
            source = resolve_table_source(
                table,
                destination,
                context.mission_defs,
                context.mission_source_dir,
                builder.source_dir,
            )
            resolved.append((Path(table).stem, destination, source))

    outputs = []
    for name, destination, source in resolved:
        table_dir = builder.binary_dir / f"tables_{destination}"
        table_dir.mkdir(parents=True, exist_ok=True)

        object_file = f"{name}.o"
        image = table_dir / f"{name}{TABLE_IMAGE_SUFFIX}"
        builder.graph.add_custom_command(
            CustomCommand(
                outputs=[image],
                commands=[
                    [context.toolchain.c_compiler, *cflags, "-c", "-o", object_file, str(source)],
                    [str(converter), object_file],
                ],
                working_dir=table_dir,
                depends=[source, converter],
                comment=f"Building table {name} for {destination}",
            )
        )
        builder.install_files(image, destination=f"{destination}/{context.staging_subdir}")
        outputs.append(image)

    umbrella = builder.add_custom_target(f"{app_name}{TABLES_TARGET_SUFFIX}", file_depends=outputs)
    if builder.graph.has_target(app_name):
        builder.graph.get_target(app_name).add_dependency(umbrella.name)
    return umbrella
