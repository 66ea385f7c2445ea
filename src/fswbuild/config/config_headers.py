"""Generated configuration wrapper headers.

The OS layer and core executive include fixed header names (osconfig.h,
cfe_msgids.h, cfe_platform_cfg.h). The mission supplies the real content as
<profile>_<suffix> files in its definitions directory. This module writes small
wrapper headers that forward to the selected mission file:

    /* osconfig.h: generated wrapper, do not edit */
    #ifndef FSWBUILD_OSCONFIG_H_WRAPPER
    #define FSWBUILD_OSCONFIG_H_WRAPPER
    #include "/mission/defs/default_osconfig.h"
    #endif

Wrappers are deterministic and only rewritten when their content changes, so
unchanged configuration never triggers a rebuild.
"""

import logging
import re
from pathlib import Path
from typing import List, Sequence

from ..errors import MissingPathError

logger = logging.getLogger(__name__)


def config_candidates(file_suffix: str, profiles: Sequence[str], search_dirs: Sequence[Path]) -> List[Path]:
    """List candidate source files in priority order (least specific first)."""
    candidates = []
    for profile in profiles:
        for search_dir in search_dirs:
            candidates.append(Path(search_dir) / f"{profile}_{file_suffix}")
    return candidates


def _guard_name(output_file: Path) -> str:
    return "FSWBUILD_" + re.sub(r"[^A-Za-z0-9]", "_", output_file.name).upper() + "_WRAPPER"


def generate_config_includefile(
    output_file: Path,
    file_suffix: str,
    profiles: Sequence[str],
    search_dirs: Sequence[Path],
) -> Path:
    """Write a wrapper header forwarding to the most specific profile file.

    Args:
        output_file: Wrapper header to generate
        file_suffix: Suffix of mission files (e.g. 'osconfig.h')
        profiles: Profile names, least specific first (e.g. ['default', 'cpu1'])
        search_dirs: Directories searched for <profile>_<suffix>

    Returns:
        Path of the wrapper header

    Raises:
        MissingPathError: If no candidate exists for any profile
    """
    output_file = Path(output_file)
    candidates = config_candidates(file_suffix, profiles, search_dirs)
    existing = [c for c in candidates if c.is_file()]

    if not existing:
        searched = ", ".join(str(c) for c in candidates)
        raise MissingPathError(
            f"No source for {output_file.name} found (searched: {searched})",
            candidates[-1] if candidates else output_file,
        )

    selected = existing[-1].resolve()
    guard = _guard_name(output_file)
    content = (
        f"/* {output_file.name}: generated wrapper, do not edit */\n"
        f"#ifndef {guard}\n"
        f"#define {guard}\n"
        f'#include "{selected.as_posix()}"\n'
        f"#endif\n"
    )

    if output_file.is_file() and output_file.read_text(encoding="utf-8") == content:
        logger.debug(f"{output_file} is up to date")
        return output_file

    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(content, encoding="utf-8")
    logger.debug(f"Generated {output_file} -> {selected}")
    return output_file
