"""Staging installer.

Copies finished artifacts into the per-target staging tree according to the
install rules of a BuildGraph:

    <staging_root>/cpu1/core-cpu1
    <staging_root>/cpu1/cf/sample_app.so
    <staging_root>/cpu1/cf/sample_app_tbl.tbl
"""

import logging
import shutil
from pathlib import Path
from typing import List

from ..errors import ConfigurationError, MissingPathError
from .graph import BuildGraph, InstallRule

logger = logging.getLogger(__name__)


class StagingInstaller:
    """Installs artifacts of an executed BuildGraph."""

    @staticmethod
    def artifact_for(graph: BuildGraph, rule: InstallRule) -> Path:
        """File an install rule copies."""
        if rule.kind == "target":
            return graph.get_target(rule.source).output_path
        if rule.kind == "file":
            return Path(rule.source)
        raise ConfigurationError(f"Unknown install rule kind: {rule.kind}")

    def install(self, graph: BuildGraph, staging_root: Path) -> List[Path]:
        """
        Copy every artifact under its destination directory.

        Args:
            graph: Executed build graph
            staging_root: Root of the staging tree

        Returns:
            List of installed file paths

        Raises:
            MissingPathError: If an artifact was not built
        """
        staging_root = Path(staging_root)
        installed = []

        for rule in graph.install_rules:
            artifact = self.artifact_for(graph, rule)
            if not artifact.is_file():
                raise MissingPathError(f"Cannot install {artifact}: file was not built", artifact)

            destination_dir = staging_root / rule.destination
            destination_dir.mkdir(parents=True, exist_ok=True)
            destination = destination_dir / artifact.name
            shutil.copy2(artifact, destination)
            logger.debug(f"Installed {artifact} -> {destination}")
            installed.append(destination)

        logger.info(f"Installed {len(installed)} files to {staging_root}")
        return installed
