"""Fatal error taxonomy for fswbuild.

Every check in the orchestration layer is fatal: a failed check raises one of
these exceptions and the build stops. There is no retry and no partial build.

- ConfigurationError: a required variable or selector is missing or cannot be
  resolved.
- MissingPathError: an expected directory or source file does not exist.
- UnsupportedEnvironmentError: the host system is not recognized for a native
  build.
"""

from pathlib import Path
from typing import Optional, Union


class FswBuildError(Exception):
    """Base class for all fatal build errors."""

    pass


class ConfigurationError(FswBuildError):
    """Raised when a required configuration value is missing or invalid."""

    pass


class MissingPathError(FswBuildError):
    """Raised when an expected file or directory does not exist.

    Attributes:
        path: The path that was expected to exist (if known)
    """

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class UnsupportedEnvironmentError(FswBuildError):
    """Raised when building natively on a host system that is not recognized."""

    pass
