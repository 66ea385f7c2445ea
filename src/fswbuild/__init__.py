"""
fswbuild - per-architecture build orchestration for cFS flight software.
"""

__version__ = "0.1.0"

from .errors import ConfigurationError, FswBuildError, MissingPathError, UnsupportedEnvironmentError

__all__ = [
    "__version__",
    "ConfigurationError",
    "FswBuildError",
    "MissingPathError",
    "UnsupportedEnvironmentError",
]
