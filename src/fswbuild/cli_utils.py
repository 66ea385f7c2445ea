"""CLI utility functions for fswbuild.

This module provides common utilities used across CLI commands including:
- Logging setup
- Error handling and formatting
- Path validation
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False) -> None:
    """Setup console logging for the CLI.

    Args:
        verbose: Log DEBUG records with timestamps and logger names
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Replace handlers from a previous call so records are not duplicated
    for handler in list(logger.handlers):
        if getattr(handler, "_fswbuild_console", False):
            logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter(VERBOSE_LOG_FORMAT if verbose else LOG_FORMAT))
    console_handler._fswbuild_console = True  # type: ignore[attr-defined]
    logger.addHandler(console_handler)


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Build failed")
            message: Error message details
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        print()
        print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_permission_error(error: PermissionError) -> None:
        """Handle PermissionError with standard formatting.

        Args:
            error: The PermissionError to handle
        """
        ErrorFormatter.print_error("Error: Permission denied", str(error))
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Build interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(1)


class PathValidator:
    """Validates mission paths given on the command line."""

    @staticmethod
    def _fail(message: str) -> None:
        print(f"{ErrorFormatter.RED}✗ Error: {message}{ErrorFormatter.RESET}")
        sys.exit(2)

    @staticmethod
    def validate_mission_binary_dir(binary_dir: Path) -> None:
        """Validate that the mission binary directory exists and is a directory.

        Args:
            binary_dir: Path to validate

        Raises:
            SystemExit: If path doesn't exist or isn't a directory
        """
        if not binary_dir.exists():
            PathValidator._fail(f"Path does not exist: {binary_dir}")
        if not binary_dir.is_dir():
            PathValidator._fail(f"Path is not a directory: {binary_dir}")

    @staticmethod
    def validate_optional_file(path: Optional[Path]) -> None:
        """Validate that an optional file argument, when given, is a file."""
        if path is not None and not path.is_file():
            PathValidator._fail(f"File does not exist: {path}")
