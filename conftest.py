"""
Pytest configuration for the fswbuild test suite.

This configuration enables the --full flag to run integration tests, which
invoke the host C compiler.
"""

import pytest


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--full",
        action="store_true",
        default=False,
        help="Run full test suite including integration tests (slow)",
    )


def pytest_configure(config):
    """Register markers and adjust selection based on command-line options."""
    config.addinivalue_line("markers", "integration: needs a host C toolchain (run with --full)")
    if config.getoption("--full"):
        # Remove the default marker expression that excludes integration tests
        markexpr = config.getoption("-m", "")
        if markexpr == "not integration":
            config.option.markexpr = ""


def pytest_collection_modifyitems(config, items):
    if config.getoption("--full"):
        return
    skip_integration = pytest.mark.skip(reason="integration test: run with --full")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
