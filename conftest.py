"""
Root-level conftest for pytest configuration
"""
from sivic.logging_config import configure_logging


def pytest_configure(config):
    """Configure pytest"""
    # Register the markers used across the suite
    config.addinivalue_line("markers", "integration: tests that exercise the HTTP API")

    # Set log format for pytest
    configure_logging("INFO")
