"""
Pytest markers and collection rules for the lending service tests.

Markers are registered here and applied by location so ``-m unit`` or
``-m "not concurrency"`` select consistent subsets of the suite.
"""

import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line(
        "markers", "concurrency: mark test as exercising concurrent access"
    )
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL (TEST_POSTGRES_URL)"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test items during collection."""
    for item in items:
        # Add markers based on test file location
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)

        if "integration" in path:
            item.add_marker(pytest.mark.integration)

        if "postgres" in path:
            item.add_marker(pytest.mark.postgres)

        if "concurrency" in path or "concurrent" in item.name:
            item.add_marker(pytest.mark.concurrency)
            item.add_marker(pytest.mark.slow)
