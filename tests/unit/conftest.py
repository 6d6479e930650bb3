"""Unit-test collection hooks."""

import pytest


def pytest_collection_modifyitems(config, items):
    """Tag everything collected under tests/unit with the ``unit`` marker."""
    for item in items:
        if "unit" in item.path.parts:
            item.add_marker(pytest.mark.unit)
