import pytest

from test_qtree import TestResult


@pytest.fixture
def r(request):
    """Result holder passed to each harness-style test function."""
    return TestResult(request.node.name)
