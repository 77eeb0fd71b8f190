"""
Pytest fixtures for the userop bundler tests.
"""
import pytest
from unittest.mock import MagicMock

from userop_bundler.classifier import ErrorClassifier
from userop_bundler.failure_log import FailureLog
from tests.test_helpers import TEST_OPERATOR, TEST_TX_HASH, make_receipt


@pytest.fixture
def failure_log(tmp_path):
    """Failure log in a temporary directory with a fixed clock"""
    return FailureLog(tmp_path / "failures.log", clock=lambda: "2024-01-01T00:00:00.000Z")


@pytest.fixture
def classifier(failure_log):
    return ErrorClassifier(failure_log)


@pytest.fixture
def mock_submitter():
    """Submitter double that confirms every batch with an empty receipt"""
    submitter = MagicMock()
    submitter.address = TEST_OPERATOR
    submitter.send.return_value = TEST_TX_HASH
    submitter.wait.return_value = make_receipt([])
    return submitter
