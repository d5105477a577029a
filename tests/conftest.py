"""
Pytest configuration and shared fixtures for docanchor tests.

This conftest.py:
1. Adds project root to sys.path for imports
2. Provides commonly-used fixtures via pytest's autodiscovery
3. Configures pytest markers and settings
"""

import sys
from pathlib import Path

import pytest

# =============================================================================
# Path Setup - Must happen before any local imports
# =============================================================================

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_TESTS_ROOT = Path(__file__).resolve().parent

for _path in [str(_PROJECT_ROOT), str(_TESTS_ROOT)]:
    if _path not in sys.path:
        sys.path.insert(0, _path)

import importlib

_common = importlib.import_module("fixtures.common")

make_environment = _common.make_environment
make_pdf = _common.make_pdf
make_docx = _common.make_docx
make_text = _common.make_text


# =============================================================================
# Pytest Fixtures (autodiscovered by pytest)
# =============================================================================

@pytest.fixture
def env():
    """In-memory ledger, store and issuer wired together."""
    return make_environment()


@pytest.fixture
def sample_pdf():
    return make_pdf("Transcript")


@pytest.fixture
def sample_docx():
    return make_docx("Certificate of completion")


@pytest.fixture
def sample_text():
    return make_text()


@pytest.fixture(autouse=True)
def _clean_docanchor_env(monkeypatch):
    """Keep a developer's DOCANCHOR_* variables out of the tests."""
    import os
    for name in list(os.environ):
        if name.startswith("DOCANCHOR_"):
            monkeypatch.delenv(name, raising=False)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


# =============================================================================
# Test Helpers (available to all tests via fixtures)
# =============================================================================

@pytest.fixture
def assert_check_passed():
    """Helper to assert a specific gate passed in a VerificationOutcome."""
    def _assert(outcome, check_id: str):
        checks = [c for c in outcome.checks if c.check_id == check_id]
        assert len(checks) >= 1, f"Expected check '{check_id}' not found in {[c.check_id for c in outcome.checks]}"
        assert checks[-1].ok, f"Check '{check_id}' failed: {checks[-1].message}"
    return _assert


@pytest.fixture
def assert_check_failed():
    """Helper to assert a specific gate failed in a VerificationOutcome."""
    def _assert(outcome, check_id: str):
        checks = [c for c in outcome.checks if c.check_id == check_id]
        assert len(checks) >= 1, f"Expected check '{check_id}' not found in {[c.check_id for c in outcome.checks]}"
        assert not checks[-1].ok, f"Check '{check_id}' unexpectedly passed"
    return _assert
