"""Shared test fixtures for the chunk codec tests."""

from __future__ import annotations

import logging

import pytest

from sampler_chunks.config import ReaderSettings
from sampler_chunks.notifier import Notifier


@pytest.fixture
def notifier() -> Notifier:
    """Provide a fresh Notifier logging to a test logger."""
    return Notifier(logging.getLogger("sampler_chunks.tests"))


@pytest.fixture
def settings() -> ReaderSettings:
    """Provide the default reader settings."""
    return ReaderSettings()


@pytest.fixture
def lenient_settings() -> ReaderSettings:
    """Reader settings with checksum verification switched off."""
    return ReaderSettings(verify_checksums=False)
