"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog

# Re-export all fixtures from fixtures modules
from tests.fixtures.domain_objects import *  # noqa: F401, F403
from tests.fixtures.stores import *  # noqa: F401, F403

from payroll_admin.adapters.factory import get_document_store, get_identity_provider
from payroll_admin.config import get_settings


def _clear_caches() -> None:
    get_settings.cache_clear()
    get_identity_provider.cache_clear()
    get_document_store.cache_clear()


@pytest.fixture(autouse=True)
def isolated_process_state() -> Iterator[None]:
    """Give each test fresh settings, adapters and logging configuration."""
    _clear_caches()
    yield
    _clear_caches()
    structlog.reset_defaults()
