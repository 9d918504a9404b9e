"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy

import pytest

from cad_compliance.models.session import SessionCredential
from cad_compliance.services.session_codec import SessionCodec


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def settings():
    """Copy of the app settings with instant polling and a small budget."""
    from cad_compliance.core.config import get_settings

    test_settings = copy.deepcopy(get_settings())
    test_settings.frontend_base_url = None
    test_settings.export.translation_poll_interval = 0.0
    test_settings.export.assembly_poll_interval = 0.0
    test_settings.export.max_poll_attempts = 3
    return test_settings


@pytest.fixture
def envelope_for(settings):
    """Seal credential claims with the secret the app verifies against."""

    def _issue(**claims) -> str:
        claims.setdefault("subject", "user-1")
        claims.setdefault("access_token", "access-1")
        codec = SessionCodec(secret=settings.security.session_secret)
        return codec.issue(SessionCredential(**claims))

    return _issue
