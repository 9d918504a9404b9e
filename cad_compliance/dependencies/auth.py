"""Session credential extraction for authenticated routes."""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Request

from cad_compliance.core.config import AppSettings
from cad_compliance.core.errors import MissingCredential
from cad_compliance.dependencies.clients import get_session_codec
from cad_compliance.dependencies.config import get_app_settings
from cad_compliance.models.session import SessionCredential
from cad_compliance.services import SessionCodec


def _read_envelope(request: Request, cookie_name: str) -> Optional[str]:
    """Cookie first, then an ``Authorization: Bearer`` header."""
    envelope = request.cookies.get(cookie_name)
    if envelope:
        return envelope
    scheme, _, value = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def require_session(
    request: Request,
    codec: Annotated[SessionCodec, Depends(get_session_codec)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> SessionCredential:
    """Verify the presented envelope or raise an ``AuthError``."""
    envelope = _read_envelope(request, settings.security.cookie_name)
    if not envelope:
        raise MissingCredential()
    return codec.verify(envelope)


SessionDependency = Depends(require_session)

__all__ = ["SessionDependency", "require_session"]
