"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Collaborators that talk to Onshape are resolved through ``Depends`` chains
rooted at :func:`get_http_client`, so overriding that one factory redirects
every outbound call.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

import httpx
from fastapi import Depends, Request

from cad_compliance.clients import OAuthStateEncoder, OnshapeApiClient, OnshapeOAuthClient
from cad_compliance.core.config import AppSettings
from cad_compliance.dependencies.config import get_app_settings
from cad_compliance.services import (
    AuthorizationService,
    ComplianceService,
    ExportJobPoller,
    NullRuleEvaluator,
    RuleEvaluator,
    SessionCodec,
)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Return the process-wide HTTP client opened by the application lifespan."""
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise RuntimeError("Outbound HTTP client is not initialised.")
    return client


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    return OAuthStateEncoder()


@lru_cache()
def get_rule_evaluator() -> RuleEvaluator:
    """Provide the rule evaluator used after each export."""
    return NullRuleEvaluator()


def get_session_codec(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> SessionCodec:
    """Provide the codec sealing session envelopes with the configured secret."""
    return SessionCodec(
        secret=settings.security.session_secret,
        ttl_seconds=settings.security.session_ttl_seconds,
    )


def get_onshape_oauth_client(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> OnshapeOAuthClient:
    return OnshapeOAuthClient(settings.onshape, http_client=http_client)


def get_onshape_api_client(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> OnshapeApiClient:
    return OnshapeApiClient(base_url=settings.onshape.api_base_url, http_client=http_client)


def get_export_poller(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    api_client: Annotated[OnshapeApiClient, Depends(get_onshape_api_client)],
) -> ExportJobPoller:
    """Build a poller honouring the configured attempt budget."""
    return ExportJobPoller(api_client, max_attempts=settings.export.max_poll_attempts)


def get_authorization_service(
    oauth_client: Annotated[OnshapeOAuthClient, Depends(get_onshape_oauth_client)],
    state_encoder: Annotated[OAuthStateEncoder, Depends(get_oauth_state_encoder)],
) -> AuthorizationService:
    return AuthorizationService(oauth_client, state_encoder)


def get_compliance_service(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    poller: Annotated[ExportJobPoller, Depends(get_export_poller)],
    evaluator: Annotated[RuleEvaluator, Depends(get_rule_evaluator)],
) -> ComplianceService:
    return ComplianceService(poller, evaluator, settings.export)


__all__ = [
    "get_authorization_service",
    "get_compliance_service",
    "get_export_poller",
    "get_http_client",
    "get_oauth_state_encoder",
    "get_onshape_api_client",
    "get_onshape_oauth_client",
    "get_rule_evaluator",
    "get_session_codec",
]
