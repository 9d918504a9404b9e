"""Expose dependency helpers for FastAPI routers."""

from .auth import SessionDependency, require_session
from .clients import (
    get_authorization_service,
    get_compliance_service,
    get_export_poller,
    get_http_client,
    get_oauth_state_encoder,
    get_onshape_api_client,
    get_onshape_oauth_client,
    get_rule_evaluator,
    get_session_codec,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SessionDependency",
    "SettingsDependency",
    "get_app_settings",
    "get_authorization_service",
    "get_compliance_service",
    "get_export_poller",
    "get_http_client",
    "get_oauth_state_encoder",
    "get_onshape_api_client",
    "get_onshape_oauth_client",
    "get_rule_evaluator",
    "get_session_codec",
    "require_session",
]
