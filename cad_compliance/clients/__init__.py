"""Expose constructed client wrappers."""

from .onshape_api import OnshapeApiClient
from .onshape_auth import OAuthStateEncoder, OAuthTokenExchangeError, OnshapeOAuthClient

__all__ = [
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "OnshapeApiClient",
    "OnshapeOAuthClient",
]
