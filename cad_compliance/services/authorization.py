"""
Three-legged OAuth handshake producing the claims for a browser session.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from cad_compliance.clients.onshape_auth import OAuthStateEncoder, OnshapeOAuthClient
from cad_compliance.core.errors import AccessDenied, ValidationError
from cad_compliance.models.session import SessionCredential
from cad_compliance.schemas.auth import CorrelationData, UserIdentity

logger = logging.getLogger(__name__)


class AuthorizationService:
    """Start the consent redirect and turn its callback into session claims."""

    def __init__(
        self, oauth_client: OnshapeOAuthClient, state_encoder: OAuthStateEncoder
    ) -> None:
        self._oauth = oauth_client
        self._states = state_encoder

    def begin_authorization(self, correlation: CorrelationData) -> str:
        """Return the provider URL the browser should be sent to."""
        state = self._states.encode(correlation)
        return self._oauth.build_authorization_url(state=state)

    async def complete_authorization(
        self,
        code: Optional[str],
        state: Optional[str],
        *,
        error: Optional[str] = None,
    ) -> Tuple[SessionCredential, CorrelationData]:
        """
        Exchange the grant code and read the user's profile.

        The returned claims are unsigned; the caller seals them with the
        session codec. A state value that cannot be decoded yields empty
        correlation data rather than failing the sign-in.
        """
        if error:
            logger.info("OAuth grant denied by provider: %s", error)
            raise AccessDenied()
        if not code:
            raise ValidationError("Missing authorization code.")

        grant = await self._oauth.exchange_authorization_code(code)
        profile = await self._oauth.fetch_user_profile(grant.access_token)

        correlation = self._states.decode(state)
        if correlation is None:
            logger.info("OAuth state missing or unreadable; continuing without context")
            correlation = CorrelationData()

        credential = SessionCredential(
            subject=profile.id or profile.userid,
            display_name=profile.display_name,
            name=profile.name,
            username=profile.username,
            email=profile.email,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
        )
        return credential, correlation


def derive_identity(credential: SessionCredential) -> UserIdentity:
    """Public identity with fallbacks for fields the provider left out."""
    name = (
        credential.display_name
        or credential.name
        or credential.username
        or credential.email
        or credential.subject
    )
    return UserIdentity(
        name=name,
        email=credential.email or None,
        id=credential.subject or None,
    )


__all__ = ["AuthorizationService", "derive_identity"]
