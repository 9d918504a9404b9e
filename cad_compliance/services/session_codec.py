"""Signed, time-limited session envelopes built on a derived Fernet key."""

from __future__ import annotations

import base64
import binascii
import hashlib
import time
from typing import Callable

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from cad_compliance.core.config import MAX_SESSION_TTL_SECONDS
from cad_compliance.core.errors import (
    ExpiredCredential,
    InvalidCredential,
    MalformedCredential,
)
from cad_compliance.models.session import SessionCredential

# version byte + timestamp + IV + one AES block + HMAC
_MIN_TOKEN_BYTES = 1 + 8 + 16 + 16 + 32
_FERNET_VERSION = 0x80


def _derive_fernet(secret: str) -> Fernet:
    if not secret:
        raise ValueError("Session signing secret must be provided.")
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def _restore_padding(envelope: str) -> str:
    return envelope + "=" * (-len(envelope) % 4)


def _check_structure(envelope: str) -> None:
    try:
        raw = base64.urlsafe_b64decode(envelope.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
        raise MalformedCredential() from exc
    if len(raw) < _MIN_TOKEN_BYTES or raw[0] != _FERNET_VERSION:
        raise MalformedCredential()


def issue(
    claims: SessionCredential,
    secret: str,
    ttl: int = MAX_SESSION_TTL_SECONDS,
    *,
    now: float | None = None,
) -> str:
    """Seal ``claims`` into an envelope that expires ``ttl`` seconds from now."""
    if ttl <= 0 or ttl > MAX_SESSION_TTL_SECONDS:
        raise ValueError(
            f"Session TTL must be between 1 and {MAX_SESSION_TTL_SECONDS} seconds."
        )
    issued_at = int(time.time() if now is None else now)
    stamped = claims.model_copy(
        update={"issued_at": issued_at, "expires_at": issued_at + ttl}
    )
    token = _derive_fernet(secret).encrypt(stamped.model_dump_json().encode("utf-8"))
    # Unpadded so the value is a bare cookie token.
    return token.decode("ascii").rstrip("=")


def verify(envelope: str, secret: str, *, now: float | None = None) -> SessionCredential:
    """
    Open an envelope produced by :func:`issue`.

    Raises ``MalformedCredential`` when the envelope cannot be decoded,
    ``InvalidCredential`` when the signature does not match ``secret`` and
    ``ExpiredCredential`` once the embedded expiry has passed.
    """
    envelope = _restore_padding(envelope)
    _check_structure(envelope)
    try:
        plaintext = _derive_fernet(secret).decrypt(envelope.encode("ascii"))
    except InvalidToken as exc:
        raise InvalidCredential() from exc

    try:
        claims = SessionCredential.model_validate_json(plaintext)
    except ValidationError as exc:
        raise MalformedCredential() from exc

    current = time.time() if now is None else now
    if current >= claims.expires_at:
        raise ExpiredCredential()
    return claims


class SessionCodec:
    """Issue and verify session envelopes with a fixed secret and lifetime."""

    def __init__(
        self,
        *,
        secret: str,
        ttl_seconds: int = MAX_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("Session signing secret must be provided.")
        self._secret = secret
        self._ttl = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def issue(self, claims: SessionCredential) -> str:
        return issue(claims, self._secret, self._ttl, now=self._clock())

    def verify(self, envelope: str) -> SessionCredential:
        return verify(envelope, self._secret, now=self._clock())


__all__ = ["SessionCodec", "issue", "verify"]
