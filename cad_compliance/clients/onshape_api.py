"""Onshape document API client wrapper."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Dict

import httpx

from cad_compliance.core.errors import UpstreamError

logger = logging.getLogger(__name__)

UNREACHABLE_MESSAGE = "Could not reach Onshape."


class OnshapeApiClient:
    """Thin async wrapper over the translation and external-data endpoints.

    Transport failures (refused connections, timeouts, broken streams) are
    raised as ``UpstreamError`` with a 502 status.
    """

    def __init__(self, *, base_url: str, http_client: httpx.AsyncClient) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_client

    @property
    def base_url(self) -> str:
        return self._base_url

    def url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    @staticmethod
    def _auth_headers(access_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def _send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response:
        try:
            return await self._http.send(request, stream=stream)
        except httpx.HTTPError as exc:
            logger.warning(
                "Onshape %s %s failed: %s",
                request.method,
                request.url.path,
                exc.__class__.__name__,
            )
            raise UpstreamError(
                UNREACHABLE_MESSAGE, status_code=HTTPStatus.BAD_GATEWAY
            ) from exc

    async def start_job(
        self, path: str, body: Dict[str, Any], *, access_token: str
    ) -> httpx.Response:
        """POST a translation/export request; the caller inspects the status."""
        headers = {
            **self._auth_headers(access_token),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        request = self._http.build_request("POST", self.url(path), json=body, headers=headers)
        return await self._send(request)

    async def get_translation(self, job_id: str, *, access_token: str) -> httpx.Response:
        request = self._http.build_request(
            "GET",
            self.url(f"translations/{job_id}"),
            headers={**self._auth_headers(access_token), "Accept": "application/json"},
        )
        return await self._send(request)

    def external_data_url(self, document_id: str, external_id: str) -> str:
        return self.url(f"documents/d/{document_id}/externaldata/{external_id}")

    async def open_stream(self, url: str, *, access_token: str) -> httpx.Response:
        """
        Open a streamed GET against ``url``.

        The returned response body has not been read; the caller must close it.
        Non-success responses are read, closed and raised as ``UpstreamError``.
        """
        request = self._http.build_request("GET", url, headers=self._auth_headers(access_token))
        response = await self._send(request, stream=True)
        if response.is_success:
            return response
        try:
            body = (await response.aread()).decode("utf-8", errors="replace")
        except httpx.HTTPError:
            body = ""
        finally:
            await response.aclose()
        logger.warning("Artifact download failed with status %s", response.status_code)
        raise UpstreamError(body or response.reason_phrase, status_code=response.status_code)

    async def get_json(self, path: str, *, access_token: str, params=None) -> httpx.Response:
        request = self._http.build_request(
            "GET",
            self.url(path),
            params=params,
            headers={**self._auth_headers(access_token), "Accept": "application/json"},
        )
        return await self._send(request)


__all__ = ["OnshapeApiClient", "UNREACHABLE_MESSAGE"]
