"""
FastAPI routes for the CAD compliance gateway.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, AsyncIterator, Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse, StreamingResponse

from cad_compliance.clients import OAuthTokenExchangeError
from cad_compliance.core.config import AppSettings
from cad_compliance.core.errors import UpstreamError
from cad_compliance.dependencies import (
    SessionDependency,
    get_app_settings,
    get_authorization_service,
    get_compliance_service,
    get_onshape_api_client,
    get_session_codec,
)
from cad_compliance.models.session import SessionCredential
from cad_compliance.schemas import (
    CheckModelRequest,
    CheckModelResponse,
    CorrelationData,
    UserResponse,
)
from cad_compliance.services import derive_identity
from cad_compliance.services.export_jobs import ASSEMBLY_STEP_PROFILE, ExportTarget

router = APIRouter()
logger = logging.getLogger(__name__)

_GENERIC_MEDIA_TYPES = {"application/octet-stream", "binary/octet-stream"}


async def _relay_stream(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the upstream body, closing it however the download ends."""
    try:
        async for chunk in upstream.aiter_bytes():
            yield chunk
    finally:
        await upstream.aclose()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/oauth/signin")
async def start_oauth_signin(
    service: Annotated[Any, Depends(get_authorization_service)],
    document_id: Optional[str] = Query(None, alias="documentId"),
    workspace_id: Optional[str] = Query(None, alias="workspaceId"),
    element_id: Optional[str] = Query(None, alias="elementId"),
) -> RedirectResponse:
    """Send the browser to the Onshape consent screen, remembering its document."""
    correlation = CorrelationData(
        document_id=document_id,
        workspace_id=workspace_id,
        element_id=element_id,
    )
    authorization_url = service.begin_authorization(correlation)
    return RedirectResponse(url=authorization_url, status_code=HTTPStatus.FOUND)


@router.get("/oauth/callback")
async def handle_oauth_callback(
    service: Annotated[Any, Depends(get_authorization_service)],
    codec: Annotated[Any, Depends(get_session_codec)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    code: Optional[str] = Query(None, description="Grant code returned by Onshape."),
    state: Optional[str] = Query(None, description="State issued at sign-in."),
    error: Optional[str] = Query(None, description="Set by Onshape when consent is refused."),
) -> RedirectResponse:
    """Complete the OAuth exchange, set the session cookie and resume the panel."""
    try:
        credential, correlation = await service.complete_authorization(
            code, state, error=error
        )
    except OAuthTokenExchangeError as exc:
        logger.warning("OAuth exchange with Onshape failed: %s", exc)
        raise UpstreamError(
            "Failed to exchange authorization code.",
            status_code=HTTPStatus.BAD_GATEWAY,
        ) from exc

    envelope = codec.issue(credential)
    base_url = settings.frontend_base_url or "/"
    separator = "&" if "?" in base_url else "?"
    response = RedirectResponse(
        url=f"{base_url}{separator}{urlencode(correlation.as_query())}",
        status_code=HTTPStatus.FOUND,
    )
    response.set_cookie(
        key=settings.security.cookie_name,
        value=envelope,
        max_age=codec.ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
    )
    logger.info("Issued session for Onshape user %s", credential.subject)
    return response


@router.get("/user", response_model=UserResponse)
async def get_current_user(
    credential: SessionCredential = SessionDependency,
) -> UserResponse:
    """Return the signed-in user's display identity."""
    return UserResponse(user=derive_identity(credential))


@router.post("/logout")
async def logout(
    response: Response,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> dict:
    """Tell the browser to drop its session cookie."""
    response.delete_cookie(
        key=settings.security.cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
    )
    return {"success": True}


@router.post("/export/check-model")
async def check_model(
    payload: CheckModelRequest,
    service: Annotated[Any, Depends(get_compliance_service)],
    credential: SessionCredential = SessionDependency,
) -> JSONResponse:
    """Export the element to STEP and evaluate the enabled rules against it."""
    result: CheckModelResponse = await service.check_model(
        request=payload, credential=credential
    )
    return JSONResponse(content=result.model_dump(mode="json", by_alias=True))


@router.get("/export/download")
async def download_step(
    service: Annotated[Any, Depends(get_compliance_service)],
    api_client: Annotated[Any, Depends(get_onshape_api_client)],
    credential: SessionCredential = SessionDependency,
    doc_id: Optional[str] = Query(None, alias="docId"),
    work_id: Optional[str] = Query(None, alias="workId"),
    el_id: Optional[str] = Query(None, alias="elId"),
    wvm: str = Query("w", pattern="^[wvm]$"),
) -> StreamingResponse:
    """Run an assembly STEP export and stream the artifact to the browser."""
    target = ExportTarget.from_request(
        doc_id, work_id, el_id, wvm=wvm, names=("docId", "workId", "elId")
    )
    locator = await service.export_step(target=target, credential=credential)
    upstream = await api_client.open_stream(locator.url, access_token=credential.access_token)

    declared = upstream.headers.get("content-type", "").split(";")[0].strip()
    media_type = (
        declared
        if declared and declared not in _GENERIC_MEDIA_TYPES
        else ASSEMBLY_STEP_PROFILE.media_type
    )
    return StreamingResponse(
        _relay_stream(upstream),
        media_type=media_type,
        headers={
            "Content-Disposition": (
                f'attachment; filename="{ASSEMBLY_STEP_PROFILE.filename}"'
            )
        },
    )


@router.get("/onshape/{api_path:path}")
async def proxy_onshape_get(
    api_path: str,
    request: Request,
    api_client: Annotated[Any, Depends(get_onshape_api_client)],
    credential: SessionCredential = SessionDependency,
) -> JSONResponse:
    """Relay a read-only document API call with the caller's access token."""
    response = await api_client.get_json(
        api_path,
        access_token=credential.access_token,
        params=list(request.query_params.multi_items()),
    )
    try:
        content = response.json()
    except ValueError as exc:
        raise UpstreamError(
            response.text or "Unreadable response from Onshape.",
            status_code=(
                HTTPStatus.BAD_GATEWAY if response.is_success else response.status_code
            ),
        ) from exc
    return JSONResponse(content=content, status_code=response.status_code)


__all__ = ["router"]
