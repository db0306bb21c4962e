"""
FastAPI routes for the dataset access provisioner.
"""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import Annotated, Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from app.core.errors import DeploymentError, ValidationError
from app.dependencies import (
    get_app_settings,
    get_credential_manager,
    get_provisioning_orchestrator,
)
from app.schemas import (
    GrantAccessRequest,
    GrantAccessResponse,
    OAuthCallbackResponse,
    RevokeRequest,
)

router = APIRouter()
logger = logging.getLogger(__name__)

SERVICE_VERSION = "1.0.0"


@router.get("/", status_code=HTTPStatus.OK)
async def index() -> dict:
    return {
        "message": "GBQ Integration API",
        "version": SERVICE_VERSION,
        "authUrl": "/auth",
    }


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth")
async def start_google_oauth_flow(
    credential_manager: Annotated[Any, Depends(get_credential_manager)],
) -> RedirectResponse:
    """Redirect the browser to Google's consent screen."""
    return RedirectResponse(
        url=credential_manager.authorization_url(),
        status_code=HTTPStatus.TEMPORARY_REDIRECT,
    )


@router.get("/oauth2callback", status_code=HTTPStatus.OK)
async def handle_google_oauth_callback(
    request: Request,
    credential_manager: Annotated[Any, Depends(get_credential_manager)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: str = Query("", description="Authorization code returned by Google."),
) -> Response:
    """Exchange the code for API clients; forward browsers to the client app.

    Authorization codes are single-use, so browser requests are redirected
    with the code untouched and the client app completes the exchange with
    ``Accept: application/json``.
    """
    if not code:
        raise ValidationError("Authorization code is required")

    accept_header = request.headers.get("accept", "")
    if "application/json" not in accept_header.lower():
        target = f"{settings.frontend_callback_base}/callback?{urlencode({'code': code})}"
        return RedirectResponse(url=target, status_code=HTTPStatus.FOUND)

    credential = await credential_manager.exchange_code(code)
    expiry_ms = (
        int(credential.expires_at.timestamp() * 1000) if credential.expires_at else None
    )
    body = OAuthCallbackResponse(
        refresh_token=credential.refresh_token.get_secret_value(),
        expiry_date=expiry_ms,
    )
    return JSONResponse(content=body.model_dump(by_alias=True))


@router.post("/grant-access", status_code=HTTPStatus.OK)
async def grant_access(
    payload: GrantAccessRequest,
    orchestrator: Annotated[Any, Depends(get_provisioning_orchestrator)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Grant the configured member access to a tenant's BigQuery dataset."""
    provisioning_request = payload.to_provisioning_request()
    logger.info(
        "Grant requested for project %s dataset %s",
        provisioning_request.account_id or "<missing>",
        provisioning_request.resource_id or "<missing>",
    )
    try:
        result = await asyncio.wait_for(
            orchestrator.provision(provisioning_request),
            timeout=settings.provisioning_timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        raise DeploymentError(
            "Provisioning timed out.",
            account_id=provisioning_request.account_id,
            resource_id=provisioning_request.resource_id,
        ) from exc

    body = GrantAccessResponse(stack_name=result.stack_name, outputs=result.outputs)
    return body.model_dump(by_alias=True)


@router.post("/revoke", status_code=HTTPStatus.OK)
async def revoke_token(
    payload: RevokeRequest,
    credential_manager: Annotated[Any, Depends(get_credential_manager)],
) -> dict:
    if not payload.token:
        raise ValidationError("Token is required")
    await credential_manager.revoke(payload.token)
    return {"message": "Token revoked successfully"}


__all__ = ["router"]
