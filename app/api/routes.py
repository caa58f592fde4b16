"""
FastAPI routes for the whiteboard document integration.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse, RedirectResponse

from app.clients.docserver import DocumentServerError
from app.clients.miro_oauth import OAuthClientError, OAuthTokenRefreshError
from app.clients.sqlite_store import StorageError
from app.dependencies import (
    Session,
    SettingsDependency,
    get_authentication_mapper,
    get_board_settings_service,
    get_miro_oauth_client,
    get_oauth_token_service,
    issue_session_cookie,
    require_session,
)
from app.schemas import PersistSettingsRequest, SessionStatus, SettingsResponse
from app.services.board_settings import SettingsError, SettingsValidationError
from app.services.oauth_tokens import TokenMissingError, TokenServiceError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


def _installation_failure(oauth_client: Any, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=HTTPStatus.BAD_REQUEST,
        content={
            "detail": detail,
            "installation_url": oauth_client.build_installation_url(),
        },
    )


@router.get("/oauth/callback")
async def handle_oauth_callback(
    oauth_client: Annotated[Any, Depends(get_miro_oauth_client)],
    mapper: Annotated[Any, Depends(get_authentication_mapper)],
    token_service: Annotated[Any, Depends(get_oauth_token_service)],
    settings: SettingsDependency,
    code: str | None = Query(default=None, description="Authorization code."),
) -> Response:
    """Complete an app installation and start a board session."""
    if not code:
        return _installation_failure(oauth_client, "Missing authorization code.")

    try:
        token = await oauth_client.exchange(code)
        authentication = mapper.convert(token)
        await token_service.save(token.team_id, token.user_id, authentication)
    except (OAuthClientError, TokenServiceError, StorageError) as exc:
        logger.error("Installation failed: %s", exc)
        return _installation_failure(oauth_client, "Failed to complete installation.")

    logger.info(
        "Installation completed",
        extra={"team_id": token.team_id, "user_id": token.user_id},
    )
    response = RedirectResponse(
        url=settings.app_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
    )
    issue_session_cookie(
        response, user_id=token.user_id, team_id=token.team_id, settings=settings
    )
    return response


@router.get("/session", response_model=SessionStatus, status_code=HTTPStatus.OK)
async def get_session_status(
    session: Annotated[Session, Depends(require_session)],
    token_service: Annotated[Any, Depends(get_oauth_token_service)],
) -> SessionStatus:
    """Report whether the caller still holds a usable upstream token."""
    authentication = session.authentication
    try:
        if authentication is None:
            authentication = await token_service.find(session.team_id, session.user_id)
    except (TokenMissingError, OAuthTokenRefreshError):
        return SessionStatus(
            user_id=session.user_id, team_id=session.team_id, authorized=False
        )
    except (OAuthClientError, TokenServiceError, StorageError) as exc:
        logger.error(
            "Token lookup failed: %s",
            exc,
            extra={"team_id": session.team_id, "user_id": session.user_id},
        )
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Authorization service unavailable.",
        ) from exc

    return SessionStatus(
        user_id=session.user_id,
        team_id=session.team_id,
        authorized=True,
        expires_at=authentication.expires_at,
    )


@router.get("/settings", response_model=SettingsResponse, status_code=HTTPStatus.OK)
async def get_board_settings(
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[Any, Depends(get_board_settings_service)],
    board_id: str = Query(..., min_length=1, description="Board identifier."),
) -> SettingsResponse:
    """Return the document server settings configured for a board."""
    try:
        settings = await service.find(session.team_id, board_id)
    except (SettingsError, StorageError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Failed to load settings.",
        ) from exc

    return SettingsResponse(
        address=settings.address,
        header=settings.header,
        secret=settings.secret,
        demo_enabled=settings.demo.enabled,
        demo_started=settings.demo.started,
    )


@router.post("/settings", status_code=HTTPStatus.OK)
async def save_board_settings(
    payload: PersistSettingsRequest,
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[Any, Depends(get_board_settings_service)],
) -> dict:
    """Validate and persist document server settings for a board."""
    try:
        await service.save(session.team_id, payload.board_id, payload)
    except SettingsValidationError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    except DocumentServerError as exc:
        logger.warning(
            "Document server check failed: %s",
            exc,
            extra={"team_id": session.team_id, "board_id": payload.board_id},
        )
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Could not validate document server settings.",
        ) from exc
    except (SettingsError, StorageError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Failed to save settings.",
        ) from exc

    return {"status": "saved"}


__all__ = ["router"]
