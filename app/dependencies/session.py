"""
Session cookie handling for board-embedded requests.

A session is a short HS256 JWT naming the whiteboard user and team. When it is
about to expire the stored upstream token is looked up (refreshing it when
needed) before the cookie is re-issued, so a revoked installation ends the
session instead of silently extending it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from http import HTTPStatus
from typing import Annotated, Any, Optional

import jwt
from fastapi import Depends, HTTPException, Request, Response

from app.clients.miro_oauth import OAuthTokenRefreshError
from app.core.config import AppSettings
from app.core.security import create_session_token, decode_session_token
from app.dependencies.clients import get_miro_oauth_client, get_oauth_token_service
from app.dependencies.config import SettingsDependency
from app.models.oauth import Authentication
from app.services.oauth_tokens import TokenMissingError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Miro-Signature"


@dataclass(frozen=True, slots=True)
class Session:
    user_id: str
    team_id: str
    expires_at: int
    # Set when the upstream token was looked up while re-issuing the cookie.
    authentication: Optional[Authentication] = None


def issue_session_cookie(
    response: Response,
    *,
    user_id: str,
    team_id: str,
    settings: AppSettings,
) -> int:
    """Attach a fresh session cookie to ``response`` and return its expiry."""
    cookie = settings.cookie
    expires_at = int(time.time()) + cookie.session_ttl_seconds
    token = create_session_token(
        user_id=user_id,
        team_id=team_id,
        expires_at=expires_at,
        secret=settings.oauth.client_secret,
    )
    response.set_cookie(
        key=cookie.name,
        value=token,
        max_age=cookie.max_age,
        path=cookie.path,
        secure=cookie.secure,
        httponly=cookie.http_only,
        samesite=cookie.same_site,
    )
    return expires_at


async def require_session(
    request: Request,
    response: Response,
    settings: SettingsDependency,
    token_service: Annotated[Any, Depends(get_oauth_token_service)],
    oauth_client: Annotated[Any, Depends(get_miro_oauth_client)],
) -> Session:
    """Resolve the caller's session or reject the request."""
    token = request.cookies.get(settings.cookie.name) or request.headers.get(
        SIGNATURE_HEADER
    )
    if not token:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail="Missing session token."
        )

    try:
        session = decode_session_token(token, settings.oauth.client_secret)
    except jwt.InvalidTokenError as exc:
        logger.debug("Rejected session token: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail="Invalid session token."
        ) from exc

    if session.expires_at - time.time() > settings.cookie.refresh_threshold_seconds:
        return Session(
            user_id=session.user_id,
            team_id=session.team_id,
            expires_at=session.expires_at,
        )

    context = {"team_id": session.team_id, "user_id": session.user_id}
    try:
        authentication = await token_service.find(session.team_id, session.user_id)
    except (TokenMissingError, OAuthTokenRefreshError) as exc:
        logger.info("Session requires re-authentication: %s", exc, extra=context)
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail={
                "message": "Authorization required.",
                "installation_url": oauth_client.build_installation_url(),
            },
        ) from exc
    except Exception as exc:
        logger.error("Could not verify upstream token: %s", exc, extra=context)
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Authorization service unavailable.",
        ) from exc

    expires_at = issue_session_cookie(
        response, user_id=session.user_id, team_id=session.team_id, settings=settings
    )
    logger.debug("Session cookie refreshed", extra=context)
    return Session(
        user_id=session.user_id,
        team_id=session.team_id,
        expires_at=expires_at,
        authentication=authentication,
    )


__all__ = ["SIGNATURE_HEADER", "Session", "issue_session_cookie", "require_session"]
