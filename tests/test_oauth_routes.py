try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy
import time

import httpx
import jwt
import pytest

from app.clients.docserver import DocumentServerError
from app.clients.miro_oauth import OAuthTokenExchangeError, OAuthTokenRefreshError
from app.clients.sqlite_store import StoreUnavailableError
from app.core.security import create_session_token, decode_session_token
from app.main import app
from app.models.oauth import Authentication
from app.models.settings import BoardSettings, Demo
from app.schemas.auth import AuthenticationResponse
from app.services.board_settings import SettingsValidationError
from app.services.oauth_tokens import AuthenticationMapper, TokenMissingError

INSTALL_URL = "https://miro.example.com/oauth/authorize?client_id=client"


class DummyOAuthClient:
    def __init__(self) -> None:
        self.codes: list[str] = []
        self.error: Exception | None = None

    def build_installation_url(self) -> str:
        return INSTALL_URL

    async def exchange(self, code: str) -> AuthenticationResponse:
        self.codes.append(code)
        if self.error is not None:
            raise self.error
        return AuthenticationResponse(
            user_id="user-1",
            team_id="team-1",
            token_type="bearer",
            access_token="access",
            refresh_token="refresh",
            expires_in=3600,
        )


class DummyTokenService:
    def __init__(self) -> None:
        self.saved: list[tuple[str, str, Authentication]] = []
        self.lookups: list[tuple[str, str]] = []
        self.error: Exception | None = None

    async def save(self, team_id: str, user_id: str, authentication: Authentication) -> None:
        self.saved.append((team_id, user_id, authentication))

    async def find(self, team_id: str, user_id: str) -> Authentication:
        self.lookups.append((team_id, user_id))
        if self.error is not None:
            raise self.error
        return Authentication(
            access_token="access", refresh_token="refresh", expires_at=1_900_000_000
        )


class DummySettingsService:
    def __init__(self) -> None:
        self.saved: list[tuple[str, str, dict]] = []
        self.error: Exception | None = None

    async def save(self, team_id: str, board_id: str, payload) -> None:
        if self.error is not None:
            raise self.error
        self.saved.append((team_id, board_id, payload.model_dump()))

    async def find(self, team_id: str, board_id: str) -> BoardSettings:
        return BoardSettings(
            address="https://docs.example.com",
            header="Authorization",
            secret="jwt-secret",
            demo=Demo(enabled=False),
        )


@pytest.fixture()
def overrides():
    from app import dependencies
    from app.core.config import get_settings

    oauth_client = DummyOAuthClient()
    token_service = DummyTokenService()
    settings_service = DummySettingsService()
    base_settings = copy.deepcopy(get_settings())
    base_settings.app_url = "https://miro.example.com/app"

    app.dependency_overrides.update(
        {
            dependencies.get_miro_oauth_client: lambda: oauth_client,
            dependencies.get_authentication_mapper: lambda: AuthenticationMapper(),
            dependencies.get_oauth_token_service: lambda: token_service,
            dependencies.get_board_settings_service: lambda: settings_service,
            dependencies.get_app_settings: lambda: base_settings,
        }
    )

    yield oauth_client, token_service, settings_service, base_settings

    app.dependency_overrides.clear()


def _session_header(settings, *, ttl: int = 24 * 60 * 60) -> dict:
    token = create_session_token(
        user_id="user-1",
        team_id="team-1",
        expires_at=int(time.time()) + ttl,
        secret=settings.oauth.client_secret,
    )
    return {"X-Miro-Signature": token}


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


@pytest.mark.anyio
async def test_health() -> None:
    async with _client() as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_callback_saves_token_and_redirects_with_session(overrides):
    oauth_client, token_service, _, settings = overrides

    async with _client() as client:
        response = await client.get("/api/oauth/callback", params={"code": "auth-code"})

    assert response.status_code == 307
    assert response.headers["location"] == "https://miro.example.com/app"
    assert oauth_client.codes == ["auth-code"]

    team_id, user_id, authentication = token_service.saved[0]
    assert (team_id, user_id) == ("team-1", "user-1")
    assert authentication.access_token == "access"

    cookie = response.cookies[settings.cookie.name]
    claims = decode_session_token(cookie, settings.oauth.client_secret)
    assert (claims.user_id, claims.team_id) == ("user-1", "team-1")


@pytest.mark.anyio
async def test_callback_without_code_points_to_installation(overrides):
    async with _client() as client:
        response = await client.get("/api/oauth/callback")

    assert response.status_code == 400
    assert response.json()["installation_url"] == INSTALL_URL


@pytest.mark.anyio
async def test_callback_exchange_failure_returns_bad_request(overrides):
    oauth_client, token_service, _, _ = overrides
    oauth_client.error = OAuthTokenExchangeError("invalid code")

    async with _client() as client:
        response = await client.get("/api/oauth/callback", params={"code": "bad"})

    assert response.status_code == 400
    assert response.json()["installation_url"] == INSTALL_URL
    assert token_service.saved == []


@pytest.mark.anyio
async def test_session_requires_token(overrides):
    async with _client() as client:
        response = await client.get("/api/session")

    assert response.status_code == 401


@pytest.mark.anyio
async def test_session_rejects_forged_token(overrides):
    forged = jwt.encode(
        {"user": "user-1", "team": "team-1", "exp": int(time.time()) + 600},
        "not-the-secret",
        algorithm="HS256",
    )

    async with _client() as client:
        response = await client.get("/api/session", headers={"X-Miro-Signature": forged})

    assert response.status_code == 401


@pytest.mark.anyio
async def test_session_reports_authorized(overrides):
    _, token_service, _, settings = overrides

    async with _client() as client:
        response = await client.get("/api/session", headers=_session_header(settings))

    assert response.status_code == 200
    body = response.json()
    assert body["authorized"] is True
    assert body["team_id"] == "team-1"
    assert token_service.lookups == [("team-1", "user-1")]
    assert "set-cookie" not in response.headers


@pytest.mark.anyio
async def test_session_reports_missing_upstream_token(overrides):
    _, token_service, _, settings = overrides
    token_service.error = TokenMissingError("gone")

    async with _client() as client:
        response = await client.get("/api/session", headers=_session_header(settings))

    assert response.status_code == 200
    assert response.json()["authorized"] is False


@pytest.mark.anyio
async def test_expiring_session_is_reissued(overrides):
    _, token_service, _, settings = overrides

    async with _client() as client:
        response = await client.get(
            "/api/session", headers=_session_header(settings, ttl=60)
        )

    assert response.status_code == 200
    cookie = response.cookies[settings.cookie.name]
    claims = decode_session_token(cookie, settings.oauth.client_secret)
    assert claims.expires_at > int(time.time()) + 60
    assert response.json()["authorized"] is True
    assert len(token_service.lookups) == 1


@pytest.mark.parametrize(
    "error", [TokenMissingError("gone"), OAuthTokenRefreshError("revoked")]
)
@pytest.mark.anyio
async def test_expiring_session_without_upstream_token_requires_install(overrides, error):
    _, token_service, _, settings = overrides
    token_service.error = error

    async with _client() as client:
        response = await client.get(
            "/api/session", headers=_session_header(settings, ttl=60)
        )

    assert response.status_code == 401
    assert response.json()["detail"]["installation_url"] == INSTALL_URL


@pytest.mark.anyio
async def test_expiring_session_with_storage_outage_is_unavailable(overrides):
    _, token_service, _, settings = overrides
    token_service.error = StoreUnavailableError("database is locked")

    async with _client() as client:
        response = await client.get(
            "/api/session", headers=_session_header(settings, ttl=60)
        )

    assert response.status_code == 503


@pytest.mark.anyio
async def test_session_cookie_is_accepted(overrides):
    _, _, _, settings = overrides
    token = _session_header(settings)["X-Miro-Signature"]

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
        cookies={settings.cookie.name: token},
    ) as client:
        response = await client.get("/api/session")

    assert response.status_code == 200


@pytest.mark.anyio
async def test_get_settings_returns_board_settings(overrides):
    _, _, _, settings = overrides

    async with _client() as client:
        response = await client.get(
            "/api/settings",
            params={"board_id": "board-1"},
            headers=_session_header(settings),
        )

    assert response.status_code == 200
    body = response.json()
    assert body["address"] == "https://docs.example.com"
    assert body["secret"] == "jwt-secret"
    assert body["demo_enabled"] is False


@pytest.mark.anyio
async def test_save_settings_uses_session_team(overrides):
    _, _, settings_service, settings = overrides

    async with _client() as client:
        response = await client.post(
            "/api/settings",
            json={
                "board_id": "board-1",
                "address": "https://docs.example.com",
                "header": "Authorization",
                "secret": "jwt-secret",
            },
            headers=_session_header(settings),
        )

    assert response.status_code == 200
    team_id, board_id, payload = settings_service.saved[0]
    assert (team_id, board_id) == ("team-1", "board-1")
    assert payload["secret"] == "jwt-secret"


@pytest.mark.parametrize(
    "error", [SettingsValidationError("address is required"), DocumentServerError("too old")]
)
@pytest.mark.anyio
async def test_save_settings_rejects_bad_configuration(overrides, error):
    _, _, settings_service, settings = overrides
    settings_service.error = error

    async with _client() as client:
        response = await client.post(
            "/api/settings",
            json={"board_id": "board-1", "demo": True},
            headers=_session_header(settings),
        )

    assert response.status_code == 400
