# backend/tests/integration/test_api.py
from unittest.mock import AsyncMock

from jose import jwt

from botengine.config.settings import settings
from botengine.models.api import InterceptResponse
from botengine.utils.rate_limiter import limiter

API_PREFIX = f"/api/{settings.api_version}/bot-engine"

INTERCEPT_BODY = {"tenant_id": "tenant-1", "sender_identifier": "5511999990000", "message_text": "2"}


def auth_headers(tenant_id="tenant-1"):
    claims = {"sub": "reseller@example.com"}
    if tenant_id is not None:
        claims["tenant_id"] = tenant_id
    token = jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


def test_root_and_health(test_client):
    assert test_client.get("/").json()["status"] == "operational"
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_metrics_exposes_engine_counters(test_client, mocker):
    mocker.patch.object(settings, "api_key", None)
    response = test_client.get("/metrics")
    assert response.status_code == 200
    assert "bot_intercepts_total" in response.text


def test_intercept_returns_engine_response(test_client, mocker):
    mocker.patch.object(settings, "intercept_api_key", None)
    mock_intercept = mocker.patch(
        "botengine.routes.bot_engine.bot_engine_service.intercept",
        new_callable=AsyncMock,
        return_value=InterceptResponse(intercepted=True, response="Olá", new_state="PLANOS", should_continue=False),
    )

    response = test_client.post(f"{API_PREFIX}/intercept", json=INTERCEPT_BODY)

    assert response.status_code == 200
    body = response.json()
    assert body["intercepted"] is True
    assert body["response"] == "Olá"
    assert body["should_continue"] is False
    mock_intercept.assert_awaited_once()
    assert mock_intercept.await_args.args[0].tenant_id == "tenant-1"


def test_intercept_rejects_wrong_api_key(test_client, mocker):
    mocker.patch.object(settings, "intercept_api_key", "secret-key")
    mock_intercept = mocker.patch(
        "botengine.routes.bot_engine.bot_engine_service.intercept", new_callable=AsyncMock
    )

    response = test_client.post(f"{API_PREFIX}/intercept", json=INTERCEPT_BODY, headers={"X-API-KEY": "wrong"})

    assert response.status_code == 403
    mock_intercept.assert_not_awaited()


def test_intercept_accepts_correct_api_key(test_client, mocker):
    mocker.patch.object(settings, "intercept_api_key", "secret-key")
    mocker.patch(
        "botengine.routes.bot_engine.bot_engine_service.intercept",
        new_callable=AsyncMock,
        return_value=InterceptResponse.pass_through(),
    )

    response = test_client.post(f"{API_PREFIX}/intercept", json=INTERCEPT_BODY, headers={"X-API-KEY": "secret-key"})

    assert response.status_code == 200
    assert response.json()["should_continue"] is True


def test_intercept_validates_body(test_client, mocker):
    mocker.patch.object(settings, "intercept_api_key", None)
    response = test_client.post(f"{API_PREFIX}/intercept", json={"tenant_id": "tenant-1"})
    assert response.status_code == 422


def test_intercept_is_exempt_from_rate_limit():
    assert "botengine.routes.bot_engine.intercept_message" in limiter._exempt_routes


def test_session_routes_require_token(test_client):
    response = test_client.get(f"{API_PREFIX}/sessions/5511999990000")
    assert response.status_code in (401, 403)


def test_session_routes_reject_token_without_tenant(test_client):
    response = test_client.get(f"{API_PREFIX}/sessions/5511999990000", headers=auth_headers(tenant_id=None))
    assert response.status_code == 403


def test_session_routes_reject_bad_token(test_client):
    response = test_client.get(
        f"{API_PREFIX}/sessions/5511999990000", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401


def test_get_session(test_client, mocker):
    mock_get = mocker.patch(
        "botengine.routes.bot_engine.db_service.get_session",
        new_callable=AsyncMock,
        return_value={"tenant_id": "tenant-1", "user_id": "5511999990000", "state": "TRIMESTRAL",
                      "stack": ["START", "PLANOS"], "locked": False},
    )
    mocker.patch(
        "botengine.routes.bot_engine.menu_service.breadcrumb",
        new_callable=AsyncMock,
        return_value=["MENU", "PLANOS", "TRIMESTRAL"],
    )

    response = test_client.get(f"{API_PREFIX}/sessions/+55 11 99999-0000", headers=auth_headers())

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["session"]["state"] == "TRIMESTRAL"
    assert data["breadcrumb"] == ["MENU", "PLANOS", "TRIMESTRAL"]
    mock_get.assert_awaited_once_with("tenant-1", "5511999990000")


def test_get_missing_session_is_404(test_client, mocker):
    mocker.patch("botengine.routes.bot_engine.db_service.get_session", new_callable=AsyncMock, return_value=None)
    response = test_client.get(f"{API_PREFIX}/sessions/5511999990000", headers=auth_headers())
    assert response.status_code == 404


def test_reset_session(test_client, mocker):
    mock_reset = mocker.patch(
        "botengine.routes.bot_engine.db_service.reset_session", new_callable=AsyncMock, return_value=True
    )
    response = test_client.post(f"{API_PREFIX}/sessions/5511999990000/reset", headers=auth_headers())
    assert response.status_code == 200
    mock_reset.assert_awaited_once_with("tenant-1", "5511999990000")


def test_unlock_session(test_client, mocker):
    mocker.patch(
        "botengine.routes.bot_engine.db_service.get_session",
        new_callable=AsyncMock,
        return_value={"tenant_id": "tenant-1", "user_id": "5511999990000", "locked": True},
    )
    mock_unlock = mocker.patch("botengine.routes.bot_engine.db_service.unlock_session", new_callable=AsyncMock)
    response = test_client.post(f"{API_PREFIX}/sessions/5511999990000/unlock", headers=auth_headers())
    assert response.status_code == 200
    mock_unlock.assert_awaited_once_with("tenant-1", "5511999990000")


def test_session_logs(test_client, mocker):
    mock_logs = mocker.patch(
        "botengine.routes.bot_engine.db_service.get_bot_logs",
        new_callable=AsyncMock,
        return_value=[{"message": "oi", "from_user": True}, {"message": "Olá!", "from_user": False}],
    )
    response = test_client.get(f"{API_PREFIX}/sessions/5511999990000/logs?limit=10", headers=auth_headers())
    assert response.status_code == 200
    assert [l["message"] for l in response.json()["data"]["logs"]] == ["oi", "Olá!"]
    mock_logs.assert_awaited_once_with("tenant-1", "5511999990000", limit=10)


def test_validate_menu_route(test_client):
    payload = {
        "menu_key": "PLANOS",
        "options": [{"label": "Voltar", "target_menu": "MENU"}],
    }
    response = test_client.post(f"{API_PREFIX}/menus/validate", json=payload, headers=auth_headers())
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["data"]["error_code"] == "RESERVED_KEYWORD"
