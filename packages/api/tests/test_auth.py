# This project was developed with assistance from AI tools.
"""Tests for JWT authentication middleware."""

import jwt
import pytest
from buddy_db.enums import UserRole
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from buddy.core.config import settings
from buddy.middleware.auth import CurrentUser, _resolve_bank_id, _resolve_role, require_roles
from buddy.schemas.auth import TokenPayload


def _me_app():
    app = FastAPI()

    @app.get("/me")
    async def me(user: CurrentUser):
        return {
            "user_id": user.user_id,
            "role": user.role.value,
            "bank_id": user.bank_id,
            "all_banks": user.data_scope.all_banks,
        }

    return app


# ---------------------------------------------------------------------------
# AUTH_DISABLED bypass
# ---------------------------------------------------------------------------


def test_auth_disabled_returns_dev_admin(monkeypatch):
    """When AUTH_DISABLED=true, any request gets a dev admin user."""
    monkeypatch.setattr(settings, "AUTH_DISABLED", True)

    resp = TestClient(_me_app()).get("/me")
    assert resp.status_code == 200
    body = resp.json()
    assert body["user_id"] == "dev-user"
    assert body["role"] == "admin"
    assert body["all_banks"] is True


# ---------------------------------------------------------------------------
# Token handling
# ---------------------------------------------------------------------------


def test_missing_token_returns_401(monkeypatch):
    """A request with no Authorization header should get 401."""
    monkeypatch.setattr(settings, "AUTH_DISABLED", False)

    resp = TestClient(_me_app()).get("/me")
    assert resp.status_code == 401
    assert "Missing authentication token" in resp.json()["detail"]


def test_valid_token_builds_bank_scope(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_DISABLED", False)
    monkeypatch.setattr(
        "buddy.middleware.auth._decode_token",
        lambda token: TokenPayload(sub="banker-7", role="banker", bank_id="bank-9", email="b@bank.test"),
    )

    resp = TestClient(_me_app()).get("/me", headers={"Authorization": "Bearer abc"})
    assert resp.status_code == 200
    assert resp.json() == {"user_id": "banker-7", "role": "banker", "bank_id": "bank-9", "all_banks": False}


def test_expired_token_returns_401(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_DISABLED", False)

    def _expired(token):
        raise jwt.ExpiredSignatureError("expired")

    monkeypatch.setattr("buddy.middleware.auth._decode_token", _expired)
    resp = TestClient(_me_app()).get("/me", headers={"Authorization": "Bearer abc"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token has expired"


def test_token_without_role_returns_403(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_DISABLED", False)
    monkeypatch.setattr(
        "buddy.middleware.auth._decode_token",
        lambda token: TokenPayload(sub="u-1", role=["offline_access"]),
    )
    resp = TestClient(_me_app()).get("/me", headers={"Authorization": "Bearer abc"})
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Claim resolution
# ---------------------------------------------------------------------------


def test_resolve_role_picks_known_role():
    """_resolve_role returns the first known role from the role claim."""
    payload = TokenPayload(sub="user-1", role=["offline_access", "underwriter", "uma_authorization"])
    assert _resolve_role(payload) == UserRole.UNDERWRITER


def test_resolve_role_accepts_single_string():
    assert _resolve_role(TokenPayload(sub="user-1", role="examiner")) == UserRole.EXAMINER


def test_resolve_role_no_known_role_raises_value_error():
    """_resolve_role raises ValueError when no recognized roles are present."""
    payload = TokenPayload(sub="user-1", role=["offline_access", "uma_authorization"])

    with pytest.raises(ValueError, match="No recognized role assigned"):
        _resolve_role(payload)


def test_resolve_bank_id():
    assert _resolve_bank_id(TokenPayload(sub="u", bank_id=42)) == "42"
    assert _resolve_bank_id(TokenPayload(sub="u")) is None


# ---------------------------------------------------------------------------
# require_roles dependency
# ---------------------------------------------------------------------------


def test_require_roles_rejects_wrong_role(monkeypatch):
    """require_roles returns 403 when user's role is not in allowed set."""
    monkeypatch.setattr(settings, "AUTH_DISABLED", True)

    app = FastAPI()

    check_underwriter = require_roles(UserRole.UNDERWRITER)

    @app.get("/uw-only", dependencies=[Depends(check_underwriter)])
    async def uw_only(user: CurrentUser):
        return {"ok": True}

    # dev-user is admin, not underwriter
    resp = TestClient(app).get("/uw-only")
    assert resp.status_code == 403
    assert "Insufficient permissions" in resp.json()["detail"]
