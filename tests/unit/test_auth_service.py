"""
Unit tests for control_tower/services/auth_service.py
"""

import uuid

import pytest
from jose import JWTError

from control_tower.config import settings
from control_tower.services.auth_service import verify_access_token
from tests.helpers import make_token


def test_valid_access_token_returns_claims(jwt_settings):
    user_id = uuid.uuid4()

    claims = verify_access_token(make_token(user_id))

    assert claims["sub"] == str(user_id)
    assert claims["type"] == "access"


def test_refresh_token_is_rejected(jwt_settings):
    with pytest.raises(JWTError):
        verify_access_token(make_token(uuid.uuid4(), token_type="refresh"))


def test_expired_token_is_rejected(jwt_settings):
    with pytest.raises(JWTError):
        verify_access_token(make_token(uuid.uuid4(), expires_in=-60))


def test_token_signed_with_other_secret_is_rejected(jwt_settings, monkeypatch):
    token = make_token(uuid.uuid4())
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret")

    with pytest.raises(JWTError):
        verify_access_token(token)


def test_missing_secret_is_rejected(jwt_settings, monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", "")

    with pytest.raises(JWTError, match="JWT_SECRET"):
        verify_access_token("anything")
