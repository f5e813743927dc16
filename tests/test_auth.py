"""Tests for token claim checks and account resolution."""

import time

import pytest
from fastapi import HTTPException

from app import auth
from app.models import User


def claims(**overrides):
    now = time.time()
    data = {
        "aud": "salon-test",
        "iss": "https://securetoken.google.com/salon-test",
        "exp": now + 3600,
        "iat": now - 10,
        "auth_time": now - 10,
        "sub": "firebase-abc",
        "email": "new@example.com",
        "name": "New Person",
    }
    data.update(overrides)
    return data


@pytest.fixture(autouse=True)
def project_id(monkeypatch):
    monkeypatch.setattr(auth, "FIREBASE_PROJECT_ID", "salon-test")


class TestClaims:
    def test_valid(self):
        auth._check_claims(claims())

    @pytest.mark.parametrize(
        "override",
        [
            {"aud": "other-project"},
            {"iss": "https://securetoken.google.com/other-project"},
            {"iat": time.time() + 3600},
        ],
    )
    def test_rejected(self, override):
        with pytest.raises(HTTPException) as exc_info:
            auth._check_claims(claims(**override))
        assert exc_info.value.status_code == 401

    def test_expired(self):
        with pytest.raises(HTTPException) as exc_info:
            auth._check_claims(claims(exp=time.time() - 5))
        assert exc_info.value.headers == {"X-Token-Expired": "true"}

    def test_missing_auth_time(self):
        data = claims()
        del data["auth_time"]
        with pytest.raises(HTTPException):
            auth._check_claims(data)


class TestVerifyToken:
    @pytest.mark.asyncio
    async def test_unconfigured_project(self, monkeypatch):
        monkeypatch.setattr(auth, "FIREBASE_PROJECT_ID", None)
        with pytest.raises(HTTPException) as exc_info:
            await auth.verify_firebase_token("a.b.c")
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["not-a-jwt", "a.b", "!!!.###.$$$"])
    async def test_malformed(self, token):
        with pytest.raises(HTTPException) as exc_info:
            await auth.verify_firebase_token(token)
        assert exc_info.value.status_code == 401


class TestAccounts:
    def test_first_sight_creates_customer(self, db):
        user = auth._find_or_create_user(db, claims())
        assert user.role == "customer"
        assert user.email == "new@example.com"
        assert auth._find_or_create_user(db, claims()).id == user.id
        assert db.query(User).count() == 1

    def test_missing_subject(self, db):
        with pytest.raises(HTTPException):
            auth._find_or_create_user(db, claims(sub=None))

    @pytest.mark.asyncio
    async def test_vendor_guard(self, vendor, customer):
        assert await auth.get_current_vendor(vendor) is vendor
        with pytest.raises(HTTPException) as exc_info:
            await auth.get_current_vendor(customer)
        assert exc_info.value.status_code == 403
