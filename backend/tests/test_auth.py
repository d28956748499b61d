"""Tests for bearer tokens and the Actor they produce."""

from datetime import timedelta

import pytest
from fastapi import HTTPException
from jose import jwt

from plantops.auth.deps import get_current_actor
from plantops.auth.jwt import ALGORITHM, create_access_token, decode_token
from plantops.config import settings


@pytest.mark.unit
class TestTokens:
    def test_claims(self):
        payload = decode_token(create_access_token("sari", "user", plant="NPK1", display_name="Sari"))
        assert payload["sub"] == "sari"
        assert payload["role"] == "user"
        assert payload["plant"] == "NPK1"
        assert payload["name"] == "Sari"
        assert payload["type"] == "access"

    def test_name_defaults_to_username(self):
        payload = decode_token(create_access_token("rina", "manager"))
        assert payload["name"] == "rina"
        assert "plant" not in payload

    def test_expired_token_decodes_empty(self):
        token = create_access_token("sari", "user", expires_delta=timedelta(seconds=-1))
        assert decode_token(token) == {}

    def test_wrong_key_decodes_empty(self):
        token = jwt.encode({"sub": "x", "type": "access"}, "other-key", algorithm=ALGORITHM)
        assert decode_token(token) == {}


@pytest.mark.unit
@pytest.mark.asyncio
class TestCurrentActor:
    async def test_actor_from_token(self):
        actor = await get_current_actor(create_access_token("budi", "supervisor", plant="NPK1", display_name="Budi"))
        assert actor.role == "supervisor"
        assert actor.plant == "NPK1"
        assert actor.name == "Budi"
        assert actor.capabilities.can_edit_direct

    async def test_unknown_role_is_view_only(self):
        actor = await get_current_actor(create_access_token("tamu", "guest"))
        assert actor.capabilities.is_view_only
        assert not actor.capabilities.can_add

    async def test_non_access_token_rejected(self):
        token = jwt.encode({"sub": "x", "type": "refresh"}, settings.secret_key, algorithm=ALGORITHM)
        with pytest.raises(HTTPException) as exc:
            await get_current_actor(token)
        assert exc.value.status_code == 401
