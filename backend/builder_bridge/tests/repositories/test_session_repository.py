"""
Tests for SessionRepository.

Offline sessions must never carry user identity; the session id is the
document key and never appears inside the payload.
"""

from datetime import datetime, timezone

import pytest
from unittest.mock import AsyncMock, patch

from builder_bridge.integrations.document_store import DocumentStoreError, SessionDocument
from builder_bridge.platform.shopify_session import AssociatedUser, OnlineAccessInfo, Session
from builder_bridge.repositories.base import SESSIONS_COLLECTION, TenantScopeError
from builder_bridge.repositories.session_repository import document_to_session, session_to_document
from builder_bridge.tests.conftest import ACME, GLOBEX, offline_session


def online_session(shop: str = ACME, user_id: int = 42) -> Session:
    return Session(
        id=Session.online_id(shop, user_id),
        shop=shop,
        state="state-1",
        is_online=True,
        scope="read_products",
        expires=datetime(2026, 1, 16, tzinfo=timezone.utc),
        access_token="shpua_online",
        online_access_info=OnlineAccessInfo(
            associated_user=AssociatedUser(
                id=user_id,
                first_name="Ada",
                last_name="Lovelace",
                email="ada@acme.test",
                account_owner=True,
                locale="en",
                email_verified=True,
            ),
        ),
    )


class TestSessionMapping:

    def test_offline_session_has_null_identity(self):
        """Offline sessions serialize every user field as null, even if a user was attached."""
        session = offline_session(ACME)
        session.online_access_info = online_session().online_access_info

        doc = session_to_document(session).to_document()

        assert doc["key"] == "offline_acme.myshopify.com"
        assert doc["isOnline"] is False
        for field_name in ("userId", "firstName", "lastName", "email", "locale"):
            assert doc[field_name] is None
        assert doc["accountOwner"] is False

    def test_payload_has_no_id_field(self):
        doc = session_to_document(online_session()).to_document()
        assert "id" not in doc

    def test_online_session_round_trip(self):
        original = online_session()
        restored = document_to_session(session_to_document(original))

        assert restored.id == "acme.myshopify.com_42"
        assert restored.user.email == "ada@acme.test"
        assert restored.user.account_owner is True
        assert restored.expires == original.expires
        assert restored.access_token == "shpua_online"


class TestSessionRepository:

    @pytest.mark.asyncio
    async def test_store_and_load(self, sessions, store):
        assert await sessions.store_session(offline_session(ACME)) is True

        loaded = await sessions.load_session(Session.offline_id(ACME))

        assert loaded.access_token == "shpat_offline"
        assert loaded.user is None
        assert store.get(SESSIONS_COLLECTION, "offline_acme.myshopify.com")["shop"] == ACME

    @pytest.mark.asyncio
    async def test_load_missing_returns_none(self, sessions):
        assert await sessions.load_session("offline_nobody.myshopify.com") is None

    @pytest.mark.asyncio
    async def test_load_ignores_other_keys(self, sessions):
        """A store that ignores the key filter never hands back another shop's session."""
        foreign = SessionDocument(key=Session.offline_id(GLOBEX), shop=GLOBEX, access_token="shpat_globex")

        with patch.object(sessions.store, 'query', AsyncMock(return_value=[foreign])):
            assert await sessions.load_session(Session.offline_id(ACME)) is None

    @pytest.mark.asyncio
    async def test_load_propagates_store_errors(self, sessions, store):
        """An unreachable store is not the same as a missing session."""
        store.fail("query", SESSIONS_COLLECTION)

        with pytest.raises(DocumentStoreError):
            await sessions.load_session(Session.offline_id(ACME))

    @pytest.mark.asyncio
    async def test_store_failure_returns_false(self, sessions, store):
        store.fail("write", SESSIONS_COLLECTION)
        assert await sessions.store_session(offline_session(ACME)) is False

    @pytest.mark.asyncio
    async def test_find_sessions_by_shop_is_scoped(self, sessions):
        await sessions.store_session(offline_session(ACME))
        await sessions.store_session(online_session(ACME))
        await sessions.store_session(offline_session(GLOBEX))

        found = await sessions.find_sessions_by_shop(ACME)

        assert {s.id for s in found} == {"offline_acme.myshopify.com", "acme.myshopify.com_42"}

    @pytest.mark.asyncio
    async def test_find_sessions_requires_shop(self, sessions):
        with pytest.raises(TenantScopeError):
            await sessions.find_sessions_by_shop("")

    @pytest.mark.asyncio
    async def test_delete_sessions(self, sessions, store):
        await sessions.store_session(offline_session(ACME))
        await sessions.store_session(online_session(ACME))

        ok = await sessions.delete_sessions([Session.offline_id(ACME), Session.online_id(ACME, 42)])

        assert ok is True
        assert store.documents(SESSIONS_COLLECTION) == []

    @pytest.mark.asyncio
    async def test_delete_sessions_empty_list(self, sessions):
        assert await sessions.delete_sessions([]) is True

    @pytest.mark.asyncio
    async def test_delete_sessions_reports_failure(self, sessions, store):
        await sessions.store_session(offline_session(ACME))
        store.fail("delete", SESSIONS_COLLECTION)

        ok = await sessions.delete_sessions([Session.offline_id(ACME)])

        assert ok is False
        assert len(store.documents(SESSIONS_COLLECTION)) == 1

    @pytest.mark.asyncio
    async def test_delete_missing_session_is_not_an_error(self, sessions):
        assert await sessions.delete_session("offline_gone.myshopify.com") is True
