"""
Tests for the token lifecycle engine.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import NOW, make_record, token_payload
from strava_broker.services import (
    InvalidInput,
    NoCredentials,
    RefreshFailed,
    TokenLifecycleEngine,
    UpstreamUnavailable,
)


class TestCachedToken:
    @pytest.mark.asyncio
    async def test_valid_token_is_returned_without_refresh(self, engine, store, strava_stub):
        await store.save(make_record(expires_at=NOW + 1))

        assert await engine.get_valid_token("42") == "a1"
        assert strava_stub.token_forms() == []

    @pytest.mark.asyncio
    async def test_token_expiring_exactly_now_is_refreshed(self, engine, store, strava_stub):
        await store.save(make_record(expires_at=NOW))
        strava_stub.queue_token(200, token_payload())

        assert await engine.get_valid_token("42") == "a2"
        assert len(strava_stub.token_forms()) == 1

    @pytest.mark.asyncio
    async def test_refresh_margin_refreshes_early(self, store, strava_client, strava_stub):
        engine = TokenLifecycleEngine(store, strava_client, refresh_margin=60, clock=lambda: NOW)
        await store.save(make_record(expires_at=NOW + 30))
        strava_stub.queue_token(200, token_payload())

        assert await engine.get_valid_token("42") == "a2"

    @pytest.mark.asyncio
    async def test_user_id_is_stripped(self, engine, store):
        await store.save(make_record())

        assert await engine.get_valid_token(" 42 ") == "a1"


class TestRefresh:
    @pytest.mark.asyncio
    async def test_expired_token_rotates_and_persists(self, engine, store, strava_stub):
        await store.save(make_record(access_token="a1", refresh_token="r1", expires_at=NOW - 10))
        store.saves.clear()
        strava_stub.queue_token(
            200, token_payload(access_token="a2", refresh_token="r2", expires_at=NOW + 21600)
        )

        assert await engine.get_valid_token("42") == "a2"

        forms = strava_stub.token_forms()
        assert len(forms) == 1
        assert forms[0]["grant_type"] == "refresh_token"
        assert forms[0]["refresh_token"] == "r1"
        assert forms[0]["client_id"] == "12345"

        saved = store.saves[-1]
        assert (saved.access_token, saved.refresh_token, saved.expires_at) == (
            "a2",
            "r2",
            NOW + 21600,
        )

    @pytest.mark.asyncio
    async def test_following_lookup_uses_new_token(self, engine, store, strava_stub):
        await store.save(make_record(expires_at=NOW - 10))
        strava_stub.queue_token(200, token_payload())

        await engine.get_valid_token("42")
        assert await engine.get_valid_token("42") == "a2"
        assert len(strava_stub.token_forms()) == 1

    @pytest.mark.asyncio
    async def test_missing_refresh_token_in_response_keeps_old_one(
        self, engine, store, strava_stub
    ):
        await store.save(make_record(refresh_token="r1", expires_at=NOW - 10))
        strava_stub.queue_token(200, token_payload(refresh_token=None))

        assert await engine.get_valid_token("42") == "a2"
        assert (await store.fetch("42")).refresh_token == "r1"

    @pytest.mark.asyncio
    async def test_millisecond_expiry_is_normalised(self, engine, store, strava_stub):
        await store.save(make_record(expires_at=NOW - 10))
        strava_stub.queue_token(200, token_payload(expires_at=(NOW + 600) * 1000))

        await engine.get_valid_token("42")
        assert (await store.fetch("42")).expires_at == NOW + 600

    @pytest.mark.asyncio
    async def test_provider_rejection_raises_refresh_failed(self, engine, store, strava_stub):
        await store.save(make_record(expires_at=NOW - 10))
        strava_stub.queue_token(400, {"message": "Bad Request", "errors": []})

        with pytest.raises(RefreshFailed) as excinfo:
            await engine.get_valid_token("42")

        assert "Bad Request" in excinfo.value.detail
        assert "r1" not in excinfo.value.detail
        assert (await store.fetch("42")).access_token == "a1"

    @pytest.mark.asyncio
    async def test_provider_outage_raises_upstream_unavailable(self, engine, store, strava_stub):
        await store.save(make_record(expires_at=NOW - 10))
        strava_stub.queue_token(503, {"message": "Service Unavailable"})

        with pytest.raises(UpstreamUnavailable):
            await engine.get_valid_token("42")

    @pytest.mark.asyncio
    async def test_incomplete_provider_response_raises_refresh_failed(
        self, engine, store, strava_stub
    ):
        await store.save(make_record(expires_at=NOW - 10))
        strava_stub.queue_token(200, {"refresh_token": "r2"})

        with pytest.raises(RefreshFailed):
            await engine.get_valid_token("42")


class TestCredentialsAndInput:
    @pytest.mark.asyncio
    async def test_empty_user_id_makes_no_calls(self):
        store = MagicMock()
        store.fetch = AsyncMock()
        store.fetch_refresh_token = AsyncMock()
        provider = MagicMock()
        provider.refresh = AsyncMock()
        engine = TokenLifecycleEngine(store, provider, clock=lambda: NOW)

        for user_id in ("", "   ", None):
            with pytest.raises(InvalidInput):
                await engine.get_valid_token(user_id)

        store.fetch.assert_not_awaited()
        store.fetch_refresh_token.assert_not_awaited()
        provider.refresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_credentials(self, engine, strava_stub):
        with pytest.raises(NoCredentials):
            await engine.get_valid_token("unknown")
        assert strava_stub.token_forms() == []

    @pytest.mark.asyncio
    async def test_store_down_without_fallback_has_no_credentials(self, engine, store):
        store.fail_reads = True

        with pytest.raises(NoCredentials):
            await engine.get_valid_token("42")


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_store_outage_uses_refresh_token_from_authorization(
        self, engine, store, strava_stub
    ):
        strava_stub.queue_token(
            200, token_payload(access_token="a1", refresh_token="r1", athlete={"id": 42})
        )
        await engine.authorize("code-1")

        store.fail_reads = True
        store.fail_writes = True
        strava_stub.queue_token(200, token_payload(access_token="a2", refresh_token="r2"))

        assert await engine.get_valid_token("42") == "a2"
        assert strava_stub.token_forms()[-1]["refresh_token"] == "r1"

    @pytest.mark.asyncio
    async def test_write_failure_still_returns_token(self, engine, store, strava_stub):
        await store.save(make_record(expires_at=NOW - 10))
        store.fail_writes = True
        strava_stub.queue_token(200, token_payload())

        assert await engine.get_valid_token("42") == "a2"
        # The stale record is still stored, so the next call refreshes again.
        assert (await store.fetch("42")).access_token == "a1"

    @pytest.mark.asyncio
    async def test_rotated_token_survives_failed_write(self, engine, store, strava_stub):
        await store.save(make_record(refresh_token="r1", expires_at=NOW - 10))
        store.fail_writes = True
        strava_stub.queue_token(200, token_payload(refresh_token="r2"))
        await engine.get_valid_token("42")

        store.fail_reads = True
        strava_stub.queue_token(200, token_payload(access_token="a3", refresh_token="r3"))

        assert await engine.get_valid_token("42") == "a3"
        assert strava_stub.token_forms()[-1]["refresh_token"] == "r2"

    @pytest.mark.asyncio
    async def test_unsaved_rotation_beats_stale_store_token(self, engine, store, strava_stub):
        await store.save(make_record(refresh_token="r1", expires_at=NOW - 10))
        store.fail_writes = True
        strava_stub.queue_token(200, token_payload(access_token="a2", refresh_token="r2"))
        await engine.get_valid_token("42")

        # The store answers again but still holds r1.
        store.fail_writes = False
        strava_stub.queue_token(200, token_payload(access_token="a3", refresh_token="r3"))

        assert await engine.get_valid_token("42") == "a3"
        assert strava_stub.token_forms()[-1]["refresh_token"] == "r2"
        assert (await store.fetch("42")).refresh_token == "r3"
        assert engine._unsaved == set()

    @pytest.mark.asyncio
    async def test_store_token_wins_once_a_write_lands(self, engine, store, strava_stub):
        await store.save(make_record(refresh_token="r1", expires_at=NOW - 10))
        strava_stub.queue_token(200, token_payload(access_token="a2", refresh_token="r2"))
        await engine.get_valid_token("42")

        # Another instance rotated the pair and wrote it back.
        await store.save(
            make_record(access_token="b3", refresh_token="r-other", expires_at=NOW - 1)
        )
        strava_stub.queue_token(200, token_payload(access_token="a4", refresh_token="r4"))

        assert await engine.get_valid_token("42") == "a4"
        assert strava_stub.token_forms()[-1]["refresh_token"] == "r-other"

    @pytest.mark.asyncio
    async def test_unreadable_refresh_response_is_reported(self, engine, store, strava_stub):
        await store.save(make_record(expires_at=NOW - 10))
        strava_stub.queue_token(200, "<html>upstream proxy error</html>")

        with pytest.raises(UpstreamUnavailable):
            await engine.get_valid_token("42")
        assert len(store.saves) == 1

    @pytest.mark.asyncio
    async def test_fallback_map_is_bounded(self, store, strava_client):
        engine = TokenLifecycleEngine(store, strava_client, fallback_size=2, clock=lambda: NOW)
        for user_id in ("1", "2", "3"):
            engine._remember(user_id, f"r-{user_id}")

        assert list(engine._fallback) == ["2", "3"]

    @pytest.mark.asyncio
    async def test_evicted_user_is_no_longer_marked_unsaved(self, store, strava_client):
        engine = TokenLifecycleEngine(store, strava_client, fallback_size=1, clock=lambda: NOW)
        store.fail_writes = True
        engine._remember("1", "r-1")
        await engine._persist(make_record(user_id="1", refresh_token="r-1"))

        engine._remember("2", "r-2")

        assert engine._unsaved == set()


class TestConcurrentRefresh:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self, store):
        await store.save(make_record(expires_at=NOW - 10))

        async def slow_refresh(refresh_token):
            await asyncio.sleep(0.01)
            return token_payload()

        provider = MagicMock()
        provider.refresh = AsyncMock(side_effect=slow_refresh)
        engine = TokenLifecycleEngine(store, provider, clock=lambda: NOW)

        tokens = await asyncio.gather(*(engine.get_valid_token("42") for _ in range(5)))

        assert tokens == ["a2"] * 5
        provider.refresh.assert_awaited_once_with("r1")
        assert [record.access_token for record in store.saves[-1:]] == ["a2"]
        assert engine._inflight == {}

    @pytest.mark.asyncio
    async def test_different_users_refresh_independently(self, store):
        await store.save(make_record(user_id="1", refresh_token="r-1", expires_at=NOW - 10))
        await store.save(make_record(user_id="2", refresh_token="r-2", expires_at=NOW - 10))

        async def refresh(refresh_token):
            await asyncio.sleep(0)
            return token_payload(access_token=f"new-{refresh_token}")

        provider = MagicMock()
        provider.refresh = AsyncMock(side_effect=refresh)
        engine = TokenLifecycleEngine(store, provider, clock=lambda: NOW)

        tokens = await asyncio.gather(engine.get_valid_token("1"), engine.get_valid_token("2"))

        assert tokens == ["new-r-1", "new-r-2"]
        assert provider.refresh.await_count == 2

    @pytest.mark.asyncio
    async def test_shared_failure_reaches_every_caller(self, store):
        await store.save(make_record(expires_at=NOW - 10))

        async def rejected(refresh_token):
            await asyncio.sleep(0.01)
            raise RefreshFailed("Strava token refresh failed: Bad Request")

        provider = MagicMock()
        provider.refresh = AsyncMock(side_effect=rejected)
        engine = TokenLifecycleEngine(store, provider, clock=lambda: NOW)

        results = await asyncio.gather(
            engine.get_valid_token("42"), engine.get_valid_token("42"), return_exceptions=True
        )

        assert all(isinstance(result, RefreshFailed) for result in results)
        provider.refresh.assert_awaited_once()


class TestAuthorize:
    @pytest.mark.asyncio
    async def test_authorize_persists_record(self, engine, store, strava_stub):
        strava_stub.queue_token(
            200,
            token_payload(athlete={"id": 7, "username": "runner"}, scope="read,activity:read_all"),
        )

        record = await engine.authorize("code-1")

        assert record.user_id == "7"
        assert record.athlete_username == "runner"
        assert (await store.fetch("7")).access_token == "a2"
        form = strava_stub.token_forms()[0]
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "code-1"

    @pytest.mark.asyncio
    async def test_authorize_requires_code(self, engine, strava_stub):
        with pytest.raises(InvalidInput):
            await engine.authorize("")
        assert strava_stub.requests == []

    @pytest.mark.asyncio
    async def test_authorize_survives_store_write_failure(self, engine, store, strava_stub):
        store.fail_writes = True
        strava_stub.queue_token(200, token_payload(athlete={"id": 7}))

        record = await engine.authorize("code-1")

        assert record.access_token == "a2"
        assert await store.fetch("7") is None
