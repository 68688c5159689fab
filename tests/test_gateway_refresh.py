import asyncio

import pytest

from storefront.errors import HttpError, NoRefreshTokenError, RefreshFailedError
from tests.backend_helpers import FakeStorefront, build_gateway, wait_for_waiters


@pytest.mark.asyncio
async def test_single_401_refreshes_once_and_retries() -> None:
    backend = FakeStorefront()
    gateway, _ = build_gateway(backend, access="A1", refresh="R1")

    async with gateway:
        result = await gateway.get("/users/me")

    assert result == {"id": 7, "email": "buyer@example.com"}
    assert backend.refresh_calls == [{"refreshToken": "R1"}]
    assert [auth for path, auth in backend.seen_auth if path == "/api/users/me"] == [
        "Bearer A1",
        "Bearer A2",
    ]


@pytest.mark.asyncio
async def test_concurrent_401s_share_one_refresh() -> None:
    backend = FakeStorefront(hold_refresh=True)
    gateway, _ = build_gateway(backend, access="A1", refresh="R1")

    async with gateway:
        tasks = [asyncio.create_task(gateway.get("/orders")) for _ in range(3)]
        await wait_for_waiters(gateway, 2)
        backend.release_refresh()
        results = await asyncio.gather(*tasks)

        assert gateway.coordinator.is_refreshing is False
        assert gateway.coordinator.waiter_count == 0

    assert results == [{"results": [{"id": 1}], "total": 1}] * 3
    assert backend.refresh_calls == [{"refreshToken": "R1"}]
    assert gateway.token_store.get_access_token() == "A2"
    assert gateway.token_store.get_refresh_token() == "R2"

    order_auth = [auth for path, auth in backend.seen_auth if path == "/api/orders"]
    assert order_auth.count("Bearer A1") == 3
    assert order_auth.count("Bearer A2") == 3


@pytest.mark.asyncio
async def test_401_arriving_after_refresh_replays_without_second_refresh() -> None:
    backend = FakeStorefront(stall_rejections=3)
    gateway, _ = build_gateway(backend, access="A1", refresh="R1")

    async with gateway:
        tasks = [asyncio.create_task(gateway.get("/orders")) for _ in range(3)]
        for _ in range(1000):
            if (
                backend.refresh_calls
                and not gateway.coordinator.is_refreshing
                and gateway.token_store.get_access_token() == "A2"
            ):
                break
            await asyncio.sleep(0)
        else:
            raise AssertionError("first refresh never completed")

        # The third request was sent with A1 and is only rejected now.
        backend.release_late_rejection()
        results = await asyncio.gather(*tasks)

    assert results == [{"results": [{"id": 1}], "total": 1}] * 3
    assert backend.refresh_calls == [{"refreshToken": "R1"}]
    assert gateway.token_store.get_access_token() == "A2"
    assert gateway.token_store.get_refresh_token() == "R2"

    order_auth = [auth for path, auth in backend.seen_auth if path == "/api/orders"]
    assert order_auth.count("Bearer A1") == 3
    assert order_auth.count("Bearer A2") == 3


@pytest.mark.asyncio
async def test_concurrent_401s_all_reject_when_refresh_rejected() -> None:
    backend = FakeStorefront(hold_refresh=True, accept_refresh=False)
    gateway, _ = build_gateway(backend, access="A1", refresh="R1")

    async with gateway:
        tasks = [asyncio.create_task(gateway.get("/orders")) for _ in range(3)]
        await wait_for_waiters(gateway, 2)
        backend.release_refresh()
        results = await asyncio.gather(*tasks, return_exceptions=True)

    assert len(backend.refresh_calls) == 1
    assert all(isinstance(result, RefreshFailedError) for result in results)
    assert len({id(result) for result in results}) == 1
    assert "Refresh token failed" in str(results[0])
    assert gateway.token_store.get_access_token() is None
    assert gateway.token_store.get_refresh_token() is None


@pytest.mark.asyncio
async def test_missing_refresh_token_logs_out() -> None:
    backend = FakeStorefront()
    gateway, _ = build_gateway(backend, access="A1", refresh=None)

    async with gateway:
        with pytest.raises(NoRefreshTokenError, match="No refresh token available"):
            await gateway.get("/users/me")

    assert backend.refresh_calls == []
    assert gateway.token_store.get_access_token() is None


@pytest.mark.asyncio
async def test_refresh_401_does_not_reenter_refresh() -> None:
    backend = FakeStorefront(accept_refresh=False)
    gateway, _ = build_gateway(backend, access="A1", refresh="R1")

    async with gateway:
        with pytest.raises(RefreshFailedError):
            await gateway.get("/users/me")

    assert len(backend.refresh_calls) == 1
    assert gateway.coordinator.is_refreshing is False


@pytest.mark.asyncio
async def test_persistent_401_stops_after_one_refresh() -> None:
    backend = FakeStorefront()
    # Refresh succeeds but the backend keeps rejecting the new token.
    backend._authorized = lambda request: False
    gateway, _ = build_gateway(backend, access="A1", refresh="R1")

    async with gateway:
        with pytest.raises(HttpError) as error:
            await gateway.get("/orders")

    assert error.value.status_code == 401
    assert len(backend.refresh_calls) == 1


@pytest.mark.asyncio
async def test_non_401_error_propagates_without_refresh() -> None:
    backend = FakeStorefront()
    gateway, _ = build_gateway(backend, access="A1", refresh="R1")

    async with gateway:
        with pytest.raises(HttpError) as error:
            await gateway.get("/broken")

    assert error.value.status_code == 503
    assert str(error.value) == "HTTP error! status: 503 - database unavailable"
    assert backend.refresh_calls == []
    assert gateway.token_store.get_access_token() == "A1"


@pytest.mark.asyncio
async def test_valid_token_never_touches_coordinator(monkeypatch) -> None:
    backend = FakeStorefront(access_token="A1")
    gateway, _ = build_gateway(backend, access="A1", refresh="R1")

    async def unexpected(endpoint):
        raise AssertionError(f"coordinator used for {endpoint}")

    monkeypatch.setattr(gateway.coordinator, "acquire_token", unexpected)

    async with gateway:
        first = await gateway.get("/orders")
        second = await gateway.get("/orders")

    assert first == second == {"results": [{"id": 1}], "total": 1}
    assert [path for path, _ in backend.seen_auth] == ["/api/orders", "/api/orders"]
