from datetime import timedelta

import httpx
import pytest
import respx

from app.core.errors import MercadoLivreError, MLErrorKind
from app.services.ml_auth_service import MercadoLivreAuthService
from app.services.ml_client import MercadoLivreClient
from app.services.ml_integration_service import MercadoLivreIntegrationService
from app.utils.dates import utcnow

ML_API = "https://api.mercadolibre.com"


@pytest.mark.asyncio
async def test_auth_failure_refreshes_once_and_retries(db_session, integration):
    async with respx.mock(assert_all_called=True) as router:
        item_route = router.get(f"{ML_API}/items/MLB1").mock(side_effect=[
            httpx.Response(401, json={"message": "invalid_token"}),
            httpx.Response(200, json={"id": "MLB1", "title": "Camiseta"}),
        ])
        token_route = router.post(f"{ML_API}/oauth/token").mock(
            return_value=httpx.Response(200, json={
                "access_token": "APP_USR-new", "refresh_token": "TG-rotated", "expires_in": 21600
            })
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            client = MercadoLivreClient(db_session, integration, http_client=session)
            item = await client.get_json("/items/MLB1")

    assert item["title"] == "Camiseta"
    assert token_route.call_count == 1
    assert item_route.call_count == 2
    assert item_route.calls[1].request.headers["Authorization"] == "Bearer APP_USR-new"
    assert integration.access_token == "APP_USR-new"
    assert integration.refresh_token == "TG-rotated"


@pytest.mark.asyncio
async def test_second_auth_failure_surfaces_original_response(db_session, integration):
    async with respx.mock(assert_all_called=True) as router:
        item_route = router.get(f"{ML_API}/items/MLB1").mock(side_effect=[
            httpx.Response(403, json={"message": "forbidden", "attempt": 1}),
            httpx.Response(403, json={"message": "forbidden", "attempt": 2}),
        ])
        token_route = router.post(f"{ML_API}/oauth/token").mock(
            return_value=httpx.Response(200, json={"access_token": "APP_USR-new", "expires_in": 21600})
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            client = MercadoLivreClient(db_session, integration, http_client=session)
            response = await client.request("GET", "/items/MLB1")

    assert response.status_code == 403
    assert response.json()["attempt"] == 1
    assert token_route.call_count == 1
    assert item_route.call_count == 2


@pytest.mark.asyncio
async def test_failed_refresh_returns_original_response(db_session, integration):
    async with respx.mock(assert_all_called=True) as router:
        item_route = router.get(f"{ML_API}/items/MLB1").mock(
            return_value=httpx.Response(401, json={"message": "invalid_token"})
        )
        router.post(f"{ML_API}/oauth/token").mock(return_value=httpx.Response(400, json={"error": "invalid_grant"}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            client = MercadoLivreClient(db_session, integration, http_client=session)
            with pytest.raises(MercadoLivreError) as exc_info:
                await client.get_json("/items/MLB1")

    assert exc_info.value.kind == MLErrorKind.UPSTREAM_ERROR
    assert exc_info.value.status_code == 401
    assert item_route.call_count == 1


@pytest.mark.asyncio
async def test_refresh_keeps_refresh_token_when_provider_omits_it(db_session, integration):
    async with respx.mock(assert_all_called=True) as router:
        router.post(f"{ML_API}/oauth/token").mock(
            return_value=httpx.Response(200, json={"access_token": "APP_USR-new", "expires_in": 3600})
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            auth = MercadoLivreAuthService(db_session, http_client=session)
            token = await auth.refresh_access_token(integration)

    assert token == "APP_USR-new"
    assert integration.refresh_token == "TG-refresh"


@pytest.mark.asyncio
async def test_refresh_error_kinds(db_session, integration):
    async with respx.mock() as router:
        route = router.post(f"{ML_API}/oauth/token")
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            auth = MercadoLivreAuthService(db_session, http_client=session)

            route.mock(return_value=httpx.Response(400, json={"error": "invalid_grant"}))
            with pytest.raises(MercadoLivreError) as exc_info:
                await auth.refresh_access_token(integration)
            assert exc_info.value.kind == MLErrorKind.REFRESH_FAILED
            assert exc_info.value.message == "refresh_failed_400"

            route.mock(return_value=httpx.Response(200, text="not json"))
            with pytest.raises(MercadoLivreError) as exc_info:
                await auth.refresh_access_token(integration)
            assert exc_info.value.kind == MLErrorKind.REFRESH_INVALID_JSON

            route.mock(return_value=httpx.Response(200, json={"refresh_token": "TG-x"}))
            with pytest.raises(MercadoLivreError) as exc_info:
                await auth.refresh_access_token(integration)
            assert exc_info.value.kind == MLErrorKind.REFRESH_MISSING_ACCESS_TOKEN

    integration.refresh_token = None
    with pytest.raises(MercadoLivreError) as exc_info:
        await MercadoLivreAuthService(db_session).refresh_access_token(integration)
    assert exc_info.value.kind == MLErrorKind.MISSING_REFRESH_TOKEN


@pytest.mark.asyncio
async def test_expired_integration_is_rejected_before_any_call(db_session, integration):
    integration.expires_at = utcnow() - timedelta(days=1)
    client = MercadoLivreClient(db_session, integration)
    with pytest.raises(MercadoLivreError) as exc_info:
        await client.request("GET", "/users/me")
    await client.aclose()
    assert exc_info.value.kind == MLErrorKind.INTEGRATION_EXPIRED


@pytest.mark.asyncio
async def test_paginate_stops_at_paging_total(db_session, integration):
    pages = [
        httpx.Response(200, json={"results": ["MLB1", "MLB2"], "paging": {"total": 5}}),
        httpx.Response(200, json={"results": ["MLB3", "MLB4"], "paging": {"total": 5}}),
        httpx.Response(200, json={"results": ["MLB5"], "paging": {"total": 5}}),
    ]
    async with respx.mock(assert_all_called=True) as router:
        route = router.get(f"{ML_API}/users/123456/items/search").mock(side_effect=pages)
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            client = MercadoLivreClient(db_session, integration, http_client=session)
            ids = await client.paginate("/users/123456/items/search", {"status": "active"}, page_size=2)

    assert ids == ["MLB1", "MLB2", "MLB3", "MLB4", "MLB5"]
    assert route.call_count == 3
    assert [call.request.url.params["offset"] for call in route.calls] == ["0", "2", "4"]


@pytest.mark.asyncio
async def test_paginate_truncates_at_ceiling(db_session, integration):
    async with respx.mock(assert_all_called=True) as router:
        route = router.get(f"{ML_API}/orders/search").mock(
            return_value=httpx.Response(200, json={"results": [{"id": 1}, {"id": 2}], "paging": {"total": 100}})
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            client = MercadoLivreClient(db_session, integration, http_client=session)
            orders = await client.paginate("/orders/search", page_size=2, max_items=5)

    assert len(orders) == 5
    assert route.call_count == 3


@pytest.mark.asyncio
async def test_failed_page_aborts_pagination(db_session, integration):
    async with respx.mock(assert_all_called=True) as router:
        router.get(f"{ML_API}/orders/search").mock(side_effect=[
            httpx.Response(200, json={"results": [{"id": 1}], "paging": {"total": 3}}),
            httpx.Response(500, json={"message": "boom"}),
        ])
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            client = MercadoLivreClient(db_session, integration, http_client=session)
            with pytest.raises(MercadoLivreError) as exc_info:
                await client.paginate("/orders/search", page_size=1)

    assert exc_info.value.kind == MLErrorKind.UPSTREAM_ERROR
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_fetch_items_batches_of_twenty(db_session, integration):
    ids = [f"MLB{i}" for i in range(45)]

    def multiget(request):
        requested = request.url.params["ids"].split(",")
        return httpx.Response(200, json=[
            {"code": 200, "body": {"id": item_id}} if item_id != "MLB7" else {"code": 404, "body": {}}
            for item_id in requested
        ])

    async with respx.mock(assert_all_called=True) as router:
        route = router.get(f"{ML_API}/items").mock(side_effect=multiget)
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            client = MercadoLivreClient(db_session, integration, http_client=session)
            items = await client.fetch_items(ids)

    assert route.call_count == 3
    assert [len(call.request.url.params["ids"].split(",")) for call in route.calls] == [20, 20, 5]
    assert len(items) == 44
    assert "MLB7" not in {item["id"] for item in items}


@pytest.mark.asyncio
async def test_rejected_refresh_takes_integration_out_of_use(db_session, tenant, integration):
    async with respx.mock(assert_all_called=True) as router:
        router.get(f"{ML_API}/items/MLB1").mock(return_value=httpx.Response(401, json={"message": "invalid_token"}))
        token_route = router.post(f"{ML_API}/oauth/token").mock(
            return_value=httpx.Response(400, json={"error": "invalid_grant"})
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            client = MercadoLivreClient(db_session, integration, http_client=session)
            response = await client.request("GET", "/items/MLB1")

            assert response.status_code == 401
            assert integration.status == "reauth_required"
            assert integration.status_calc == "reauth_required"

            with pytest.raises(MercadoLivreError) as exc_info:
                await client.request("GET", "/items/MLB1")

    assert exc_info.value.kind == MLErrorKind.REAUTH_REQUIRED
    assert exc_info.value.status_code == 401
    assert token_route.call_count == 1

    with pytest.raises(MercadoLivreError) as exc_info:
        await MercadoLivreIntegrationService(db_session).get_active_integration(tenant)
    assert exc_info.value.kind == MLErrorKind.INTEGRATION_NOT_CONNECTED


@pytest.mark.asyncio
async def test_missing_refresh_token_requires_reconnection(db_session, integration):
    integration.refresh_token = None

    with pytest.raises(MercadoLivreError):
        await MercadoLivreAuthService(db_session).refresh_access_token(integration)

    assert integration.status == "reauth_required"


@pytest.mark.asyncio
async def test_provider_outage_during_refresh_keeps_integration_active(db_session, integration):
    async with respx.mock(assert_all_called=True) as router:
        router.post(f"{ML_API}/oauth/token").mock(return_value=httpx.Response(503, text="unavailable"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            with pytest.raises(MercadoLivreError) as exc_info:
                await MercadoLivreAuthService(db_session, http_client=session).refresh_access_token(integration)

    assert exc_info.value.kind == MLErrorKind.REFRESH_FAILED
    assert integration.status == "active"


@pytest.mark.asyncio
async def test_network_failure_becomes_upstream_error(db_session, integration):
    async with respx.mock(assert_all_called=True) as router:
        router.get(f"{ML_API}/items/MLB1").mock(side_effect=httpx.ConnectError("connection refused"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            client = MercadoLivreClient(db_session, integration, http_client=session)
            with pytest.raises(MercadoLivreError) as exc_info:
                await client.get_json("/items/MLB1")

    assert exc_info.value.kind == MLErrorKind.UPSTREAM_ERROR
    assert exc_info.value.status_code == 502
