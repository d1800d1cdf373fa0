import io
import json

import httpx
import pytest
import respx
from botocore.response import StreamingBody
from sqlalchemy.exc import IntegrityError

from app.core.errors import MercadoLivreError, MLErrorKind, NotFoundError, ValidationError
from app.models.product_listing_mapping import ProductListingMapping
from app.schemas.mapping import ProductMappingCreate
from app.schemas.product import KitItemIn, ProductCreate
from app.services.mapping_service import ProductMappingService
from app.services.ml_items_service import MercadoLivreItemsService, discount_percentage
from app.services.product_service import ProductService

ML_API = "https://api.mercadolibre.com"


@pytest.fixture
async def camiseta(db_session, tenant):
    return await ProductService(db_session).create(
        tenant, ProductCreate(sku="CAMISETA", name="Camiseta", product_type="simple", stock=7)
    )


@pytest.mark.asyncio
async def test_mapping_pushes_product_stock(db_session, tenant, integration, camiseta):
    async with respx.mock(assert_all_called=True) as router:
        route = router.put(f"{ML_API}/items/MLB1").mock(return_value=httpx.Response(200, json={"id": "MLB1"}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            service = ProductMappingService(db_session, http_client=session)
            mapping, stock_pushed = await service.create(tenant, ProductMappingCreate(
                product_sku="CAMISETA", integration_id=integration.id, listing_id="MLB1"
            ))

    assert stock_pushed is True
    assert json.loads(route.calls[0].request.content) == {"available_quantity": 7}
    assert mapping.product_id == camiseta.id
    assert [m.id for m in await service.list_for_product(tenant, "CAMISETA")] == [mapping.id]
    assert [m.id for m in await service.list_for_product(tenant, camiseta.id)] == [mapping.id]


@pytest.mark.asyncio
async def test_kit_mapping_pushes_assembled_stock_to_variation(db_session, tenant, integration, camiseta):
    await ProductService(db_session).create(tenant, ProductCreate(
        sku="KIT-2", name="Duas camisetas", product_type="kit",
        kit_items=[KitItemIn(component_sku="CAMISETA", quantity=2)],
    ))

    async with respx.mock(assert_all_called=True) as router:
        route = router.put(f"{ML_API}/items/MLB9/variations/555").mock(return_value=httpx.Response(200, json={}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            _, stock_pushed = await ProductMappingService(db_session, http_client=session).create(
                tenant, ProductMappingCreate(
                    product_sku="KIT-2", integration_id=integration.id, listing_id="MLB9", variation_id="555"
                )
            )

    assert stock_pushed is True
    assert json.loads(route.calls[0].request.content) == {"available_quantity": 3}


@pytest.mark.asyncio
async def test_failed_stock_push_keeps_the_mapping(db_session, tenant, integration, camiseta):
    async with respx.mock(assert_all_called=True) as router:
        router.put(f"{ML_API}/items/MLB1").mock(return_value=httpx.Response(500, json={"message": "boom"}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            service = ProductMappingService(db_session, http_client=session)
            mapping, stock_pushed = await service.create(tenant, ProductMappingCreate(
                product_sku="CAMISETA", integration_id=integration.id, listing_id="MLB1"
            ))

    assert stock_pushed is False
    assert (await service.find_existing(tenant, "MLB1", None)).id == mapping.id


@pytest.mark.asyncio
async def test_listing_already_mapped_is_rejected(db_session, tenant, integration, camiseta):
    async with respx.mock(assert_all_called=False) as router:
        router.put(f"{ML_API}/items/MLB1").mock(return_value=httpx.Response(200, json={}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            service = ProductMappingService(db_session, http_client=session)
            request = ProductMappingCreate(product_sku="CAMISETA", integration_id=integration.id, listing_id="MLB1")
            mapping, _ = await service.create(tenant, request)

            with pytest.raises(ValidationError, match="CAMISETA"):
                await service.create(tenant, request)

    await service.delete(tenant, mapping.id)
    with pytest.raises(NotFoundError):
        await service.delete(tenant, mapping.id)


@pytest.mark.asyncio
async def test_item_proxy_requires_a_connected_store(db_session, tenant):
    with pytest.raises(MercadoLivreError) as exc_info:
        await MercadoLivreItemsService(db_session).get_item(tenant, "MLB1")
    assert exc_info.value.kind == MLErrorKind.INTEGRATION_NOT_CONNECTED
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_item_description_update(db_session, tenant, integration):
    async with respx.mock(assert_all_called=True) as router:
        route = router.put(f"{ML_API}/items/MLB1/description").mock(
            return_value=httpx.Response(200, json={"plain_text": "Nova descrição"})
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            result = await MercadoLivreItemsService(db_session, http_client=session).update_description(
                tenant, "MLB1", "Nova descrição"
            )

    assert result["plain_text"] == "Nova descrição"
    assert route.calls[0].request.headers["Authorization"] == "Bearer APP_USR-old"


@pytest.mark.asyncio
async def test_promotions_merge_sources_and_skip_unavailable_ones(db_session, tenant, integration):
    async with respx.mock(assert_all_called=True) as router:
        router.get(f"{ML_API}/deals/search").mock(return_value=httpx.Response(200, json={
            "results": [{"id": "D1", "name": "Black Friday", "date_from": "2024-11-20"}],
        }))
        router.get(f"{ML_API}/campaigns/search").mock(return_value=httpx.Response(404, json={}))
        router.get(f"{ML_API}/promotions_packs/search").mock(return_value=httpx.Response(200, json={
            "promotions_packs": [{"id": "P1", "name": "Leve 3", "date_from": "2024-10-01"}],
        }))
        router.get(f"{ML_API}/users/123456/items/search").mock(
            return_value=httpx.Response(200, json={"results": ["MLB1"]})
        )
        router.get(f"{ML_API}/items").mock(return_value=httpx.Response(200, json=[{"code": 200, "body": {
            "id": "MLB1", "title": "Camiseta", "price": 75, "original_price": 100, "status": "active",
            "start_time": "2024-12-01T00:00:00Z",
        }}]))
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            promotions = await MercadoLivreItemsService(db_session, http_client=session).list_promotions(tenant)

    assert [p["id"] for p in promotions] == ["promo-MLB1", "D1", "P1"]
    item_promotion = promotions[0]
    assert item_promotion["discount"] == 25
    assert item_promotion["store_name"] == "LOJATESTE"
    assert {p["source"] for p in promotions} == {"deals", "promotions_packs", "items_with_promo"}


def test_discount_percentage():
    assert discount_percentage(100, 75) == 25
    assert discount_percentage(100, 100) == 0
    assert discount_percentage(None, 10) == 0


@pytest.mark.asyncio
async def test_storage_writes_to_the_bucket_and_reads_back(s3_stub):
    storage, stubber = s3_stub
    key = storage.product_image_key("company", "product", "foto.PNG")
    assert key.startswith("products/company/product/") and key.endswith(".png")

    stubber.add_response(
        "put_object", {},
        {"Bucket": "imagens", "Key": key, "Body": b"\x89PNG", "ContentType": "image/png"},
    )
    stubber.add_response(
        "get_object",
        {"Body": StreamingBody(io.BytesIO(b"\x89PNG"), 4), "ContentType": "image/png"},
        {"Bucket": "imagens", "Key": key},
    )
    stubber.add_client_error(
        "get_object", service_error_code="NoSuchKey", http_status_code=404,
        expected_params={"Bucket": "imagens", "Key": "products/missing.png"},
    )

    await storage.put(key, b"\x89PNG")
    content, content_type = await storage.get(key)
    assert content == b"\x89PNG"
    assert content_type == "image/png"
    assert storage.public_url(key) == f"/api/v1/products/images/{key}"

    with pytest.raises(NotFoundError):
        await storage.get("products/missing.png")


@pytest.mark.asyncio
async def test_storage_rejects_bad_keys_without_calling_the_bucket(s3_stub):
    storage, _ = s3_stub

    with pytest.raises(ValidationError):
        storage.product_image_key("company", "product", "script.sh")
    with pytest.raises(NotFoundError):
        await storage.get("../outside.png")
    with pytest.raises(ValidationError):
        await storage.put("products/big.png", b"0" * (5 * 1024 * 1024 + 1))


@pytest.mark.asyncio
async def test_unreachable_promotion_source_is_skipped(db_session, tenant, integration):
    async with respx.mock(assert_all_called=True) as router:
        router.get(f"{ML_API}/deals/search").mock(side_effect=httpx.ConnectError("connection refused"))
        router.get(f"{ML_API}/campaigns/search").mock(return_value=httpx.Response(200, json={
            "results": [{"id": "C1", "name": "Liquida", "date_from": "2024-09-01"}],
        }))
        router.get(f"{ML_API}/promotions_packs/search").mock(return_value=httpx.Response(200, json={}))
        router.get(f"{ML_API}/users/123456/items/search").mock(return_value=httpx.Response(200, json={"results": []}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(router.async_handler)) as session:
            promotions = await MercadoLivreItemsService(db_session, http_client=session).list_promotions(tenant)

    assert [(p["id"], p["source"]) for p in promotions] == [("C1", "campaigns")]


@pytest.mark.asyncio
async def test_store_awaiting_reconnection_is_left_out_of_promotions(db_session, tenant, integration):
    integration.status = "reauth_required"
    await db_session.commit()

    assert await MercadoLivreItemsService(db_session).list_promotions(tenant) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("variation_id", [None, "V1"])
async def test_listing_variation_accepts_a_single_mapping_row(db_session, tenant, integration, camiseta, variation_id):
    def mapping(sku):
        return ProductListingMapping(
            company_id=tenant.company_id, product_id=camiseta.id, product_sku=sku,
            integration_id=integration.id, listing_id="MLB1", variation_id=variation_id,
        )

    db_session.add(mapping("CAMISETA"))
    await db_session.commit()

    db_session.add(mapping("OUTRO"))
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_mapping_lost_to_a_concurrent_request_names_the_winner(
    db_session, tenant, integration, camiseta, monkeypatch
):
    db_session.add(ProductListingMapping(
        company_id=tenant.company_id, product_id=camiseta.id, product_sku="CAMISETA",
        integration_id=integration.id, listing_id="MLB1", variation_id="V1",
    ))
    await db_session.commit()

    service = ProductMappingService(db_session)
    lookup = service.find_existing
    lookups = []

    async def lookup_before_the_other_insert(ctx, listing_id, variation_id):
        lookups.append(listing_id)
        if len(lookups) == 1:
            return None
        return await lookup(ctx, listing_id, variation_id)

    monkeypatch.setattr(service, "find_existing", lookup_before_the_other_insert)

    with pytest.raises(ValidationError, match="CAMISETA"):
        await service.create(tenant, ProductMappingCreate(
            product_sku="CAMISETA", integration_id=integration.id, listing_id="MLB1", variation_id="V1"
        ))
    assert len(lookups) == 2
