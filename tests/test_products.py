from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaValidationError

from app.core.errors import NotFoundError, ValidationError
from app.schemas.product import DynamicItemIn, KitItemIn, ProductCreate, ProductUpdate
from app.services.product_service import ProductService


def simple(sku, stock=0, cost="0", name=None):
    return ProductCreate(
        sku=sku, name=name or sku, product_type="simple", stock=stock, cost_price=Decimal(cost)
    )


@pytest.fixture
async def components(db_session, tenant):
    service = ProductService(db_session)
    caneca = await service.create(tenant, simple("CANECA", stock=10, cost="5.00", name="Caneca"))
    camiseta = await service.create(tenant, simple("CAMISETA", stock=3, cost="20.00", name="Camiseta"))
    return caneca, camiseta


@pytest.mark.asyncio
async def test_kit_stock_and_cost_come_from_components(db_session, tenant, components):
    service = ProductService(db_session)
    kit = await service.create(tenant, ProductCreate(
        sku="KIT-PRESENTE",
        name="Kit presente",
        product_type="kit",
        kit_items=[KitItemIn(component_sku="CANECA", quantity=2), KitItemIn(component_sku="CAMISETA")],
    ))

    data = service.describe(kit)
    assert data["stock"] == 3
    assert data["cost_price"] == Decimal("30.00")
    assert {c["component_sku"]: c["quantity"] for c in data["components"]} == {"CANECA": 2, "CAMISETA": 1}


@pytest.mark.asyncio
async def test_dynamic_product_sums_stock_and_weights_cost(db_session, tenant, components):
    service = ProductService(db_session)
    dynamic = await service.create(tenant, ProductCreate(
        sku="BRINDE",
        name="Brinde",
        product_type="dynamic",
        dynamic_items=[DynamicItemIn(component_sku="CANECA"), DynamicItemIn(component_sku="CAMISETA")],
    ))

    data = service.describe(dynamic)
    assert data["stock"] == 13
    assert data["cost_price"] == Decimal("110.00") / 13


def test_kit_without_components_is_invalid():
    with pytest.raises(SchemaValidationError):
        ProductCreate(sku="KIT", name="Kit", product_type="kit")
    with pytest.raises(SchemaValidationError):
        ProductCreate(sku="X_deleted_1", name="X", product_type="simple")


@pytest.mark.asyncio
async def test_kit_with_unknown_or_self_component_is_rejected(db_session, tenant, components):
    service = ProductService(db_session)
    with pytest.raises(NotFoundError):
        await service.create(tenant, ProductCreate(
            sku="KIT", name="Kit", product_type="kit", kit_items=[KitItemIn(component_sku="NOPE")]
        ))
    await db_session.rollback()
    with pytest.raises(ValidationError):
        await service.create(tenant, ProductCreate(
            sku="KIT", name="Kit", product_type="kit", kit_items=[KitItemIn(component_sku="KIT")]
        ))


@pytest.mark.asyncio
async def test_duplicate_sku_is_rejected(db_session, tenant, components):
    with pytest.raises(ValidationError):
        await ProductService(db_session).create(tenant, simple("CANECA"))


@pytest.mark.asyncio
async def test_product_with_stock_cannot_be_deleted(db_session, tenant, components):
    service = ProductService(db_session)
    with pytest.raises(ValidationError, match="in stock"):
        await service.delete(tenant, "CANECA")


@pytest.mark.asyncio
async def test_kit_component_cannot_be_deleted(db_session, tenant, components):
    service = ProductService(db_session)
    await service.create(tenant, ProductCreate(
        sku="KIT", name="Kit presente", product_type="kit", kit_items=[KitItemIn(component_sku="CANECA")]
    ))
    await service.update(tenant, "CANECA", ProductUpdate(stock=0))

    with pytest.raises(ValidationError, match="Kit presente"):
        await service.delete(tenant, "CANECA")

    await service.delete(tenant, "KIT")
    await service.delete(tenant, "CANECA")
    with pytest.raises(NotFoundError):
        await service.get_by_sku(tenant, "CANECA")


@pytest.mark.asyncio
async def test_deleted_sku_is_renamed_and_reusable(db_session, tenant, components):
    service = ProductService(db_session)
    caneca, _ = components
    await service.update(tenant, "CANECA", ProductUpdate(stock=0))

    await service.delete(tenant, "CANECA")

    assert caneca.is_deleted is True
    assert caneca.sku.startswith("CANECA_deleted_")
    recreated = await service.create(tenant, simple("CANECA", stock=1))
    assert recreated.id != caneca.id


@pytest.mark.asyncio
async def test_bulk_delete_reports_per_sku_errors(db_session, tenant, components):
    service = ProductService(db_session)
    await service.create(tenant, simple("VAZIO"))

    deleted, errors = await service.bulk_delete(tenant, ["VAZIO", "CAMISETA", "FANTASMA"])

    assert deleted == ["VAZIO"]
    assert len(errors) == 2
    assert errors[0].startswith("CAMISETA:")
    assert errors[1] == "FANTASMA: product not found"
    assert sorted(p.sku for p in await service.list(tenant)) == ["CAMISETA", "CANECA"]
