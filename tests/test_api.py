import io
from datetime import date, timedelta
from decimal import Decimal

import pytest
from botocore.response import StreamingBody
from botocore.stub import ANY

from app.services.storage_service import get_storage
from main import app

API = "/api/v1"


async def register(client, email="nova@example.com", company_name="Nova Loja"):
    response = await client.post(f"{API}/auth/register", json={
        "email": email, "password": "secret123", "name": "Nova", "company_name": company_name,
    })
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_register_login_and_me(client):
    registered = await register(client, email="Nova@Example.com")
    assert registered["user"]["email"] == "nova@example.com"
    (company,) = registered["user"]["companies"]
    assert company["name"] == "Nova Loja"
    assert company["is_default"] is True

    duplicate = await client.post(f"{API}/auth/register", json={
        "email": "nova@example.com", "password": "secret123", "company_name": "Outra",
    })
    assert duplicate.status_code == 400
    assert duplicate.json() == {"error": "Email already registered"}

    login = await client.post(f"{API}/auth/login", json={"email": "nova@example.com", "password": "secret123"})
    assert login.status_code == 200
    me = await client.get(f"{API}/auth/me", headers=bearer(login.json()["access_token"]))
    assert me.json()["id"] == registered["user"]["id"]

    wrong = await client.post(f"{API}/auth/login", json={"email": "nova@example.com", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Incorrect email or password"}


@pytest.mark.asyncio
async def test_requests_without_token_are_unauthorized(client):
    response = await client.get(f"{API}/bank-accounts/")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_foreign_company_header_is_forbidden(client, auth_headers):
    other = await register(client, email="outra@example.com", company_name="Outra Loja")
    foreign_company = other["user"]["companies"][0]["id"]

    response = await client.get(
        f"{API}/bank-accounts/", headers={**auth_headers, "X-Company-Id": foreign_company}
    )

    assert response.status_code == 403
    assert response.json() == {"error": "Access to this company is not allowed"}


@pytest.mark.asyncio
async def test_invalid_body_is_a_400_with_error_message(client, auth_headers, bank_account):
    response = await client.post(f"{API}/accounts-payable/", headers=auth_headers, json={
        "description": "Aluguel", "amount": -5, "due_date": "2024-01-10",
    })
    assert response.status_code == 400
    assert "amount" in response.json()["error"]


@pytest.mark.asyncio
async def test_native_categories_are_seeded_and_protected(client):
    token = (await register(client))["access_token"]

    categories = (await client.get(f"{API}/categories/", headers=bearer(token))).json()
    assert len(categories) == 22
    native = next(category for category in categories if category["name"] == "Tarifas bancárias")

    response = await client.delete(f"{API}/categories/{native['id']}", headers=bearer(token))
    assert response.status_code == 400
    assert response.json() == {"error": "Native categories cannot be changed"}

    custom = await client.post(f"{API}/categories/", headers=bearer(token), json={
        "name": "Anúncios Mercado Livre", "type": "despesa", "group_name": "Custos Operacionais",
    })
    assert custom.status_code == 201
    assert custom.json()["is_native"] is False
    assert (await client.delete(f"{API}/categories/{custom.json()['id']}", headers=bearer(token))).status_code == 200


@pytest.mark.asyncio
async def test_first_bank_account_becomes_default(client, auth_headers, company):
    first = await client.post(f"{API}/bank-accounts/", headers=auth_headers, json={
        "name": "Caixa", "initial_balance": "200.00",
    })
    assert first.status_code == 201
    assert first.json()["is_default"] is True
    assert Decimal(first.json()["current_balance"]) == Decimal("200.00")

    second = await client.post(f"{API}/bank-accounts/", headers=auth_headers, json={
        "name": "Banco", "is_default": True,
    })
    accounts = (await client.get(f"{API}/bank-accounts/", headers=auth_headers)).json()
    assert [account["id"] for account in accounts if account["is_default"]] == [second.json()["id"]]

    check = await client.post(f"{API}/bank-accounts/validate-transaction", headers=auth_headers, json={
        "bank_account_id": first.json()["id"], "amount": "250.00",
    })
    assert check.json()["valid"] is False
    assert Decimal(check.json()["new_balance"]) == Decimal("-50.00")


@pytest.mark.asyncio
async def test_paying_without_funds_reports_shortfall(client, auth_headers, bank_account):
    created = await client.post(f"{API}/accounts-payable/", headers=auth_headers, json={
        "description": "Fornecedor", "amount": "1200.00", "due_date": "2024-01-10",
    })
    assert created.status_code == 201
    payable_id = created.json()[0]["id"]

    response = await client.patch(f"{API}/accounts-payable/{payable_id}/pay", headers=auth_headers, json={})

    assert response.status_code == 400
    body = response.json()
    assert body["available"] == 1000.0
    assert body["shortfall"] == 200.0
    assert body["error"].startswith("Insufficient balance")


@pytest.mark.asyncio
async def test_payment_flow_is_recorded_in_history(client, auth_headers, bank_account):
    created = await client.post(f"{API}/accounts-payable/", headers=auth_headers, json={
        "description": "Energia", "amount": "150.00", "due_date": "2024-01-10",
    })
    payable_id = created.json()[0]["id"]

    partial = await client.post(f"{API}/accounts-payable/{payable_id}/make-payment", headers=auth_headers, json={
        "payment_type": "partial", "amount": "50.00",
    })
    assert partial.status_code == 200
    assert Decimal(partial.json()["outstanding"]) == Decimal("100.00")
    assert len(partial.json()["payment_records"]) == 1

    history = await client.get(
        f"{API}/transaction-history/", headers=auth_headers, params={"transaction_id": payable_id}
    )
    entries = history.json()
    assert {entry["action"] for entry in entries} == {"create", "pay"}
    assert {entry["description"] for entry in entries} == {"Energia"}

    missing = await client.get(f"{API}/accounts-payable/does-not-exist", headers=auth_headers)
    assert missing.status_code == 404
    assert missing.json() == {"error": "Payable not found"}


@pytest.mark.asyncio
async def test_contact_summary_totals(client, auth_headers, bank_account):
    contact = (await client.post(f"{API}/contacts/", headers=auth_headers, json={
        "name": "Maria Silva", "contact_type": "cliente",
    })).json()
    yesterday = (date.today() - timedelta(days=2)).isoformat()
    next_month = (date.today() + timedelta(days=30)).isoformat()

    for amount, when in (("100.00", yesterday), ("40.00", next_month)):
        await client.post(f"{API}/accounts-receivable/", headers=auth_headers, json={
            "customer_name": "Maria Silva", "amount": amount, "receipt_date": when, "contact_id": contact["id"],
        })
    received = (await client.post(f"{API}/accounts-receivable/", headers=auth_headers, json={
        "customer_name": "Maria Silva", "amount": "25.00", "receipt_date": yesterday, "contact_id": contact["id"],
    })).json()
    await client.patch(f"{API}/accounts-receivable/{received['id']}/receive", headers=auth_headers, json={})

    (summary,) = (await client.get(f"{API}/contacts/", headers=auth_headers)).json()

    assert Decimal(summary["em_aberto"]) == Decimal("140.00")
    assert Decimal(summary["vencido"]) == Decimal("100.00")
    assert Decimal(summary["movimentado"]) == Decimal("25.00")


@pytest.mark.asyncio
async def test_product_sales_spread_kits_over_components(client, auth_headers, company):
    for sku, cost in (("CANECA", "30.00"), ("CAMISETA", "70.00")):
        created = await client.post(f"{API}/products/", headers=auth_headers, json={
            "sku": sku, "name": sku.title(), "product_type": "simple", "cost_price": cost,
        })
        assert created.status_code == 201
    kit = await client.post(f"{API}/products/", headers=auth_headers, json={
        "sku": "KIT", "name": "Kit", "product_type": "kit",
        "kit_items": [{"component_sku": "CANECA"}, {"component_sku": "CAMISETA"}],
    })
    assert Decimal(kit.json()["cost_price"]) == Decimal("100.00")

    imported = await client.post(f"{API}/product-analytics/sales-import", headers=auth_headers, json={
        "month_year": "2024-05",
        "rows": [
            {"sku": "KIT", "units": 10, "revenue": "1000.00"},
            {"sku": "CANECA", "units": 1, "revenue": "40.00"},
        ],
    })
    assert imported.json()["imported"] == 2

    sales = (await client.get(
        f"{API}/product-analytics/sales", headers=auth_headers, params={"month_year": "2024-05"}
    )).json()

    assert [(line["sku"], line["units"], line["revenue"]) for line in sales] == [
        ("CAMISETA", 7.0, 700.0),
        ("CANECA", 4.0, 340.0),
    ]


@pytest.mark.asyncio
async def test_product_image_upload_is_served_publicly(client, auth_headers, company, s3_stub):
    storage, stubber = s3_stub
    app.dependency_overrides[get_storage] = lambda: storage
    stubber.add_response(
        "put_object", {}, {"Bucket": "imagens", "Key": ANY, "Body": b"\x89PNG-data", "ContentType": "image/png"}
    )
    stubber.add_response(
        "get_object",
        {"Body": StreamingBody(io.BytesIO(b"\x89PNG-data"), 9), "ContentType": "image/png"},
        {"Bucket": "imagens", "Key": ANY},
    )

    product = (await client.post(f"{API}/products/", headers=auth_headers, json={
        "sku": "FOTO", "name": "Com foto", "product_type": "simple",
    })).json()

    uploaded = await client.post(
        f"{API}/products/{product['id']}/image",
        headers=auth_headers,
        files={"file": ("foto.png", b"\x89PNG-data", "image/png")},
    )
    assert uploaded.status_code == 200
    image_url = uploaded.json()["image_url"]

    served = await client.get(image_url)
    assert served.status_code == 200
    assert served.content == b"\x89PNG-data"
    assert served.headers["content-type"] == "image/png"
