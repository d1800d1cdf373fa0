from datetime import date
from decimal import Decimal

import pytest

from app.core.errors import NotFoundError, ValidationError
from app.schemas.receivable import (
    AccountReceivableCreate, AccountReceivableUpdate, ReceivePaymentRequest, ReceiveRequest
)
from app.services.receivable_service import ReceivableService


def new_receivable(amount="500.00"):
    return AccountReceivableCreate(
        customer_name="Maria Silva", description="Venda balcão", amount=Decimal(amount), receipt_date=date(2024, 3, 5)
    )


@pytest.mark.asyncio
async def test_receive_credits_bank(db_session, tenant, bank_account):
    service = ReceivableService(db_session)
    receivable = await service.create(tenant, new_receivable())

    received = await service.receive(tenant, receivable.id, ReceiveRequest(paid_date=date(2024, 3, 6)))

    assert received.is_paid is True
    assert received.paid_date == date(2024, 3, 6)
    assert bank_account.current_balance == Decimal("1500.00")

    with pytest.raises(ValidationError):
        await service.receive(tenant, receivable.id, ReceiveRequest())


@pytest.mark.asyncio
async def test_total_receipt_applies_interest_and_discount(db_session, tenant, bank_account):
    service = ReceivableService(db_session)
    receivable = await service.create(tenant, new_receivable())

    received = await service.receive_payment(
        tenant, receivable.id, ReceivePaymentRequest(interest=Decimal("20.00"), discount=Decimal("5.00"))
    )

    assert received.is_paid is True
    assert received.interest == Decimal("20.00")
    assert bank_account.current_balance == Decimal("1515.00")


@pytest.mark.asyncio
async def test_partial_receipt_splits_the_entry(db_session, tenant, bank_account):
    service = ReceivableService(db_session)
    receivable = await service.create(tenant, new_receivable())

    received = await service.receive_payment(
        tenant, receivable.id, ReceivePaymentRequest(payment_type="partial", amount=Decimal("200.00"))
    )

    assert received.id != receivable.id
    assert received.parent_id == receivable.id
    assert received.is_paid is True
    assert received.amount == Decimal("200.00")
    remaining = await service.get(tenant, receivable.id)
    assert remaining.is_paid is False
    assert remaining.amount == Decimal("300.00")
    assert bank_account.current_balance == Decimal("1200.00")


@pytest.mark.asyncio
async def test_partial_receipt_of_full_amount_settles_and_above_is_rejected(db_session, tenant, bank_account):
    service = ReceivableService(db_session)
    receivable = await service.create(tenant, new_receivable())

    with pytest.raises(ValidationError):
        await service.receive_payment(
            tenant, receivable.id, ReceivePaymentRequest(payment_type="partial", amount=Decimal("600.00"))
        )

    received = await service.receive_payment(
        tenant, receivable.id, ReceivePaymentRequest(payment_type="partial", amount=Decimal("500.00"))
    )
    assert received.id == receivable.id
    assert received.is_paid is True
    assert bank_account.current_balance == Decimal("1500.00")


@pytest.mark.asyncio
async def test_reverse_takes_money_back(db_session, tenant, bank_account):
    service = ReceivableService(db_session)
    receivable = await service.create(tenant, new_receivable())
    await service.receive_payment(tenant, receivable.id, ReceivePaymentRequest(interest=Decimal("10.00")))
    assert bank_account.current_balance == Decimal("1510.00")

    reversed_entry = await service.reverse(tenant, receivable.id)

    assert reversed_entry.is_paid is False
    assert reversed_entry.paid_date is None
    assert reversed_entry.interest == Decimal("0")
    assert bank_account.current_balance == Decimal("1000.00")


@pytest.mark.asyncio
async def test_reverse_ignores_overdraft_limit(db_session, tenant, bank_account):
    service = ReceivableService(db_session)
    receivable = await service.create(tenant, new_receivable())
    await service.receive(tenant, receivable.id, ReceiveRequest())
    bank_account.current_balance = Decimal("100.00")
    await db_session.commit()

    await service.reverse(tenant, receivable.id)

    assert bank_account.current_balance == Decimal("-400.00")


@pytest.mark.asyncio
async def test_reversing_unreceived_entry_is_not_found(db_session, tenant, bank_account):
    service = ReceivableService(db_session)
    receivable = await service.create(tenant, new_receivable())
    with pytest.raises(NotFoundError):
        await service.reverse(tenant, receivable.id)


@pytest.mark.asyncio
async def test_amount_of_received_entry_cannot_change(db_session, tenant, bank_account):
    service = ReceivableService(db_session)
    receivable = await service.create(tenant, new_receivable())
    await service.receive(tenant, receivable.id, ReceiveRequest())

    with pytest.raises(ValidationError):
        await service.update(tenant, receivable.id, AccountReceivableUpdate(amount=Decimal("1.00")))


@pytest.mark.asyncio
async def test_delete_received_entry_takes_money_back(db_session, tenant, bank_account):
    service = ReceivableService(db_session)
    receivable = await service.create(tenant, new_receivable())
    await service.receive(tenant, receivable.id, ReceiveRequest())

    await service.delete(tenant, receivable.id)

    assert bank_account.current_balance == Decimal("1000.00")
    with pytest.raises(NotFoundError):
        await service.get(tenant, receivable.id)


@pytest.mark.asyncio
async def test_list_by_status(db_session, tenant, bank_account):
    service = ReceivableService(db_session)
    first = await service.create(tenant, new_receivable())
    second = await service.create(tenant, new_receivable("80.00"))
    await service.receive(tenant, first.id, ReceiveRequest())

    assert [r.id for r in await service.list(tenant, status="received")] == [first.id]
    assert [r.id for r in await service.list(tenant, status="pending")] == [second.id]
