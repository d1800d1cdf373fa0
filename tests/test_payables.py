from datetime import date
from decimal import Decimal

import pytest

from app.core.errors import InsufficientBalanceError, NotFoundError, ValidationError
from app.schemas.payable import (
    AccountPayableCreate, AccountPayableUpdate, MakePaymentRequest, PayRequest
)
from app.services.payable_service import PayableService, split_installments
from app.services.transaction_history_service import TransactionHistoryService


def new_payable(amount="250.00", **extra):
    return AccountPayableCreate(description="Aluguel", amount=Decimal(amount), due_date=date(2024, 1, 31), **extra)


def test_split_installments_puts_remainder_on_last():
    assert split_installments(Decimal("100"), 3) == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert sum(split_installments(Decimal("1000.01"), 7)) == Decimal("1000.01")


@pytest.mark.asyncio
async def test_create_defaults_to_company_bank_account(db_session, tenant, bank_account):
    service = PayableService(db_session)
    (payable,) = await service.create(tenant, new_payable())

    assert payable.bank_account_id == bank_account.id
    assert payable.is_paid is False
    assert bank_account.current_balance == Decimal("1000.00")


@pytest.mark.asyncio
async def test_installments_split_amount_and_link_to_first(db_session, tenant, bank_account):
    service = PayableService(db_session)
    created = await service.create(tenant, new_payable("100", total_installments=3))

    assert [p.amount for p in created] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert [p.description for p in created] == ["Aluguel (1/3)", "Aluguel (2/3)", "Aluguel (3/3)"]
    assert [p.due_date for p in created] == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]
    assert created[0].parent_id is None
    assert {p.parent_id for p in created[1:]} == {created[0].id}


@pytest.mark.asyncio
async def test_installment_plan_cannot_start_paid(db_session, tenant, bank_account):
    with pytest.raises(ValidationError):
        await PayableService(db_session).create(tenant, new_payable("100", total_installments=2, is_paid=True))


@pytest.mark.asyncio
async def test_created_as_paid_debits_bank(db_session, tenant, bank_account):
    (payable,) = await PayableService(db_session).create(
        tenant, new_payable(is_paid=True, paid_date=date(2024, 1, 10))
    )
    assert payable.is_paid is True
    assert payable.paid_date == date(2024, 1, 10)
    assert bank_account.current_balance == Decimal("750.00")


@pytest.mark.asyncio
async def test_unknown_contact_is_rejected(db_session, tenant, bank_account):
    with pytest.raises(NotFoundError):
        await PayableService(db_session).create(tenant, new_payable(contact_id="missing"))


@pytest.mark.asyncio
async def test_pay_debits_bank_and_logs_history(db_session, tenant, bank_account):
    service = PayableService(db_session)
    (payable,) = await service.create(tenant, new_payable())

    paid = await service.pay(tenant, payable.id, PayRequest(paid_date=date(2024, 2, 1)))

    assert paid.is_paid is True
    assert paid.paid_date == date(2024, 2, 1)
    assert bank_account.current_balance == Decimal("750.00")

    entries = await TransactionHistoryService(db_session).list(tenant, "expense", payable.id)
    assert {entry["action"] for entry in entries} == {"create", "pay"}

    with pytest.raises(ValidationError):
        await service.pay(tenant, payable.id, PayRequest())


@pytest.mark.asyncio
async def test_pay_beyond_available_funds_is_rejected(db_session, tenant, bank_account):
    service = PayableService(db_session)
    (payable,) = await service.create(tenant, new_payable("1500.00"))
    payable_id = payable.id

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await service.pay(tenant, payable_id, PayRequest())
    await db_session.rollback()

    assert exc_info.value.available == Decimal("1000.00")
    assert exc_info.value.shortfall == Decimal("500.00")
    await db_session.refresh(bank_account)
    assert bank_account.current_balance == Decimal("1000.00")
    assert (await service.get(tenant, payable_id)).is_paid is False


@pytest.mark.asyncio
async def test_overdraft_limit_extends_available_funds(db_session, tenant, bank_account):
    bank_account.overdraft_limit = Decimal("600.00")
    await db_session.commit()
    service = PayableService(db_session)
    (payable,) = await service.create(tenant, new_payable("1500.00"))

    await service.pay(tenant, payable.id, PayRequest())

    assert bank_account.current_balance == Decimal("-500.00")


@pytest.mark.asyncio
async def test_partial_then_total_payment(db_session, tenant, bank_account):
    service = PayableService(db_session)
    (payable,) = await service.create(tenant, new_payable("300.00"))

    payable = await service.make_payment(
        tenant, payable.id, MakePaymentRequest(payment_type="partial", amount=Decimal("100.00"))
    )
    assert payable.is_paid is False
    assert len(payable.payment_records) == 1
    assert service.describe(payable)["outstanding"] == Decimal("200.00")
    assert bank_account.current_balance == Decimal("900.00")

    with pytest.raises(ValidationError):
        await service.make_payment(
            tenant, payable.id, MakePaymentRequest(payment_type="partial", amount=Decimal("250.00"))
        )

    payable = await service.make_payment(
        tenant, payable.id,
        MakePaymentRequest(payment_type="total", interest=Decimal("10.00"), discount=Decimal("5.00")),
    )
    assert payable.is_paid is True
    assert service.describe(payable)["paid_amount"] == Decimal("305.00")
    assert bank_account.current_balance == Decimal("695.00")


@pytest.mark.asyncio
async def test_partials_covering_the_amount_settle_the_payable(db_session, tenant, bank_account):
    service = PayableService(db_session)
    (payable,) = await service.create(tenant, new_payable("200.00"))

    for _ in range(2):
        payable = await service.make_payment(
            tenant, payable.id, MakePaymentRequest(payment_type="partial", amount=Decimal("100.00"))
        )

    assert payable.is_paid is True
    assert service.describe(payable)["outstanding"] == Decimal("0")
    assert bank_account.current_balance == Decimal("800.00")


@pytest.mark.asyncio
async def test_unpay_refunds_settlement_and_partials(db_session, tenant, bank_account):
    service = PayableService(db_session)
    (payable,) = await service.create(tenant, new_payable("300.00"))
    await service.make_payment(tenant, payable.id, MakePaymentRequest(payment_type="partial", amount=Decimal("100.00")))
    await service.make_payment(
        tenant, payable.id, MakePaymentRequest(payment_type="total", interest=Decimal("10.00"))
    )
    assert bank_account.current_balance == Decimal("690.00")

    payable = await service.unpay(tenant, payable.id)

    assert payable.is_paid is False
    assert payable.paid_date is None
    assert payable.payment_records == []
    assert bank_account.current_balance == Decimal("1000.00")


@pytest.mark.asyncio
async def test_unpay_without_payments_is_rejected(db_session, tenant, bank_account):
    service = PayableService(db_session)
    (payable,) = await service.create(tenant, new_payable())
    with pytest.raises(ValidationError):
        await service.unpay(tenant, payable.id)


@pytest.mark.asyncio
async def test_amount_of_paid_payable_cannot_change(db_session, tenant, bank_account):
    service = PayableService(db_session)
    (payable,) = await service.create(tenant, new_payable())
    await service.pay(tenant, payable.id, PayRequest())

    with pytest.raises(ValidationError):
        await service.update(tenant, payable.id, AccountPayableUpdate(amount=Decimal("10.00")))

    updated = await service.update(tenant, payable.id, AccountPayableUpdate(notes="boleto"))
    assert updated.notes == "boleto"


@pytest.mark.asyncio
async def test_delete_refunds_and_detaches_installments(db_session, tenant, bank_account):
    service = PayableService(db_session)
    first, second = await service.create(tenant, new_payable("200.00", total_installments=2))
    await service.pay(tenant, first.id, PayRequest())
    assert bank_account.current_balance == Decimal("900.00")

    await service.delete(tenant, first.id)

    assert bank_account.current_balance == Decimal("1000.00")
    with pytest.raises(NotFoundError):
        await service.get(tenant, first.id)
    assert (await service.get(tenant, second.id)).parent_id is None


@pytest.mark.asyncio
async def test_list_filters_by_status(db_session, tenant, bank_account):
    service = PayableService(db_session)
    first, second = await service.create(tenant, new_payable("200.00", total_installments=2))
    await service.pay(tenant, first.id, PayRequest())

    assert [p.id for p in await service.list(tenant, status="paid")] == [first.id]
    assert [p.id for p in await service.list(tenant, status="pending")] == [second.id]
    assert len(await service.list(tenant, due_from=date(2024, 2, 1))) == 1
