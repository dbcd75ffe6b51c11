# tests/unit/test_payment_service.py
"""PaymentService — idempotent invoice requests, gateway polling, debug simulation."""
from datetime import timedelta

import pytest

from src.ds_common.enums import (
    AuditAction,
    ListingStatus,
    PaymentMethod,
    PaymentStatus,
    TransactionStatus,
)
from src.ds_common.errors import (
    InvalidTransitionError,
    NotTransactionPartyError,
    PaymentNotFoundError,
    PaymentSimulationDisabledError,
)
from src.ds_transaction.application.payments import PaymentService

SELLER = "seller-1"
BUYER = "buyer-1"


async def _open(escrow):
    escrow.add_listing()
    return await escrow.machine.create(escrow.db, "listing-1", BUYER, PaymentMethod.QRIS)


class TestRequestPayment:
    async def test_reuses_unexpired_invoice(self, escrow) -> None:
        opened = await _open(escrow)

        result = await escrow.payment_service.request_payment(
            escrow.db, opened.transaction.id, BUYER
        )

        assert result.is_existing is True
        assert result.payment.id == opened.payment.id
        assert result.payment.invoice_url == opened.payment.invoice_url
        assert len(escrow.gateway.requests) == 1

    async def test_repeated_requests_never_create_second_invoice(self, escrow) -> None:
        opened = await _open(escrow)
        for _ in range(3):
            escrow.clock.advance(hours=1)
            result = await escrow.payment_service.request_payment(
                escrow.db, opened.transaction.id, BUYER
            )
            assert result.payment.id == opened.payment.id
        pending = [
            p for p in escrow.payments.payments.values() if p.status == PaymentStatus.PENDING
        ]
        assert len(pending) == 1

    async def test_lapsed_invoice_is_replaced(self, escrow) -> None:
        opened = await _open(escrow)
        escrow.clock.advance(hours=24, seconds=1)

        result = await escrow.payment_service.request_payment(
            escrow.db, opened.transaction.id, BUYER, "https://shop.test/return"
        )

        assert result.is_existing is False
        assert result.payment.id != opened.payment.id
        assert result.payment.external_invoice_id == "inv-2"
        assert escrow.payments.payments[opened.payment.id].status == PaymentStatus.EXPIRED
        assert escrow.stored(opened.transaction.id).status == TransactionStatus.PENDING_PAYMENT
        assert escrow.listing_status() == ListingStatus.PENDING
        assert escrow.gateway.requests[1].success_url == "https://shop.test/return"
        assert escrow.gateway.requests[1].payment_method == PaymentMethod.QRIS
        assert escrow.audit.actions()[-2:] == [
            AuditAction.PAYMENT_EXPIRED,
            AuditAction.INVOICE_CREATED,
        ]
        lapsed = escrow.audit.records[-2]
        assert lapsed.entity_id == opened.payment.id
        assert lapsed.actor_id == BUYER
        assert lapsed.new_value == {"status": PaymentStatus.EXPIRED}

    async def test_only_buyer_may_request(self, escrow) -> None:
        opened = await _open(escrow)
        with pytest.raises(NotTransactionPartyError):
            await escrow.payment_service.request_payment(escrow.db, opened.transaction.id, SELLER)

    async def test_paid_transaction_rejected(self, escrow) -> None:
        opened = await _open(escrow)
        await escrow.machine.mark_paid(escrow.db, opened.payment.id)

        with pytest.raises(InvalidTransitionError):
            await escrow.payment_service.request_payment(escrow.db, opened.transaction.id, BUYER)


class TestReconcile:
    async def test_gateway_paid(self, escrow) -> None:
        opened = await _open(escrow)
        escrow.gateway.statuses[opened.payment.external_invoice_id] = PaymentStatus.PAID

        payment = await escrow.payment_service.reconcile_payment(escrow.db, opened.payment.id)

        assert payment.status == PaymentStatus.PAID
        assert escrow.stored(opened.transaction.id).status == TransactionStatus.PAID

    async def test_gateway_expired(self, escrow) -> None:
        opened = await _open(escrow)
        escrow.gateway.statuses[opened.payment.external_invoice_id] = PaymentStatus.EXPIRED

        payment = await escrow.payment_service.reconcile_payment(escrow.db, opened.payment.id)

        assert payment.status == PaymentStatus.EXPIRED
        assert escrow.stored(opened.transaction.id).status == TransactionStatus.CANCELLED
        assert escrow.listing_status() == ListingStatus.ACTIVE

    async def test_gateway_pending_changes_nothing(self, escrow) -> None:
        opened = await _open(escrow)

        payment = await escrow.payment_service.reconcile_payment(escrow.db, opened.payment.id)

        assert payment.status == PaymentStatus.PENDING
        assert escrow.stored(opened.transaction.id).status == TransactionStatus.PENDING_PAYMENT

    async def test_settled_payment_is_not_polled(self, escrow) -> None:
        opened = await _open(escrow)
        await escrow.machine.mark_paid(escrow.db, opened.payment.id)
        escrow.gateway.statuses[opened.payment.external_invoice_id] = PaymentStatus.EXPIRED

        payment = await escrow.payment_service.reconcile_payment(escrow.db, opened.payment.id)

        assert payment.status == PaymentStatus.PAID


class TestReads:
    async def test_list_payments_for_party(self, escrow) -> None:
        opened = await _open(escrow)
        payments = await escrow.payment_service.list_payments(
            escrow.db, opened.transaction.id, SELLER
        )
        assert [p.id for p in payments] == [opened.payment.id]

    async def test_get_payment_by_stranger(self, escrow) -> None:
        opened = await _open(escrow)
        with pytest.raises(NotTransactionPartyError):
            await escrow.payment_service.get_payment(escrow.db, opened.payment.id, "stranger")

    async def test_get_missing_payment(self, escrow) -> None:
        with pytest.raises(PaymentNotFoundError):
            await escrow.payment_service.get_payment(escrow.db, "missing", BUYER)


class TestSimulation:
    async def test_simulate_paid_in_debug(self, escrow) -> None:
        opened = await _open(escrow)
        txn = await escrow.payment_service.simulate_paid(escrow.db, opened.payment.id)
        assert txn.status == TransactionStatus.PAID

    async def test_simulate_expired_in_debug(self, escrow) -> None:
        opened = await _open(escrow)
        escrow.clock.advance(hours=1)
        txn = await escrow.payment_service.simulate_expired(escrow.db, opened.payment.id)
        assert txn.status == TransactionStatus.CANCELLED
        assert txn.cancelled_at == escrow.clock()

    async def test_simulation_disabled_outside_debug(self, escrow) -> None:
        opened = await _open(escrow)
        service = PaymentService(
            machine=escrow.machine,
            listings=escrow.listings,
            transactions=escrow.transactions,
            payments=escrow.payments,
            gateway=escrow.gateway,
            clock=escrow.clock,
            debug=False,
        )
        with pytest.raises(PaymentSimulationDisabledError):
            await service.simulate_paid(escrow.db, opened.payment.id)
        assert escrow.payments.payments[opened.payment.id].status == PaymentStatus.PENDING

    async def test_payment_expiry_window_follows_config(self, escrow) -> None:
        opened = await _open(escrow)
        assert opened.payment.expires_at - escrow.clock() == timedelta(hours=24)
