"""
Tests for commission splits, payment processing and provider earnings.
"""

import re
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.core.constants import BookingStatus, PaymentStatus
from app.core.exceptions import ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from app.db.models.payment import Payment
from app.db.models.user import User
from app.services.settlement_service import SettlementService, calculate_split, generate_transaction_id


@pytest.fixture
def completed_booking(customer, provider, make_booking):
    return make_booking(customer, provider, status=BookingStatus.COMPLETED, budget=100)


def earnings_of(session_factory, provider_id):
    session = session_factory()
    try:
        return session.query(User.total_earnings).filter(User.id == provider_id).scalar()
    finally:
        session.close()


class TestCalculateSplit:

    def test_default_rate(self):
        split = calculate_split(100)

        assert split.commission == Decimal("15.00")
        assert split.payout == Decimal("85.00")

    @pytest.mark.parametrize("amount", ["0.01", "0.03", "19.99", "33.33", "101.10", "9999.99"])
    def test_parts_always_add_up(self, amount):
        split = calculate_split(amount)

        assert split.commission + split.payout == Decimal(amount)
        assert split.commission >= 0
        assert split.payout >= 0

    def test_half_cent_rounds_up(self):
        # 0.10 * 0.15 = 0.015
        assert calculate_split("0.10").commission == Decimal("0.02")

    def test_custom_rate(self):
        split = calculate_split(200, commission_rate="0.10")

        assert split == (Decimal("20.00"), Decimal("180.00"))

    @pytest.mark.parametrize("amount", [0, -5, None, "NaN", "Infinity"])
    def test_invalid_amount(self, amount):
        with pytest.raises(ValidationError):
            calculate_split(amount)

    @pytest.mark.parametrize("rate", ["-0.1", "1.5"])
    def test_invalid_rate(self, rate):
        with pytest.raises(ValidationError):
            calculate_split(100, commission_rate=rate)


def test_transaction_id_format():
    first = generate_transaction_id()
    second = generate_transaction_id()

    assert re.fullmatch(r"TXN\d{13}[0-9A-F]{8}", first)
    assert first != second


class TestProcessPayment:

    def test_settles_completed_booking(self, db, notifier, customer, provider, completed_booking, session_factory):
        payment = SettlementService(db, notifier).process_payment(completed_booking.id, customer.id, "card")

        assert payment.status == PaymentStatus.COMPLETED
        assert payment.amount == Decimal("100.00")
        assert payment.commission == Decimal("15.00")
        assert payment.provider_payout == Decimal("85.00")
        assert payment.payment_date is not None
        assert payment.payout_date == payment.payment_date
        assert earnings_of(session_factory, provider.id) == Decimal("85.00")

        db.refresh(completed_booking)
        assert completed_booking.final_amount == Decimal("100.00")
        assert notifier.titles_for(customer.id) == ["Payment Successful"]
        assert notifier.titles_for(provider.id) == ["Payment Received"]

    def test_losing_concurrent_settlement_leaves_no_payment_behind(
        self, session_factory, customer, provider, completed_booking, monkeypatch
    ):
        winner, loser = session_factory(), session_factory()
        try:
            SettlementService(winner).process_payment(completed_booking.id, customer.id, "card")

            late = SettlementService(loser)
            # the loser ran its duplicate check before the winner committed
            monkeypatch.setattr(late, "completed_payment_for", lambda booking_id: None)
            with pytest.raises(ConflictError):
                late.process_payment(completed_booking.id, customer.id, "card")
        finally:
            winner.close()
            loser.close()

        check = session_factory()
        statuses = [s for (s,) in check.query(Payment.status).filter(Payment.booking_id == completed_booking.id)]
        check.close()
        assert statuses == [PaymentStatus.COMPLETED]
        assert earnings_of(session_factory, provider.id) == Decimal("85.00")

    def test_final_amount_takes_precedence_over_budget(self, db, customer, provider, make_booking):
        booking = make_booking(customer, provider, status=BookingStatus.COMPLETED, budget=100, final_amount=140)

        payment = SettlementService(db).process_payment(booking.id, customer.id, "card")

        assert payment.amount == Decimal("140.00")
        assert payment.commission == Decimal("21.00")

    def test_second_settlement_is_a_conflict(self, db, customer, provider, completed_booking, session_factory):
        service = SettlementService(db)
        service.process_payment(completed_booking.id, customer.id, "card")

        with pytest.raises(ConflictError):
            service.process_payment(completed_booking.id, customer.id, "card")

        assert earnings_of(session_factory, provider.id) == Decimal("85.00")
        assert db.query(Payment).count() == 1

    @pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.ACCEPTED, BookingStatus.CANCELLED])
    def test_unfinished_booking_cannot_be_paid(self, db, customer, provider, make_booking, status):
        booking = make_booking(customer, provider, status=status)

        with pytest.raises(InvalidStateError):
            SettlementService(db).process_payment(booking.id, customer.id, "card")

    def test_only_the_booking_customer_pays(self, db, make_customer, completed_booking):
        stranger = make_customer(name="Mallory")

        with pytest.raises(ForbiddenError):
            SettlementService(db).process_payment(completed_booking.id, stranger.id, "card")

    def test_unknown_booking(self, db, customer):
        with pytest.raises(NotFoundError):
            SettlementService(db).process_payment(999, customer.id, "card")

    def test_notification_failure_keeps_the_payment(
        self, db, failing_notifier, customer, provider, completed_booking, session_factory
    ):
        payment = SettlementService(db, failing_notifier).process_payment(completed_booking.id, customer.id, "card")

        assert payment.status == PaymentStatus.COMPLETED
        assert earnings_of(session_factory, provider.id) == Decimal("85.00")


class TestFinalizeSettlement:

    def test_failed_payment_leaves_aggregates_alone(self, db, customer, provider, completed_booking, session_factory):
        service = SettlementService(db)
        payment = service.create_payment(completed_booking.id, customer.id, provider.id, 100, "card")

        failed = service.finalize_settlement(payment.transaction_id, PaymentStatus.FAILED)

        assert failed.status == PaymentStatus.FAILED
        assert failed.payout_date is None
        assert earnings_of(session_factory, provider.id) == 0
        db.refresh(completed_booking)
        assert completed_booking.final_amount == 0

    def test_repeating_the_same_status_is_a_no_op(self, db, customer, provider, completed_booking, session_factory):
        service = SettlementService(db)
        payment = service.create_payment(completed_booking.id, customer.id, provider.id, 100, "card")

        service.finalize_settlement(payment.transaction_id, PaymentStatus.COMPLETED)
        service.finalize_settlement(payment.transaction_id, PaymentStatus.COMPLETED)

        assert earnings_of(session_factory, provider.id) == Decimal("85.00")

    def test_racing_finalizers_credit_once(self, session_factory, customer, provider, completed_booking):
        setup = session_factory()
        payment = SettlementService(setup).create_payment(completed_booking.id, customer.id, provider.id, 100, "card")
        txn = payment.transaction_id
        setup.close()

        first, second = session_factory(), session_factory()
        try:
            # the second finalizer has already read the payment as pending
            second.query(Payment).filter(Payment.transaction_id == txn).one()

            SettlementService(first).finalize_settlement(txn, PaymentStatus.COMPLETED)
            result = SettlementService(second).finalize_settlement(txn, PaymentStatus.COMPLETED)

            assert result.status == PaymentStatus.COMPLETED
        finally:
            first.close()
            second.close()

        assert earnings_of(session_factory, provider.id) == Decimal("85.00")

    def test_second_completed_payment_for_booking_conflicts(
        self, db, customer, provider, completed_booking, session_factory
    ):
        service = SettlementService(db)
        one = service.create_payment(completed_booking.id, customer.id, provider.id, 100, "card")
        two = service.create_payment(completed_booking.id, customer.id, provider.id, 100, "card")
        service.finalize_settlement(one.transaction_id, PaymentStatus.COMPLETED)

        with pytest.raises(ConflictError):
            service.finalize_settlement(two.transaction_id, PaymentStatus.COMPLETED)

        assert earnings_of(session_factory, provider.id) == Decimal("85.00")

    def test_failed_cannot_be_completed(self, db, customer, provider, completed_booking):
        service = SettlementService(db)
        payment = service.create_payment(completed_booking.id, customer.id, provider.id, 100, "card")
        service.finalize_settlement(payment.transaction_id, PaymentStatus.FAILED)

        with pytest.raises(InvalidStateError):
            service.finalize_settlement(payment.transaction_id, PaymentStatus.COMPLETED)

    def test_unknown_transaction(self, db):
        with pytest.raises(NotFoundError):
            SettlementService(db).finalize_settlement("TXN-missing", PaymentStatus.COMPLETED)

    def test_unknown_status(self, db, customer, provider, completed_booking):
        service = SettlementService(db)
        payment = service.create_payment(completed_booking.id, customer.id, provider.id, 100, "card")

        with pytest.raises(ValidationError):
            service.finalize_settlement(payment.transaction_id, "settled")


class TestPaymentReads:

    def test_view_and_receipt_permissions(self, db, customer, provider, make_customer, completed_booking):
        service = SettlementService(db)
        payment = service.process_payment(completed_booking.id, customer.id, "card")
        stranger = make_customer(name="Mallory")

        assert service.get(payment.id, provider.id, "provider").id == payment.id
        assert service.receipt(payment.id, customer.id).id == payment.id
        with pytest.raises(ForbiddenError):
            service.get(payment.id, stranger.id, "customer")
        with pytest.raises(ForbiddenError):
            service.receipt(payment.id, stranger.id)

    def test_history_by_role(self, db, customer, provider, make_provider, completed_booking):
        service = SettlementService(db)
        service.process_payment(completed_booking.id, customer.id, "card")
        other = make_provider(name="Eve Electrician")

        assert len(service.history(customer.id, "customer")) == 1
        assert len(service.history(provider.id, "provider")) == 1
        assert service.history(other.id, "provider") == []
        with pytest.raises(ForbiddenError):
            service.history(customer.id, "admin")

    def test_earnings_summary(self, db, customer, provider, make_booking):
        service = SettlementService(db)
        for budget in (100, "19.99"):
            booking = make_booking(customer, provider, status=BookingStatus.COMPLETED, budget=budget)
            service.process_payment(booking.id, customer.id, "card")

        now = datetime.utcnow()
        summary = service.earnings_summary(provider.id, now - timedelta(hours=1), now + timedelta(hours=1))

        assert summary["transaction_count"] == 2
        assert summary["total_earnings"] == Decimal("119.99")
        assert summary["total_commission"] + summary["total_payout"] == Decimal("119.99")

    def test_earnings_window_must_be_ordered(self, db, provider):
        now = datetime.utcnow()
        with pytest.raises(ValidationError):
            SettlementService(db).earnings_summary(provider.id, now, now - timedelta(days=1))


class TestPaymentRoutes:

    def test_process_and_receipt(self, client, customer, completed_booking, auth_headers):
        headers = auth_headers(customer)

        response = client.post(
            "/payments/process", json={"booking_id": completed_booking.id, "payment_method": "card"}, headers=headers
        )

        assert response.status_code == 200
        payment = response.json()["payment"]
        assert payment["commission"] == 15.0
        assert payment["provider_payout"] == 85.0

        receipt = client.get(f"/payments/{payment['id']}/receipt", headers=headers)
        assert receipt.status_code == 200
        assert receipt.json()["customer_email"] == customer.email

    def test_double_payment_is_409(self, client, customer, completed_booking, auth_headers):
        headers = auth_headers(customer)
        payload = {"booking_id": completed_booking.id, "payment_method": "card"}

        client.post("/payments/process", json=payload, headers=headers)
        response = client.post("/payments/process", json=payload, headers=headers)

        assert response.status_code == 409
        assert response.json() == {"success": False, "detail": "Payment already processed"}

    def test_provider_earnings_summary(self, client, customer, provider, completed_booking, auth_headers):
        client.post(
            "/payments/process",
            json={"booking_id": completed_booking.id, "payment_method": "card"},
            headers=auth_headers(customer),
        )

        response = client.get("/payments/earnings/summary", headers=auth_headers(provider))

        assert response.status_code == 200
        assert response.json()["total_payout"] == 85.0
        assert response.json()["transaction_count"] == 1

    def test_booking_to_payout_end_to_end(self, client, db, customer, provider, auth_headers):
        """Request, accept, complete, pay: 100 splits into 15.00 + 85.00."""
        as_customer, as_provider = auth_headers(customer), auth_headers(provider)

        created = client.post(
            "/bookings/customer",
            json={
                "provider_id": provider.id,
                "service_category": "Plumbing",
                "description": "Unblock the shower drain",
                "booking_date": "2026-11-02",
                "booking_time": "09:00",
                "budget": 100,
            },
            headers=as_customer,
        )
        booking_id = created.json()["booking"]["id"]
        assert client.post(f"/bookings/{booking_id}/accept", headers=as_provider).status_code == 200
        completed = client.patch(f"/bookings/{booking_id}/status", json={"status": "completed"}, headers=as_provider)
        assert completed.json()["booking"]["completed_at"] is not None

        paid = client.post(
            "/payments/process", json={"booking_id": booking_id, "payment_method": "card"}, headers=as_customer
        ).json()["payment"]

        assert (paid["amount"], paid["commission"], paid["provider_payout"]) == (100.0, 15.0, 85.0)
        db.refresh(provider)
        assert provider.total_earnings == Decimal("85.00")
