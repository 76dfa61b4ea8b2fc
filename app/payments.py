"""
Checkout initiation and payment confirmation.

``CheckoutInitiator`` turns a checkout request into a hosted Stripe session.
``PaymentReconciler`` turns a completed session into a paid parcel and one
ledger row per transaction, however many times the client confirms.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from sqlalchemy.exc import SQLAlchemyError

from app.exceptions import (
    ConflictError,
    DuplicateTransactionError,
    GatewayError,
    InternalError,
    NotFoundError,
    PaymentIncompleteError,
    ValidationError,
)
from app.repository import ParcelRepository, PaymentRepository
from app.schemas import CheckoutRequest, Confirmation, PaymentRecord
from app.stripe_service import StripeGateway
from app.tracking import generate_tracking_id

logger = logging.getLogger("zapshift.payments")

SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"
MAX_UNIT_AMOUNT = 99_999_999


def to_minor_units(amount) -> int:
    """25.50 -> 2550, 9.999 -> 1000 (half-up to the nearest cent)."""
    try:
        cents = Decimal(str(amount)) * 100
        return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError, OverflowError) as exc:
        raise ValidationError("cost is not a valid amount", {"cost": str(amount)}) from exc


def to_major_units(amount: int) -> float:
    return float(Decimal(amount) / 100)


class CheckoutInitiator:
    def __init__(self, parcels: ParcelRepository, gateway: StripeGateway, currency: str, site_domain: str):
        self.parcels = parcels
        self.gateway = gateway
        self.currency = currency
        self.site_domain = site_domain.rstrip("/")

    def start(self, request: CheckoutRequest) -> str:
        """Create a hosted checkout session and return its redirect URL."""
        try:
            parcel = self.parcels.get(request.parcel_id)
        except SQLAlchemyError as exc:
            raise InternalError("Could not load parcel") from exc
        if parcel is None:
            raise NotFoundError("Parcel", request.parcel_id)
        if parcel.payment_status == "paid":
            raise ConflictError("Parcel is already paid", "ERR_ALREADY_PAID", {"parcelId": parcel.id})

        unit_amount = to_minor_units(request.cost)
        if unit_amount <= 0:
            raise ValidationError("cost must be at least one cent", {"cost": request.cost})
        if unit_amount > MAX_UNIT_AMOUNT:
            raise ValidationError("cost exceeds the maximum checkout amount", {"cost": request.cost})

        session = self.gateway.create_session(
            unit_amount=unit_amount,
            currency=self.currency,
            product_name=request.parcel_name,
            customer_email=request.sender_email,
            metadata={"parcelId": request.parcel_id, "parcelName": request.parcel_name},
            success_url=f"{self.site_domain}/dashboard/payment-success?session_id={SESSION_ID_PLACEHOLDER}",
            cancel_url=f"{self.site_domain}/dashboard/payment-canceled?session_id={SESSION_ID_PLACEHOLDER}",
        )
        if not session.url:
            raise GatewayError("Checkout session has no redirect URL", {"sessionId": session.id})

        logger.info("Checkout session %s created for parcel %s (%s %s)",
                    session.id, request.parcel_id, unit_amount, self.currency)
        return session.url


class PaymentReconciler:
    def __init__(self, parcels: ParcelRepository, payments: PaymentRepository,
                 gateway: StripeGateway, tracking_prefix: str = "ZP"):
        self.parcels = parcels
        self.payments = payments
        self.gateway = gateway
        self.tracking_prefix = tracking_prefix

    def confirm(self, session_id: str) -> Confirmation:
        """
        Reconcile a checkout session with the store.

        1. Fetch the session from the gateway
        2. Replay the stored result if the transaction was already recorded
        3. Refuse sessions that are not paid, without writing anything
        4. Commit parcel transition and ledger row in one transaction

        A duplicate-key failure on commit means a concurrent call won the
        race; its record is returned as a replay.
        """
        if not session_id or not session_id.strip():
            raise ValidationError("session_id is required")

        session = self.gateway.retrieve_session(session_id)
        transaction_id = session.payment_intent

        try:
            if transaction_id:
                existing = self.payments.find_by_transaction(transaction_id)
                if existing is not None:
                    logger.info("Transaction %s already recorded, replaying", transaction_id)
                    return Confirmation(
                        transaction_id=transaction_id,
                        tracking_id=existing.tracking_id,
                        replayed=True,
                    )

            if not session.is_paid:
                logger.info("Session %s not paid yet (status=%s)", session.id, session.payment_status)
                raise PaymentIncompleteError(session.id, session.payment_status)

            if not transaction_id:
                raise GatewayError("Paid session carries no payment intent", {"sessionId": session.id})
            if not session.parcel_id:
                raise ValidationError("Session metadata has no parcelId", {"sessionId": session.id})

            if self.parcels.get(session.parcel_id) is None:
                raise NotFoundError("Parcel", session.parcel_id)

            if session.amount_total is None:
                raise GatewayError("Paid session carries no amount", {"sessionId": session.id})

            record = PaymentRecord(
                transaction_id=transaction_id,
                amount=to_major_units(session.amount_total),
                currency=session.currency or "",
                customer_email=session.customer_email,
                parcel_id=session.parcel_id,
                parcel_name=session.parcel_name,
                payment_status=session.payment_status,
                tracking_id=generate_tracking_id(self.tracking_prefix),
                paid_at=datetime.now(timezone.utc),
            )
            try:
                payment = self.payments.commit_payment(record)
            except DuplicateTransactionError:
                existing = self.payments.find_by_transaction(transaction_id)
                if existing is None:
                    raise InternalError("Payment conflict could not be resolved")
                logger.info("Transaction %s recorded concurrently, replaying", transaction_id)
                return Confirmation(
                    transaction_id=transaction_id,
                    tracking_id=existing.tracking_id,
                    replayed=True,
                )
        except SQLAlchemyError as exc:
            logger.error("Store failure while confirming %s", session.id, exc_info=True)
            raise InternalError("Could not confirm payment") from exc

        logger.info("Transaction %s committed for parcel %s with tracking id %s",
                    transaction_id, payment.parcel_id, payment.tracking_id)
        return Confirmation(
            transaction_id=transaction_id,
            tracking_id=payment.tracking_id,
            record=PaymentRecord.model_validate(payment),
        )
