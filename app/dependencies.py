from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.payments import CheckoutInitiator, PaymentReconciler
from app.repository import ParcelRepository, PaymentRepository, RiderRepository, UserRepository
from app.stripe_service import StripeGateway


@lru_cache
def get_gateway() -> StripeGateway:
    settings = get_settings()
    return StripeGateway(settings.stripe_secret_key, timeout=settings.stripe_timeout_seconds)


def get_parcels(db: Session = Depends(get_db)) -> ParcelRepository:
    return ParcelRepository(db)


def get_payments(db: Session = Depends(get_db)) -> PaymentRepository:
    return PaymentRepository(db)


def get_users(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_riders(db: Session = Depends(get_db)) -> RiderRepository:
    return RiderRepository(db)


def get_initiator(
    parcels: ParcelRepository = Depends(get_parcels),
    gateway: StripeGateway = Depends(get_gateway),
) -> CheckoutInitiator:
    settings = get_settings()
    return CheckoutInitiator(parcels, gateway, settings.checkout_currency, settings.site_domain)


def get_reconciler(
    parcels: ParcelRepository = Depends(get_parcels),
    payments: PaymentRepository = Depends(get_payments),
    gateway: StripeGateway = Depends(get_gateway),
) -> PaymentReconciler:
    return PaymentReconciler(parcels, payments, gateway, get_settings().tracking_prefix)
