import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Float, DateTime, JSON, UniqueConstraint
from app.database import Base


def _new_id():
    return uuid.uuid4().hex


def _utcnow():
    return datetime.now(timezone.utc)


class Parcel(Base):
    __tablename__ = "parcels"

    id = Column(String(32), primary_key=True, default=_new_id)
    sender_email = Column(String, index=True, nullable=False)
    parcel_name = Column(String, nullable=False)
    cost = Column(Float, nullable=False)
    payment_status = Column(String, nullable=False, default="unpaid")   # unpaid | paid
    tracking_id = Column(String, index=True)
    details = Column(JSON, nullable=False, default=dict)                 # free-form document fields
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_payments_transaction_id"),
    )

    id = Column(String(32), primary_key=True, default=_new_id)
    transaction_id = Column(String, nullable=False)     # Stripe PaymentIntent ID
    amount = Column(Float, nullable=False)              # major units
    currency = Column(String, nullable=False)
    customer_email = Column(String, index=True)
    parcel_id = Column(String(32), index=True, nullable=False)
    parcel_name = Column(String)
    payment_status = Column(String, nullable=False)
    tracking_id = Column(String, index=True, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    display_name = Column(String)
    photo_url = Column(String)
    role = Column(String, nullable=False, default="user")   # user | rider | admin
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Rider(Base):
    __tablename__ = "riders"

    id = Column(String(32), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    email = Column(String, index=True, nullable=False)
    region = Column(String)
    district = Column(String)
    phone = Column(String)
    status = Column(String, nullable=False, default="pending")  # pending | approved | rejected
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
