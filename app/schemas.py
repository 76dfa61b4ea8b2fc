"""
Request, response and gateway value types.

JSON keys are camelCase on the wire; attributes are snake_case.
"""

from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Payments

# Stripe caps a single unit_amount at 99,999,999 minor units
MAX_CHECKOUT_COST = 999999.99


class CheckoutRequest(CamelModel):
    cost: float = Field(..., gt=0, le=MAX_CHECKOUT_COST, allow_inf_nan=False)
    parcel_name: str = Field(..., min_length=1)
    sender_email: EmailStr
    parcel_id: str = Field(..., min_length=1)


class CheckoutResponse(BaseModel):
    url: str


class CheckoutSession(BaseModel):
    """A checkout session as retrieved from the gateway."""

    id: str
    url: Optional[str] = None
    payment_status: str
    payment_intent: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    customer_email: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @property
    def parcel_id(self) -> Optional[str]:
        return self.metadata.get("parcelId")

    @property
    def parcel_name(self) -> Optional[str]:
        return self.metadata.get("parcelName")

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


class PaymentRecord(CamelModel):
    transaction_id: str
    amount: float
    currency: str
    customer_email: Optional[str] = None
    parcel_id: str
    parcel_name: Optional[str] = None
    payment_status: str
    tracking_id: str
    paid_at: datetime


class Confirmation(BaseModel):
    transaction_id: str
    tracking_id: str
    replayed: bool = False
    record: Optional[PaymentRecord] = None


# Parcels

class ParcelCreate(CamelModel):
    model_config = ConfigDict(extra="allow")

    sender_email: EmailStr
    parcel_name: str = Field(..., min_length=1)
    cost: float = Field(..., gt=0)

    def extra_fields(self) -> dict:
        return dict(self.model_extra or {})


class ParcelOut(CamelModel):
    id: str
    sender_email: str
    parcel_name: str
    cost: float
    payment_status: str
    tracking_id: Optional[str] = None
    details: dict = Field(default_factory=dict)
    created_at: datetime


# Users and riders

class UserCreate(CamelModel):
    email: EmailStr
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class UserOut(CamelModel):
    id: str
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    role: str
    created_at: datetime


class RiderCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    region: Optional[str] = None
    district: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class RiderStatusUpdate(BaseModel):
    status: Literal["pending", "approved", "rejected"]


class RiderOut(CamelModel):
    id: str
    name: str
    email: str
    region: Optional[str] = None
    district: Optional[str] = None
    phone: Optional[str] = None
    status: str
    created_at: datetime


class DeleteResult(CamelModel):
    deleted_count: int
