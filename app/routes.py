from typing import List

from fastapi import APIRouter, Depends, Query

from app.auth import ensure_owner, verify_token
from app.dependencies import get_initiator, get_payments, get_reconciler
from app.payments import CheckoutInitiator, PaymentReconciler
from app.repository import PaymentRepository
from app.schemas import CheckoutRequest, CheckoutResponse, PaymentRecord

router = APIRouter(tags=["Payments"])


@router.post("/create-checkout-session", response_model=CheckoutResponse)
def create_checkout_session(
    request: CheckoutRequest,
    initiator: CheckoutInitiator = Depends(get_initiator),
):
    return {"url": initiator.start(request)}


@router.patch("/payment-success")
def payment_success(
    session_id: str = Query(..., min_length=1),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    result = reconciler.confirm(session_id)

    if result.replayed:
        return {
            "message": "Payment already processed",
            "transactionId": result.transaction_id,
            "trackingId": result.tracking_id,
        }

    return {
        "success": True,
        "trackingId": result.tracking_id,
        "transactionId": result.transaction_id,
        "paymentInfo": result.record.model_dump(mode="json", by_alias=True),
    }


@router.get("/payments", response_model=List[PaymentRecord])
def payment_history(
    email: str = Query(..., min_length=3),
    verified_email: str = Depends(verify_token),
    payments: PaymentRepository = Depends(get_payments),
):
    ensure_owner(email, verified_email)
    return payments.list_for_customer(email)
