"""
Store access for parcels, payments, users and riders.

Each repository wraps the request's SQLAlchemy session. Only
``PaymentRepository.commit_payment`` writes to two tables, and it does so
inside a single transaction.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import DuplicateTransactionError, InternalError, NotFoundError
from app.models import Parcel, Payment, Rider, User
from app.schemas import PaymentRecord

logger = logging.getLogger("zapshift.store")


class ParcelRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, parcel_id: str) -> Optional[Parcel]:
        return self.db.get(Parcel, parcel_id)

    def list(self, sender_email: str = None) -> List[Parcel]:
        stmt = select(Parcel).order_by(Parcel.created_at.desc())
        if sender_email:
            stmt = stmt.where(Parcel.sender_email == sender_email)
        return list(self.db.scalars(stmt))

    def add(self, parcel: Parcel) -> Parcel:
        self.db.add(parcel)
        self.db.commit()
        self.db.refresh(parcel)
        return parcel

    def delete(self, parcel_id: str) -> int:
        parcel = self.get(parcel_id)
        if parcel is None:
            return 0
        self.db.delete(parcel)
        self.db.commit()
        return 1


class PaymentRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_transaction(self, transaction_id: str) -> Optional[Payment]:
        return self.db.scalars(
            select(Payment).where(Payment.transaction_id == transaction_id)
        ).first()

    def list_for_customer(self, email: str) -> List[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.customer_email == email)
            .order_by(Payment.paid_at.desc())
        )
        return list(self.db.scalars(stmt))

    def commit_payment(self, record: PaymentRecord) -> Payment:
        """Append the ledger row and mark the parcel paid atomically.

        The parcel only moves ``unpaid -> paid``. If it was already paid by
        another transaction it keeps its tracking id, and the new ledger row
        reuses it. Raises DuplicateTransactionError when the transaction id
        is already recorded; nothing is written in that case.
        """
        try:
            payment = Payment(
                transaction_id=record.transaction_id,
                amount=record.amount,
                currency=record.currency,
                customer_email=record.customer_email,
                parcel_id=record.parcel_id,
                parcel_name=record.parcel_name,
                payment_status=record.payment_status,
                tracking_id=record.tracking_id,
                paid_at=record.paid_at,
            )
            self.db.add(payment)
            # unique transaction_id is checked here, before the parcel is touched
            self.db.flush()

            result = self.db.execute(
                update(Parcel)
                .where(Parcel.id == record.parcel_id, Parcel.payment_status == "unpaid")
                .values(payment_status="paid", tracking_id=record.tracking_id)
            )
            if result.rowcount == 0:
                parcel = self.db.get(Parcel, record.parcel_id)
                if parcel is None:
                    self.db.rollback()
                    raise NotFoundError("Parcel", record.parcel_id)
                logger.warning(
                    "Parcel %s already paid, recording transaction %s against tracking id %s",
                    record.parcel_id, record.transaction_id, parcel.tracking_id,
                )
                payment.tracking_id = parcel.tracking_id or record.tracking_id
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateTransactionError(record.transaction_id) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Payment commit failed for %s", record.transaction_id, exc_info=True)
            raise InternalError("Could not record payment") from exc
        self.db.refresh(payment)
        return payment


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.scalars(select(User).where(User.email == email)).first()

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user


class RiderRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, rider_id: str) -> Optional[Rider]:
        return self.db.get(Rider, rider_id)

    def list(self, status: str = None) -> List[Rider]:
        stmt = select(Rider).order_by(Rider.created_at.desc())
        if status:
            stmt = stmt.where(Rider.status == status)
        return list(self.db.scalars(stmt))

    def add(self, rider: Rider) -> Rider:
        self.db.add(rider)
        self.db.commit()
        self.db.refresh(rider)
        return rider

    def set_status(self, rider: Rider, status: str) -> Rider:
        rider.status = status
        if status == "approved":
            user = self.db.scalars(select(User).where(User.email == rider.email)).first()
            if user is not None:
                user.role = "rider"
        self.db.commit()
        self.db.refresh(rider)
        return rider
