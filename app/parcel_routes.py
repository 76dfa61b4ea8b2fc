from typing import List, Optional

from fastapi import APIRouter, Depends

from app.dependencies import get_parcels
from app.exceptions import NotFoundError
from app.models import Parcel
from app.repository import ParcelRepository
from app.schemas import DeleteResult, ParcelCreate, ParcelOut

router = APIRouter(prefix="/parcels", tags=["Parcels"])


@router.get("", response_model=List[ParcelOut])
def list_parcels(email: Optional[str] = None, parcels: ParcelRepository = Depends(get_parcels)):
    return parcels.list(sender_email=email)


@router.post("", response_model=ParcelOut, status_code=201)
def create_parcel(request: ParcelCreate, parcels: ParcelRepository = Depends(get_parcels)):
    parcel = Parcel(
        sender_email=request.sender_email,
        parcel_name=request.parcel_name,
        cost=request.cost,
        payment_status="unpaid",
        details=request.extra_fields(),
    )
    return parcels.add(parcel)


@router.get("/{parcel_id}", response_model=ParcelOut)
def get_parcel(parcel_id: str, parcels: ParcelRepository = Depends(get_parcels)):
    parcel = parcels.get(parcel_id)
    if parcel is None:
        raise NotFoundError("Parcel", parcel_id)
    return parcel


@router.delete("/{parcel_id}", response_model=DeleteResult)
def delete_parcel(parcel_id: str, parcels: ParcelRepository = Depends(get_parcels)):
    return DeleteResult(deleted_count=parcels.delete(parcel_id))
