import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Response

from app.auth import ensure_owner, verify_token
from app.dependencies import get_riders, get_users
from app.exceptions import ForbiddenError, NotFoundError
from app.models import Rider, User
from app.repository import RiderRepository, UserRepository
from app.schemas import RiderCreate, RiderOut, RiderStatusUpdate, UserCreate, UserOut

logger = logging.getLogger("zapshift.onboarding")

router = APIRouter(tags=["Onboarding"])


def require_admin(
    verified_email: str = Depends(verify_token),
    users: UserRepository = Depends(get_users),
) -> str:
    user = users.get_by_email(verified_email)
    if user is None or user.role != "admin":
        raise ForbiddenError("Admin access required")
    return verified_email


@router.post("/users", status_code=201)
def create_user(request: UserCreate, response: Response, users: UserRepository = Depends(get_users)):
    existing = users.get_by_email(request.email)
    if existing:
        response.status_code = 200
        return {"message": "user already exists", "insertedId": None}

    user = users.add(User(
        email=request.email,
        display_name=request.display_name,
        photo_url=request.photo_url,
        role="user",
    ))
    logger.info("User %s registered", user.email)
    return {"message": "user created", "insertedId": user.id}


@router.get("/users/{email}/role")
def get_user_role(
    email: str,
    verified_email: str = Depends(verify_token),
    users: UserRepository = Depends(get_users),
):
    ensure_owner(email, verified_email)
    user = users.get_by_email(email)
    if user is None:
        raise NotFoundError("User", email)
    return {"role": user.role}


@router.get("/users/{email}", response_model=UserOut)
def get_user(
    email: str,
    verified_email: str = Depends(verify_token),
    users: UserRepository = Depends(get_users),
):
    ensure_owner(email, verified_email)
    user = users.get_by_email(email)
    if user is None:
        raise NotFoundError("User", email)
    return user


@router.post("/riders", response_model=RiderOut, status_code=201)
def apply_as_rider(
    request: RiderCreate,
    verified_email: str = Depends(verify_token),
    riders: RiderRepository = Depends(get_riders),
):
    ensure_owner(request.email, verified_email)
    rider = riders.add(Rider(
        name=request.name,
        email=request.email,
        region=request.region,
        district=request.district,
        phone=request.phone,
        status="pending",
    ))
    logger.info("Rider application %s received from %s", rider.id, rider.email)
    return rider


@router.get("/riders", response_model=List[RiderOut])
def list_riders(
    status: Optional[Literal["pending", "approved", "rejected"]] = None,
    admin_email: str = Depends(require_admin),
    riders: RiderRepository = Depends(get_riders),
):
    return riders.list(status=status)


@router.patch("/riders/{rider_id}", response_model=RiderOut)
def update_rider_status(
    rider_id: str,
    request: RiderStatusUpdate,
    admin_email: str = Depends(require_admin),
    riders: RiderRepository = Depends(get_riders),
):
    rider = riders.get(rider_id)
    if rider is None:
        raise NotFoundError("Rider", rider_id)
    logger.info("Rider %s set to %s by %s", rider_id, request.status, admin_email)
    return riders.set_status(rider, request.status)
