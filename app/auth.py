import logging

from fastapi import Header
from jose import JWTError, jwt

from app.config import get_settings
from app.exceptions import AuthError, ForbiddenError

logger = logging.getLogger("zapshift.auth")


def verify_token(authorization: str = Header(None)) -> str:
    """Validate the bearer token and return the caller's verified email."""
    if not authorization:
        raise AuthError("Missing bearer token")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthError("Invalid or missing token")

    settings = get_settings()
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not set; rejecting all bearer tokens")
        raise AuthError("Invalid or missing token")
    try:
        claims = jwt.decode(parts[1], settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise AuthError("Invalid or expired token")

    email = claims.get("email")
    if not email:
        raise AuthError("Token carries no email")
    return email


def ensure_owner(requested_email: str, verified_email: str) -> None:
    if requested_email.strip().lower() != verified_email.strip().lower():
        raise ForbiddenError("Forbidden access")
