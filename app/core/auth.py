# app/core/auth.py
import uuid
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from app.core.config import get_settings
from app.database import get_session
from app.models.user import User

settings = get_settings()

# Missing Authorization header is not an error: carts and checkout
# work for guests too.
bearer_scheme = HTTPBearer(auto_error=False)

CUSTOMER_ROLE = "user"
ADMIN_ROLE = "admin"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verify a Supabase access token (HS256 signature and exp).

    'aud' is not checked; Supabase sets it per project.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise _unauthorized("Invalid or expired token")


def _identity(claims: dict[str, Any]) -> tuple[uuid.UUID, str]:
    sub = claims.get("sub")
    email = claims.get("email")
    if not sub or not email:
        raise _unauthorized("Token missing sub/email")
    try:
        return uuid.UUID(sub), email.lower()
    except ValueError:
        raise _unauthorized("Invalid sub in token")


def _provision(session: Session, user_id: uuid.UUID, email: str) -> User:
    # New accounts are customers; admins are promoted by hand.
    user = User(
        id=user_id,
        email=email,
        name=email.split("@", 1)[0],
        role=CUSTOMER_ROLE,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    The caller behind the request, or None for a guest.

    The first request with a valid token creates the local users row, so
    carts and orders always have an owner row to point at.
    """
    if credentials is None:
        return None

    user_id, email = _identity(decode_access_token(credentials.credentials))
    user = session.get(User, user_id)
    if user is None:
        user = _provision(session, user_id, email)
    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    if user is None:
        raise _unauthorized("Authentication required")
    return user


def _role_guard(role: str, detail: str):
    def guard(user: User = Depends(require_auth)) -> User:
        if user.role != role:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return user

    return guard


# Back-office routes (coupons, order fulfilment)
require_admin = _role_guard(ADMIN_ROLE, "Admin access required")

# Persisted cart and order history belong to customers only
require_user = _role_guard(CUSTOMER_ROLE, "Customer access required")


def get_optional_customer(
    user: User | None = Depends(get_current_user),
) -> User | None:
    """
    Guest-or-customer routes (cart, checkout): None for guests,
    403 for back-office accounts.
    """
    if user is not None and user.role != CUSTOMER_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Customer access required",
        )
    return user
