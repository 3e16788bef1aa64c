"""
Staff token verification.

Tokens are issued by the external identity service; this module only
decodes and validates them so HTTP routes and the staff websocket can
resolve who is acting. `create_access_token` exists for tooling and tests.
"""

from datetime import timedelta
from typing import List, Optional
import logging
import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from .config import settings
from .exceptions import AuthenticationError, PermissionDeniedError
from .time_utils import utc_now

logger = logging.getLogger(__name__)

SECRET_KEY = settings.jwt_secret_key
ALGORITHM = settings.jwt_algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = settings.jwt_access_token_expire_minutes

STAFF_ROLES = {"staff", "manager", "admin"}

security = HTTPBearer(auto_error=False)


class StaffIdentity(BaseModel):
    """Authenticated staff member resolved from a bearer token."""

    staff_id: int
    username: Optional[str] = None
    roles: List[str] = []

    @property
    def is_manager(self) -> bool:
        return bool({"manager", "admin"} & set(self.roles))


def create_access_token(
    staff_id: int,
    username: Optional[str] = None,
    roles: Optional[List[str]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed staff access token."""
    now = utc_now()
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode = {
        "sub": str(staff_id),
        "username": username,
        "roles": roles if roles is not None else ["staff"],
        "type": "access",
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def authenticate_token(token: Optional[str]) -> Optional[StaffIdentity]:
    """
    Verify a staff JWT.

    Returns:
        StaffIdentity if the token is valid and carries a staff role, None otherwise
    """
    if not token:
        return None

    try:
        payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"require_exp": True, "require_sub": True},
        )
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None

    if payload.get("type") != "access":
        logger.warning(f"Token type mismatch: got {payload.get('type')}")
        return None

    try:
        staff_id = int(payload.get("sub"))
    except (ValueError, TypeError):
        return None

    roles = payload.get("roles") or []
    if not STAFF_ROLES & set(roles):
        logger.warning(f"Token for {staff_id} carries no staff role")
        return None

    return StaffIdentity(
        staff_id=staff_id, username=payload.get("username"), roles=roles
    )


async def get_current_staff(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> StaffIdentity:
    """Resolve the acting staff member from the Authorization header."""
    if credentials is None:
        raise AuthenticationError("Could not validate credentials")

    identity = authenticate_token(credentials.credentials)
    if identity is None:
        raise AuthenticationError("Could not validate credentials")
    return identity


async def require_manager(
    staff: StaffIdentity = Depends(get_current_staff),
) -> StaffIdentity:
    if not staff.is_manager:
        raise PermissionDeniedError("Manager role required")
    return staff
