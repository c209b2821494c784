import uuid
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
import structlog

from control_tower.services.auth_service import verify_access_token

logger = structlog.get_logger()

# auto_error is off so a missing header gets the same 401 envelope as a bad token.
bearer = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": {"code": "AUTH_TOKEN_INVALID", "message": message}},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> dict:
    """
    FastAPI dependency: verify the bearer token and return
    ``{"user_id": UUID, "email": str | None}``.

    The caller id is bound to the log context so every service event of
    the request carries it.
    """
    if credentials is None:
        raise _unauthorized("Missing bearer token")

    try:
        payload = verify_access_token(credentials.credentials)
        user_id = uuid.UUID(str(payload["sub"]))
    except (JWTError, ValueError) as e:
        logger.warning("auth_token_invalid", error=str(e))
        raise _unauthorized("Invalid or expired token")

    structlog.contextvars.bind_contextvars(user_id=str(user_id))
    return {"user_id": user_id, "email": payload.get("email")}
