import time

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from unibon.config import get_settings

security = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


def sign_token(user_id: str, email: str) -> str:
    """Issue an HS256 token carrying userId/email, valid for jwt_expires_days."""
    settings = get_settings()
    now = int(time.time())
    payload = {
        "userId": user_id,
        "email": email,
        "iat": now,
        "exp": now + settings.jwt_expires_days * 24 * 60 * 60,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> dict | None:
    """Return {"userId", "email"} for a valid token, None otherwise."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None

    if not payload.get("userId"):
        return None
    return {"userId": payload["userId"], "email": payload.get("email")}


async def verify_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Security(security)
) -> dict:
    """FastAPI dependency: validate the Authorization: Bearer token."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="No token provided")

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return payload


def get_user_id(token_payload: dict) -> str:
    """Extract user_id from verified token payload."""
    return token_payload["userId"]
