from fastapi import Header, HTTPException
from jose import jwt
from jose.exceptions import JOSEError

from hotel_payments.config import get_settings


def verify_token(authorization: str = Header(...)) -> dict:
    """Validate an admin bearer token and return its claims."""
    secret = get_settings().jwt_secret
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer" or not secret:
            raise ValueError(scheme)
        return jwt.decode(token, secret, algorithms=["HS256"])
    except (ValueError, JOSEError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")


def actor_from_claims(claims: dict) -> str:
    return claims.get("sub") or "admin"
