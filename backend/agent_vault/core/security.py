"""
Security module - caller authentication.

The HTTP surface resolves the transaction caller from a signed JWT whose
`sub` claim is the caller's principal. Tokens are minted out of band
(wallet bridge, admin tooling, tests) with `create_access_token`.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ValidationError

from .config import get_settings

ACCESS_TOKEN_TYPE = "access"


class TokenData(BaseModel):
    """Decoded caller token"""

    sub: str  # caller principal
    exp: datetime
    iat: datetime
    type: str = ACCESS_TOKEN_TYPE
    jti: Optional[str] = None


def create_access_token(principal: str, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token identifying `principal` as the transaction caller"""
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)

    claims = {
        "sub": principal,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "type": ACCESS_TOKEN_TYPE,
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, token_type: str = ACCESS_TOKEN_TYPE) -> TokenData:
    """
    Decode a caller token.

    Raises:
        JWTError: If the signature, expiry, type or claims are invalid
    """
    settings = get_settings()

    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise JWTError("Token has expired")

    if claims.get("type") != token_type:
        raise JWTError(f"Invalid token type: expected {token_type}")
    if not claims.get("sub"):
        raise JWTError("Token has no subject")

    try:
        return TokenData.model_validate(claims)
    except ValidationError as e:
        raise JWTError(f"Invalid token claims: {e.error_count()} error(s)")
