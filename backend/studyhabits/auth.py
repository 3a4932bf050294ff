"""Bearer-token authentication for the study-habits API.

Tokens are HS256 JWTs issued by `services.AuthService` and carry the
user's id and username. `get_current_user` is the FastAPI dependency every
protected route uses; it raises `AuthenticationError` (401) for a missing,
malformed or expired token and for a token whose account has since been
deleted.
"""

from typing import Optional

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .database import get_session
from .errors import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """Verify `token` against the configured secret and return its claims."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError('Token expired')
    except jwt.InvalidTokenError:
        raise AuthenticationError('Invalid token')


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """Resolve the bearer token of the request to a stored `User`."""
    if credentials is None:
        raise AuthenticationError('Not authenticated')
    claims = decode_token(credentials.credentials)
    user_id = claims.get('user_id')
    if not isinstance(user_id, str) or not user_id:
        raise AuthenticationError('Invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if user is None:
        raise AuthenticationError('User not found')
    return user
