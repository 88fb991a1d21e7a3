"""
Request authentication gate

authenticate() resolves the caller from a bearer header or a `token` cookie
and returns an AuthResult instead of touching the request. The protect and
require_user dependencies turn a rejected result into a 401.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request, status

from config import Settings
from database import USERS, Database, get_db, parse_object_id
from security import decode_access_token

logger = logging.getLogger(__name__)

NOT_AUTHORIZED = "Not authorized to access this route"

# Fields never handed to route handlers
PRIVATE_USER_FIELDS = {"password": 0, "resetOTP": 0, "resetOTPExpire": 0}


@dataclass
class AuthResult:
    """Outcome of authenticating one request.

    A rejected result carries a reason. An authenticated result carries the
    token subject and the user document, which is None when the user was
    deleted after the token was issued.
    """
    user_id: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.reason is None

    @classmethod
    def rejected(cls, reason: str) -> "AuthResult":
        return cls(reason=reason)


def extract_token(request: Request) -> Optional[str]:
    """Header first, cookie second. A `Bearer` header without a token yields None."""
    authorization = request.headers.get("authorization")
    if authorization and authorization.startswith("Bearer"):
        parts = authorization.split(" ")
        return parts[1] if len(parts) > 1 and parts[1] else None
    return request.cookies.get("token")


def find_user(db: Database, user_id: Any) -> Optional[Dict[str, Any]]:
    oid = parse_object_id(user_id)
    if oid is None:
        return None
    return db[USERS].find_one({"_id": oid}, PRIVATE_USER_FIELDS)


def authenticate(request: Request, settings: Settings, db: Database) -> AuthResult:
    token = extract_token(request)
    if not token:
        return AuthResult.rejected("missing token")

    try:
        payload = decode_access_token(token, settings)
    except jwt.ExpiredSignatureError:
        return AuthResult.rejected("token expired")
    except jwt.InvalidTokenError as e:
        return AuthResult.rejected(f"invalid token: {e}")

    user_id = payload.get("id")
    if parse_object_id(user_id) is None:
        return AuthResult.rejected("token subject is not a user id")

    return AuthResult(user_id=str(user_id), user=find_user(db, user_id))


def protect(request: Request, db: Database = Depends(get_db)) -> AuthResult:
    result = authenticate(request, request.app.state.settings, db)
    if not result.authenticated:
        logger.info(f"Rejected {request.method} {request.url.path}: {result.reason}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NOT_AUTHORIZED)
    return result


def require_user(auth: AuthResult = Depends(protect)) -> Dict[str, Any]:
    """Current user document; a token whose user no longer exists is rejected."""
    if auth.user is None:
        logger.info(f"Token subject {auth.user_id} has no user document")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NOT_AUTHORIZED)
    return auth.user
