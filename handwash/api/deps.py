"""Common API dependencies: caller identity, store and dispatcher."""

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from handwash.database import get_session
from handwash.services.notification_service import NotificationDispatcher
from handwash.store import KeyValueStore
from handwash.utils.security import decode_token

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Caller:
    sub: str
    email: Optional[str] = None


def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Caller:
    """Extract the verified subject from the bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )
    try:
        payload = decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    return Caller(sub=str(payload["sub"]), email=payload.get("email"))


def get_store(session: Session = Depends(get_session)) -> KeyValueStore:
    return KeyValueStore(session)


def get_dispatcher(
    request: Request,
    store: KeyValueStore = Depends(get_store),
) -> NotificationDispatcher:
    """Dispatcher bound to this request's store and the process-wide VAPID credentials."""
    return NotificationDispatcher(store, request.app.state.vapid_credentials)
