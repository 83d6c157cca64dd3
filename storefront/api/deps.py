# storefront/api/deps.py
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.enums import UserType
from storefront.domain.identity import CartIdentity
from storefront.repos.user_repo import UserRepo
from storefront.services.session_service import SessionStore
from storefront.utils.security import SAFE_METHODS, tokens_match
from storefront.utils.settings import (
    CSRF_COOKIE_NAME,
    CSRF_ENABLED,
    CSRF_HEADER_NAME,
    SESSION_COOKIE_NAME,
)

USER_HEADER = "x-user-id"
SESSION_HEADER = "x-session-id"


@dataclass
class RequestIdentity:
    user_id: str | None = None
    session_id: str | None = None
    is_admin: bool = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def cart_identity(self) -> CartIdentity:
        # raises InputValidationError when the request carries neither
        return CartIdentity(user_id=self.user_id, session_id=self.session_id)


def get_session_store() -> SessionStore:
    return SessionStore()


def get_identity(
    request: Request,
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
) -> RequestIdentity:
    """
    Resolve who is calling.

    - user: X-User-Id header, must match a registered user
    - session: the session cookie when Redis still knows it, otherwise the
      X-Session-Id header sent by non-browser clients
    """
    identity = RequestIdentity()

    user_id = request.headers.get(USER_HEADER)
    if user_id:
        user = UserRepo(db).get_user(user_id)
        if not user:
            raise HTTPException(status_code=401, detail="Unknown user")
        identity.user_id = user.id
        identity.is_admin = user.type == UserType.ADMIN.value

    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token and store.get_session(token):
        identity.session_id = token
    else:
        identity.session_id = request.headers.get(SESSION_HEADER)

    return identity


def require_user(identity: RequestIdentity = Depends(get_identity)) -> RequestIdentity:
    if not identity.is_authenticated:
        raise HTTPException(status_code=401, detail="Authentication required")
    return identity


def require_admin(identity: RequestIdentity = Depends(require_user)) -> RequestIdentity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return identity


def verify_csrf(request: Request) -> None:
    if not CSRF_ENABLED or request.method in SAFE_METHODS:
        return
    if not tokens_match(request.cookies.get(CSRF_COOKIE_NAME), request.headers.get(CSRF_HEADER_NAME)):
        raise HTTPException(status_code=403, detail="Invalid CSRF token")
