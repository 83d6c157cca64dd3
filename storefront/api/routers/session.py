# storefront/api/routers/session.py
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from storefront.api.deps import RequestIdentity, get_identity, get_session_store, verify_csrf
from storefront.data.database import get_db
from storefront.domain.schemas import MigrateSessionIn, MigrateSessionOut, SessionOut
from storefront.services.cart_service import CartService
from storefront.services.session_service import SessionStore
from storefront.utils.logging import get_logger
from storefront.utils.settings import COOKIE_SECURE, SESSION_COOKIE_NAME, SESSION_MAX_AGE

logger = get_logger(__name__)

router = APIRouter(prefix="/session", tags=["session"], dependencies=[Depends(verify_csrf)])


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


@router.post("", response_model=SessionOut)
def create_session(
    response: Response,
    identity: RequestIdentity = Depends(get_identity),
    store: SessionStore = Depends(get_session_store),
):
    token = store.create_session(user_id=identity.user_id)
    set_session_cookie(response, token)
    return {"success": True, "token": token}


@router.post("/migrate", response_model=MigrateSessionOut)
def migrate_session(
    payload: MigrateSessionIn,
    response: Response,
    identity: RequestIdentity = Depends(get_identity),
    store: SessionStore = Depends(get_session_store),
    db: Session = Depends(get_db),
):
    """
    Issues a fresh session id and moves the guest cart of the old one over.
    The old session is dropped so its id cannot be reused.
    """
    token = store.create_session(user_id=identity.user_id)
    migrated = CartService(db).reassign_session(payload.old_session_id, token)
    store.delete_session(payload.old_session_id)

    logger.info(f"Migrated session {payload.old_session_id} -> {token} (cart moved: {migrated})")
    set_session_cookie(response, token)
    return {"success": True, "token": token, "migrated": migrated}
