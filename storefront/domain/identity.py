# storefront/domain/identity.py
from dataclasses import dataclass

from storefront.domain.errors import InputValidationError


@dataclass(frozen=True)
class CartIdentity:
    """Who a cart belongs to. An authenticated user wins over an anonymous session."""

    user_id: str | None = None
    session_id: str | None = None

    def __post_init__(self):
        if not self.user_id and not self.session_id:
            raise InputValidationError("Session information is required")

    @property
    def is_user(self) -> bool:
        return bool(self.user_id)

    @classmethod
    def for_user(cls, user_id: str) -> "CartIdentity":
        return cls(user_id=user_id)

    @classmethod
    def for_session(cls, session_id: str) -> "CartIdentity":
        return cls(session_id=session_id)
