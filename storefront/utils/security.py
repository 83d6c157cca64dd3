# storefront/utils/security.py
import secrets

from storefront.utils.settings import COOKIE_SECURE, CSRF_COOKIE_NAME

TOKEN_LENGTH = 32
SAFE_METHODS = ("GET", "HEAD", "OPTIONS")


def generate_csrf_token() -> str:
    return secrets.token_hex(TOKEN_LENGTH)


def csrf_cookie(token: str) -> dict:
    return {
        "key": CSRF_COOKIE_NAME,
        "value": token,
        "httponly": True,
        "secure": COOKIE_SECURE,
        "samesite": "strict",
        "path": "/",
    }


def tokens_match(cookie_token: str | None, header_token: str | None) -> bool:
    # double submit cookie: cookie and header must carry the same token
    if not cookie_token or not header_token:
        return False
    return secrets.compare_digest(cookie_token, header_token)
