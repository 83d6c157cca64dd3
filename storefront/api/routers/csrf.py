# storefront/api/routers/csrf.py
from fastapi import APIRouter, Request, Response

from storefront.domain.schemas import CsrfOut
from storefront.utils.security import csrf_cookie, generate_csrf_token
from storefront.utils.settings import CSRF_COOKIE_NAME

router = APIRouter(tags=["csrf"])


@router.get("/csrf", response_model=CsrfOut)
def get_csrf_token(request: Request, response: Response):
    token = request.cookies.get(CSRF_COOKIE_NAME) or generate_csrf_token()
    response.set_cookie(**csrf_cookie(token))
    return {"success": True, "token": token}
