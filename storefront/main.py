# storefront/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.api.routers import carts, csrf, health, orders, products, session, users
from storefront.data import models  # noqa: F401  registers every table on Base.metadata
from storefront.data.database import Base, engine
from storefront.domain.errors import CommerceError, ErrorKind
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION: 400,
    ErrorKind.INVALID_TRANSITION: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
    yield


async def commerce_error_handler(request: Request, exc: CommerceError):
    status_code = STATUS_BY_KIND[exc.kind]
    logger.warning(f"{request.method} {request.url.path} -> {status_code} {exc.kind.value}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "kind": exc.kind.value})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors()), "kind": ErrorKind.VALIDATION.value},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(CommerceError, commerce_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Include routers
    app.include_router(health.router)
    app.include_router(csrf.router)
    app.include_router(users.router)
    app.include_router(session.router)
    app.include_router(products.router)
    app.include_router(carts.router)
    app.include_router(orders.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
