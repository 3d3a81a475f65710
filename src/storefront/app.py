"""Storefront FastAPI application.

Processes commands synchronously over HTTP. Every request runs inside the
storefront domain context with a request id bound to the structlog context.

Usage:
    uvicorn storefront.app:app --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from storefront.api import register_storefront_exception_handlers, routers
from storefront.domain import logger, storefront
from storefront.utils.logging import add_context, clear_context


def create_app(init_domain: bool = True) -> FastAPI:
    """Build the application.

    ``init_domain=False`` is for callers (tests) that have already
    initialized the domain themselves.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # PROTEAN_ENV selects the domain.toml overlay (memory, sqlite, production)
        if init_domain:
            storefront.init()
        logger.info("app.started", domain=storefront.name)
        yield

    app = FastAPI(
        title="Storefront API",
        description="Orders, payments, inventory and returns",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Push the domain context and bind request-scoped log fields."""
        clear_context()
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        add_context(request_id=request_id, path=request.url.path)
        with storefront.domain_context():
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    for router in routers:
        app.include_router(router)

    register_exception_handlers(app)
    register_storefront_exception_handlers(app)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": storefront.name})

    return app


app = create_app()
