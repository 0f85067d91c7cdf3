"""Commerce FastAPI application.

Commands are processed synchronously inside the request. Every request runs
in the ``commerce`` domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from commerce.domain import commerce
from commerce.utils.logging import bind_request_context, clear_request_context, configure_logging

configure_logging()

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV selects the domain.toml overlay (memory by default, PostgreSQL
# in production).
commerce.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Commerce API",
    description="Order lifecycle, inventory and payment reconciliation",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the commerce domain context and a request id for each request."""
    clear_request_context()
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    bind_request_context(request_id=request_id, path=request.url.path)
    with commerce.domain_context():
        response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


# ---------------------------------------------------------------------------
# Routers and error handlers
# ---------------------------------------------------------------------------
from commerce.api.errors import register_error_handlers  # noqa: E402
from commerce.api.routes import gateway_router, order_router, pricing_router, webhook_router  # noqa: E402

register_error_handlers(app)
app.include_router(order_router)
app.include_router(webhook_router)
app.include_router(gateway_router)
app.include_router(pricing_router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": commerce.name})
