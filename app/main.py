import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from app.shared.config import Settings, STORAGE_DIR, settings as default_settings
from app.shared.db import Database
from app.shared.errors import AppError
from app.shared.http import app_error_handler, error_body
from app.payments.gateway import StripeGateway

# Routers Import
from app.auth.api import router as auth_router
from app.users.api import router as users_router
from app.issues.api import router as issues_router
from app.timeline.api import router as timeline_router
from app.payments.api import router as payments_router
from app.admin.api import router as admin_router

logger = logging.getLogger(__name__)

TAGS_METADATA = [
    {"name": "Auth", "description": "Identity accounts and bearer tokens"},
    {"name": "Users", "description": "Profiles, roles and blocking"},
    {"name": "Issues", "description": "Report, track and resolve infrastructure issues"},
    {"name": "Timeline", "description": "Audit trail of every action on an issue"},
    {"name": "Payments", "description": "Boosts, premium subscriptions and invoices"},
    {"name": "Admin", "description": "Dashboard numbers"},
    {"name": "Health", "description": "Service health"},
]

PUBLIC_PATHS = ["/healthz", "/auth/register", "/auth/token", "/payments/webhook"]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None, payment_gateway=None) -> FastAPI:
    settings = settings or default_settings
    _configure_logging(settings.LOG_LEVEL)

    if settings.DATABASE_URL.startswith("sqlite:///") and STORAGE_DIR.as_posix() in settings.DATABASE_URL:
        STORAGE_DIR.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.db.create_all()
        logger.info("database ready (%s)", app.state.db.engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            app.state.db.dispose()

    app = FastAPI(
        title="Civic Issue Reporting API",
        version="1.0.0",
        description="Report public infrastructure issues and follow them to resolution.",
        openapi_tags=TAGS_METADATA,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = Database(settings.DATABASE_URL)
    app.state.payment_gateway = payment_gateway or StripeGateway(
        settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body("Internal server error", code="internal_error"))

    @app.get("/healthz", tags=["Health"])
    def healthz():
        return {"ok": True}

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(issues_router)
    app.include_router(timeline_router)
    app.include_router(payments_router)
    app.include_router(admin_router)

    # --- Custom OpenAPI: add bearerAuth as the default for everything but public paths ---
    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )
        schema.setdefault("components", {}).setdefault("securitySchemes", {})
        schema["components"]["securitySchemes"]["bearerAuth"] = {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
        for path, ops in schema.get("paths", {}).items():
            if path in PUBLIC_PATHS:
                continue
            for op in ops.values():
                op.setdefault("security", [{"bearerAuth": []}])
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi
    return app


app = create_app()
