import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from ats.api.errors import register_exception_handlers
from ats.api.v1 import auth, resumes
from ats.config import Settings, settings as default_settings
from ats.services.container import Services

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """
    Build the API. Pass ``services`` to run against pre-built clients (tests);
    otherwise the lifespan builds them from ``settings`` and closes them on shutdown.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "services", None) is None:
            settings.validate_production_config()
            owned = await Services.start(settings)
            app.state.services = owned
        yield
        if owned is not None:
            await owned.aclose()
            app.state.services = None

    app = FastAPI(
        title="ATS API",
        description="Applicant tracking backend: sessions and résumé storage",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services
    register_exception_handlers(app)
    app.add_middleware(SecurityHeadersMiddleware)
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(resumes.router, prefix="/api/v1")

    @app.get("/")
    def root():
        return {"message": "ATS API"}

    @app.get("/health")
    def health(request: Request):
        return {"status": "ok"}

    return app


app = create_app()
