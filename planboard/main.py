import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from planboard.api.v1.routes import dashboards, health
from planboard.errors import PlanboardError
from planboard.modules.dashboards.adapters.sqlalchemy_repository import DashboardRecord  # noqa: F401
from planboard.shared.infrastructure.database import Base, engine
from planboard.shared.infrastructure.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _resolve_cors_origins() -> list[str]:
    if settings.cors_origins:
        return settings.cors_origins
    if settings.environment in {"development", "test"}:
        return ["http://localhost:3000", "http://127.0.0.1:3000"]
    return []


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level)
    Base.metadata.create_all(bind=engine)

    docs_enabled = not settings.is_production
    app = FastAPI(
        title="Planboard",
        description="Dashboard builder engine: widgets, layout, data resolution and filters",
        version="0.1.0",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_resolve_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PlanboardError)
    async def handle_planboard_error(_request: Request, exc: PlanboardError) -> JSONResponse:
        logger.warning(
            "planboard.handled_error | %s",
            {
                "error_id": exc.error_id,
                "code": exc.code,
                "status_code": exc.status_code,
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": exc.code, "message": exc.message, "error_id": exc.error_id}},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(_request: Request, exc: Exception) -> JSONResponse:
        error_id = str(uuid.uuid4())
        logger.exception("planboard.unhandled_error | %s", {"error_id": error_id})
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "internal_error",
                    "message": "Unexpected internal error",
                    "error_id": error_id,
                }
            },
        )

    app.include_router(health.router)
    app.include_router(dashboards.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("planboard.main:app", host=settings.api_host, port=settings.api_port)
