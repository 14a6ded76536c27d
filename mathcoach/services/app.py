"""
Aplicación principal FastAPI de mathcoach.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from mathcoach import __version__
from mathcoach.models.factory import ModelFactory
from mathcoach.services.routers import coach
from mathcoach.utils.logging import get_logger
from mathcoach.utils.metrics import get_coach_metrics

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ciclo de vida de la aplicación."""
    logger.info("service_starting", version=__version__)
    yield
    await ModelFactory.cleanup_all()
    logger.info("service_stopped")


def create_app() -> FastAPI:
    """Crea y configura la aplicación FastAPI."""
    app = FastAPI(
        title="mathcoach API",
        description="Coach de matemáticas que guía sin revelar la respuesta",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(coach.router, prefix="/coach", tags=["Coach"])

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "version": __version__}

    @app.get("/metrics")
    async def metrics_summary():
        return get_coach_metrics().get_summary()

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mathcoach.services.app:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.debug,
    )
