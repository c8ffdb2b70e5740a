# =============================================================================
# FastAPI Application - Entry Point
# =============================================================================
#
# Assembles the routers, maps domain errors to HTTP statuses and configures
# logging. Run with:
#   uvicorn findocai.main:app --reload
#
# ERROR MAPPING:
#   NotFoundError        → 404 (unknown, or owned by another user)
#   InvalidArgumentError → 400
#   pydantic validation  → 422 (FastAPI default)
#   missing X-User-Id    → 401 (api/deps.py)
#   LLM not configured   → 503 (api/deps.py)
# =============================================================================

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from findocai.api.chat import router as chat_router
from findocai.api.embeddings import router as embeddings_router
from findocai.config import settings
from findocai.errors import InvalidArgumentError, NotFoundError
from findocai.models.responses import HealthResponse

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    """Root logging at settings.log_level, one format for API and workers."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc) or "Not found"})


async def _invalid_argument_handler(
    request: Request, exc: InvalidArgumentError,
) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc) or "Invalid argument"})


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Conversational Q&A over your uploaded financial documents, "
            "with answers grounded in and cited from those documents."
        ),
        version=settings.app_version,
    )

    app.add_exception_handler(NotFoundError, _not_found_handler)
    app.add_exception_handler(InvalidArgumentError, _invalid_argument_handler)

    app.include_router(chat_router)
    app.include_router(embeddings_router)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(version=settings.app_version, service=settings.app_name)

    logger.info(
        "%s v%s ready (storage=%s, embeddings=%s, llm=%s)",
        settings.app_name, settings.app_version,
        settings.storage_backend, settings.embedding_provider, settings.llm_provider,
    )
    return app


configure_logging()
app = create_app()
