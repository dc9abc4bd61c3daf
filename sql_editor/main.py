"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sql_editor.api.endpoints import query
from sql_editor.core.config import settings
from sql_editor.core.log import configure_logging
from sql_editor.db.session import ConnectionProvider, create_engine
from sql_editor.services.query_service import build_query_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    configure_logging(settings.LOG_LEVEL)
    provider = ConnectionProvider(create_engine(settings))
    app.state.query_service = build_query_service(settings, provider)
    logger.info("Query service started (schema=%s)", settings.DATABASE_SCHEMA)
    try:
        yield
    finally:
        await app.state.query_service.shutdown()
        await provider.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Run read-only SQL in the background, page through the results, export CSV.",
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query.router, prefix=f"{settings.API_V1_STR}/query", tags=["query"])


@app.get("/", tags=["health"])
async def health_check() -> dict:
    return {"status": "online", "project": settings.PROJECT_NAME}
