import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docsign.auth.router import router as auth_router
from docsign.common.logging import configure_logging
from docsign.config import settings
from docsign.dependencies import viewers
from docsign.documents.router import router as documents_router
from docsign.middleware import CorrelationIDMiddleware
from docsign.signatures.router import router as signatures_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    logger.info("Starting %s %s (%s)", settings.app_name, settings.app_version, settings.environment)
    yield
    viewers.close()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    # /api/docs is the documents API
    docs_url="/api/swagger",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
app.include_router(documents_router, prefix="/api/docs", tags=["Documents"])
app.include_router(signatures_router, prefix="/api/signatures", tags=["Signatures"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "version": settings.app_version}
