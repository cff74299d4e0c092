from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
from app.api.v1.api import api_router
from app.core.config import settings
from app.services.container import Services, build_services
from app.services.stats_service import initialize_app_stats
import logging
import os

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return "; ".join(messages) or "Invalid request"


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the API; ``services`` replaces the ones built from settings at startup."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Gateway to identity, document, AI, assistant, transcription and payment providers",
        version="1.0.0",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json"
    )
    app.state.services = services

    @app.on_event("startup")
    async def startup_services():
        if app.state.services is None:
            app.state.services = build_services(settings)
        await app.state.services.store.connect()
        if settings.INITIALIZE_APP_STATS:
            await initialize_app_stats(app.state.services.store)

    @app.on_event("shutdown")
    async def shutdown_services():
        if app.state.services is not None:
            await app.state.services.store.close()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": _validation_message(exc)}
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"}
        )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.PROJECT_NAME} API",
            "docs": "/docs",
            "version": "1.0.0"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


logger.info(f"Starting application on port {os.environ.get('PORT', 'unknown')}...")
app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 10000))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
