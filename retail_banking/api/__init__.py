"""
Retail Banking API Application Factory
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .integration import router as integration_router
from .schemas import ApiResponse
from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format)

    app = FastAPI(
        title="Retail Banking Integration API",
        description="Customer holdings and savings origination for financial group services",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies get the envelope instead of FastAPI's default shape"""
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
            for error in exc.errors()
        )
        body = ApiResponse.error(f"Invalid request: {errors}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())

    # Include routers
    app.include_router(integration_router, prefix="/api/integration", tags=["Integration"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "retail_banking_api",
            "version": __version__
        }

    return app


def run_server(host: str = "0.0.0.0", port: int = 8080, debug: bool = False,
               workers: int = 1, log_level: str = "info"):
    """Run the FastAPI server"""
    uvicorn.run(
        "retail_banking.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        workers=workers,
        log_level=log_level
    )
