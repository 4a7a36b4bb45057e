"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from plate_randomizer.config import settings
from plate_randomizer.errors import RandomizationError
from plate_randomizer.routers import layout

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Balanced randomization of samples onto microplates",
    version="1.0.0",
    debug=settings.debug
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(layout.router, prefix="/api/layout", tags=["layout"])


@app.exception_handler(RandomizationError)
async def randomization_error_handler(request: Request, exc: RandomizationError):
    """Fatal randomization errors are client errors: the input cannot be placed."""
    logger.error(f"{request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "app": settings.app_name}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
