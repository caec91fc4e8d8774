"""
FastAPI application entry point for the ThreadMed sync backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import sys

from threadmed.config.settings import get_settings
from threadmed.api import config, papers, sync
from threadmed.api.dependencies import get_sync_engine, reset_dependencies

# Get settings to access log configuration
settings = get_settings()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Configure logging with both console and file output
# Use UTF-8 encoding to handle Unicode characters in paper titles
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.DEBUG)
console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
# Ensure UTF-8 encoding for console output on Windows
if hasattr(console_handler.stream, 'reconfigure'):
    try:
        console_handler.stream.reconfigure(encoding='utf-8', errors='replace')
    except Exception:
        pass  # Ignore if reconfigure fails

handlers = [console_handler]

# Only add file handler if log_file is set and not empty
# Note: Path("") becomes Path(".") so we need to check for that too
log_file_str = str(settings.log_file).strip() if settings.log_file else ""
if log_file_str and log_file_str != ".":
    file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers.append(file_handler)

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format=LOG_FORMAT,
    handlers=handlers,
    force=True  # Override any existing configuration
)

# Suppress overly verbose third-party loggers
logging.getLogger("aiohttp").setLevel(logging.INFO)
logging.getLogger("asyncio").setLevel(logging.INFO)

# Route Uvicorn's loggers through the root logger's handlers and format
for name in ("uvicorn.access", "uvicorn.error"):
    uvicorn_logger = logging.getLogger(name)
    uvicorn_logger.handlers = []
    uvicorn_logger.propagate = True

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting ThreadMed sync backend v{settings.version}")
    logger.info(f"Library database: {settings.db_path}")
    logger.info(f"PDF directory: {settings.pdf_dir}")
    if settings.log_file:
        logger.info(f"Logging to file: {settings.log_file}")

    status = get_sync_engine().get_status()
    if status.connected:
        logger.info(
            f"Zotero user {status.user_id} connected "
            f"(library version {status.library_version}, last sync {status.last_sync})"
        )
    else:
        logger.info("Not connected to Zotero")

    yield
    reset_dependencies()
    logger.info("Shutting down ThreadMed sync backend")


# Create FastAPI app
app = FastAPI(
    title="ThreadMed Sync API",
    description="Synchronizes a local literature library with a Zotero user library",
    version=settings.version,
    lifespan=lifespan
)

# Configure CORS (the desktop UI talks to this server locally)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(config.router, prefix="/api", tags=["config"])
app.include_router(sync.router, prefix="/api", tags=["sync"])
app.include_router(papers.router, prefix="/api", tags=["papers"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "ThreadMed Sync API",
        "version": settings.version,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


def run():
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run("threadmed.main:app", host=settings.api_host, port=settings.api_port)
