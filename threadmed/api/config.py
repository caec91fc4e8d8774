"""
Configuration API endpoints.
"""

from fastapi import APIRouter
from pydantic import BaseModel
import logging

from threadmed.config.settings import get_settings

router = APIRouter()
logger = logging.getLogger(__name__)


class ConfigResponse(BaseModel):
    """Current configuration response."""
    api_version: str
    zotero_api_url: str
    page_size: int
    max_retries: int
    db_path: str
    pdf_dir: str


@router.get("/config", response_model=ConfigResponse)
async def get_config():
    """
    Get current configuration.

    Note: Changes require editing .env or the environment and restarting.
    """
    settings = get_settings()

    return ConfigResponse(
        api_version=settings.version,
        zotero_api_url=settings.zotero_api_url,
        page_size=settings.zotero_page_size,
        max_retries=settings.zotero_max_retries,
        db_path=str(settings.db_path),
        pdf_dir=str(settings.pdf_dir),
    )


@router.get("/version")
async def get_version():
    """
    Get backend API version.

    Returns:
        API version information.
    """
    settings = get_settings()
    return {
        "api_version": settings.version,
        "service": "ThreadMed Sync API"
    }
