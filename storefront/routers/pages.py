"""Static entry page and health check."""
from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from storefront.config import Settings
from storefront.errors import ERROR_NOT_FOUND, NotFoundError
from storefront.routers.deps import get_app_settings

router = APIRouter(tags=["pages"])


@router.get("/health")
async def health_check():
    return {"status": "ok"}


@router.get("/", include_in_schema=False)
async def index(settings: Settings = Depends(get_app_settings)):
    page = Path(settings.static_dir) / "index.html"
    if not page.is_file():
        raise NotFoundError(ERROR_NOT_FOUND)
    return FileResponse(page, media_type="text/html")
