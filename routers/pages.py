import os

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from constants import INDEX_FILE, STATIC_DIR
from logging_config import get_logger

logger = get_logger(__name__)

pages_router = APIRouter(tags=["pages"])


@pages_router.get("/", include_in_schema=False)
async def index():
    """Serve the browser client's root document."""
    index_path = os.path.join(STATIC_DIR, INDEX_FILE)
    if not os.path.isfile(index_path):
        logger.warning(f"Index document not found at {index_path}")
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(index_path, media_type="text/html")
