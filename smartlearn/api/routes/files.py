"""
Signed-link downloads for the local filesystem storage backend.
R2 links are presigned S3 URLs and never reach this route.
"""
from fastapi import APIRouter, Query
from fastapi.responses import FileResponse

from smartlearn.core.config import settings
from smartlearn.core.errors import NotFound, Unauthorized
from smartlearn.storage.local import LinkExpired, LocalStorage


router = APIRouter(tags=["files"])


@router.get("/files/{key:path}")
def download_file(key: str, token: str = Query(...)) -> FileResponse:
    if settings.storage_backend != "local":
        raise NotFound("Not found")
    storage = LocalStorage()
    try:
        signed_key, filename = storage.open_link(token)
    except LinkExpired as e:
        raise Unauthorized(str(e), code="LINK_INVALID")
    if signed_key != key or not storage.head_exists(key):
        raise NotFound("File not found", code="FILE_NOT_FOUND")
    return FileResponse(storage.path_for(key), filename=filename, media_type="application/octet-stream")
