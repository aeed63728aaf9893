"""Serve objects from the local storage backend behind signed URLs."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from idolmedia.api.deps import get_services
from idolmedia.services.registry import MediaServices
from idolmedia.storage.local import LocalStorageBackend

router = APIRouter(tags=["objects"])
logger = logging.getLogger(__name__)


@router.get("/objects/{key:path}")
async def read_object(
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    services: MediaServices = Depends(get_services),
) -> FileResponse:
    backend = services.backend
    if not isinstance(backend, LocalStorageBackend):
        raise HTTPException(status_code=404, detail="Not found")
    if not backend.verify_signature(key, expires, signature):
        logger.warning("Rejected object read with bad or expired signature", extra={"key": key})
        raise HTTPException(status_code=403, detail="Invalid or expired signature")

    try:
        path = backend.path_for(key)
    except ValueError:
        raise HTTPException(status_code=404, detail="Not found")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Object not found")
    return FileResponse(path)
