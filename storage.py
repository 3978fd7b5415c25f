import logging
from typing import List, Optional

import gridfs
from gridfs.errors import NoFile
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel
from pymongo.database import Database

from auth import UserOut, require_admin
from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/storage", tags=["storage"])


class BatchUrlRequest(BaseModel):
    storage_ids: List[str]


def _parse_id(storage_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(storage_id)
    except (InvalidId, TypeError):
        return None


def store_file(db: Database, content: bytes, filename: Optional[str], content_type: Optional[str]) -> str:
    fs = gridfs.GridFS(db)
    file_id = fs.put(content, filename=filename, metadata={"content_type": content_type or "application/octet-stream"})
    return str(file_id)


def file_url(db: Database, request: Request, storage_id: str) -> Optional[str]:
    oid = _parse_id(storage_id)
    if oid is None or not gridfs.GridFS(db).exists(oid):
        return None
    return str(request.url_for("download_file", storage_id=storage_id))


@router.post("", status_code=201)
def upload_file(file: UploadFile = File(...), admin: UserOut = Depends(require_admin),
                db: Database = Depends(get_db)):
    content = file.file.read()
    if not content:
        raise HTTPException(400, "Uploaded file is empty")
    storage_id = store_file(db, content, file.filename, file.content_type)
    logger.info("Stored %s (%d bytes) as %s", file.filename, len(content), storage_id)
    return {"storage_id": storage_id}


@router.post("/urls")
def get_batch_urls(payload: BatchUrlRequest, request: Request, db: Database = Depends(get_db)):
    return {sid: file_url(db, request, sid) for sid in payload.storage_ids}


@router.get("/{storage_id}/url")
def get_file_url(storage_id: str, request: Request, db: Database = Depends(get_db)):
    return {"storage_id": storage_id, "url": file_url(db, request, storage_id)}


@router.get("/{storage_id}", name="download_file")
def download_file(storage_id: str, db: Database = Depends(get_db)):
    oid = _parse_id(storage_id)
    if oid is None:
        raise HTTPException(404, "File not found")
    try:
        grid_out = gridfs.GridFS(db).get(oid)
    except NoFile:
        raise HTTPException(404, "File not found")
    media_type = (grid_out.metadata or {}).get("content_type", "application/octet-stream")
    return Response(content=grid_out.read(), media_type=media_type)
