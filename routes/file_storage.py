# routes/file_storage.py
from fastapi import HTTPException
import os
import uuid
import logging

from config import UPLOAD_DIR, UPLOAD_URL_PREFIX
from models.common import utcnow

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def file_extension(filename):
    return os.path.splitext(filename or "")[1].lower()


def validate_uploads(files, allowed_types, max_file_size, max_files):
    """Check count, extension and size of every upload before anything is written."""
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > max_files:
        raise HTTPException(status_code=400, detail=f"Too many files: at most {max_files} allowed")
    allowed = {t.lower() for t in allowed_types}
    for upload in files:
        ext = file_extension(upload.filename)
        if ext not in allowed:
            raise HTTPException(status_code=400, detail=f"File type {ext or '(none)'} not allowed")
        if upload.size is not None and upload.size > max_file_size:
            raise HTTPException(status_code=400, detail=f"File {upload.filename} exceeds the {max_file_size} byte limit")


async def store_uploads(files, max_file_size, upload_dir=None):
    """
    Write uploads to disk and describe them for the submission record.
    Returns:
        list: Dicts with fileName, fileUrl, fileSize and uploadedAt, in upload order.
    """
    upload_dir = upload_dir or os.path.join(UPLOAD_DIR, "dpp-submissions")
    os.makedirs(upload_dir, exist_ok=True)
    stored = []
    written = []
    try:
        for upload in files:
            content = await upload.read()
            if len(content) > max_file_size:
                raise HTTPException(
                    status_code=400, detail=f"File {upload.filename} exceeds the {max_file_size} byte limit"
                )
            filename = f"files-{uuid.uuid4().hex}{file_extension(upload.filename)}"
            path = os.path.join(upload_dir, filename)
            with open(path, "wb") as f:
                f.write(content)
            written.append(path)
            stored.append({
                "fileName": upload.filename,
                "fileUrl": f"{UPLOAD_URL_PREFIX}/{filename}",
                "fileSize": len(content),
                "uploadedAt": utcnow(),
            })
    except HTTPException:
        remove_files(written)
        raise
    logger.info(f"Stored {len(stored)} uploaded file(s) in {upload_dir}")
    return stored


def remove_files(paths):
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


def stored_path(file_url, upload_dir=None):
    upload_dir = upload_dir or os.path.join(UPLOAD_DIR, "dpp-submissions")
    return os.path.join(upload_dir, os.path.basename(file_url))
