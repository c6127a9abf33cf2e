"""
Object relay: a small HTTP service that forwards one uploaded file per request
to object storage using the relay's own service credentials.

Endpoints:
  POST /upload   multipart/form-data with exactly one part named "file"
                 -> {"success": true, "fileId": ..., "fileUrl": ...}
  GET  /healthz  -> "ok"

Every error is answered as {"success": false, "error": <message>}.
"""

import logging
import os
import tempfile
from typing import Optional

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.datastructures import UploadFile

from ..config import RelaySettings
from .storage import ObjectStorage, build_session, ensure_bucket

logger = logging.getLogger("datasprint.relay")

FILE_FIELD = "file"
CHUNK_SIZE = 1024 * 1024


class UploadRejected(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def build_storage(settings: RelaySettings) -> ObjectStorage:
    settings.validate()
    session = build_session(settings.credentials)
    storage = ObjectStorage(settings.bucket, session=session, region=settings.credentials.region)
    if settings.create_bucket:
        ensure_bucket(storage.client, settings.bucket, storage.region)
    return storage


def _check_extension(filename: str, settings: RelaySettings) -> str:
    ext = os.path.splitext(filename)[1].lower().lstrip(".")
    if settings.allowed_extensions and ext not in settings.allowed_extensions:
        raise UploadRejected(
            415,
            f"File type '.{ext}' is not accepted. Allowed: {', '.join(settings.allowed_extensions)}",
        )
    return ext


async def _spool_to_disk(upload: UploadFile, settings: RelaySettings, suffix: str) -> str:
    """
    Copy the upload to a named temp file, enforcing the size limit.

    The temp file is removed here if the limit is exceeded; otherwise the
    caller owns it and must remove it.
    """
    max_bytes = settings.max_upload_bytes
    fd, path = tempfile.mkstemp(prefix="datasprint-upload-", suffix=suffix, dir=settings.tmp_dir)
    written = 0
    try:
        with os.fdopen(fd, "wb") as out:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise UploadRejected(
                        413, f"File too large. Max allowed: {settings.max_upload_mb}MB"
                    )
                out.write(chunk)
    except BaseException:
        os.remove(path)
        raise
    return path


def create_app(settings: Optional[RelaySettings] = None,
               storage: Optional[ObjectStorage] = None) -> FastAPI:
    """
    Build the relay ASGI app.

    Args:
        settings: Relay settings; read from the environment when omitted
        storage: Object storage to forward to; built from `settings` when omitted

    Raises:
        ConfigurationError: If no storage is given and the settings are incomplete
    """
    settings = settings or RelaySettings.from_env()
    if storage is None:
        storage = build_storage(settings)

    app = FastAPI(title="DataSprint Object Relay")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.storage = storage

    @app.post("/upload")
    async def upload(request: Request):
        form = await request.form()
        try:
            files = [f for f in form.getlist(FILE_FIELD) if isinstance(f, UploadFile)]
            if not files:
                return _error(400, "No file uploaded")
            if len(files) > 1:
                return _error(400, f"Exactly one '{FILE_FIELD}' part is accepted, got {len(files)}")

            upload_file = files[0]
            filename = os.path.basename(upload_file.filename or "")
            if not filename:
                return _error(400, "No file uploaded")

            tmp_path = None
            try:
                ext = _check_extension(filename, settings)
                tmp_path = await _spool_to_disk(upload_file, settings, f".{ext}" if ext else "")
                stored = await run_in_threadpool(
                    storage.put, tmp_path, filename, upload_file.content_type, settings.folder
                )
            except UploadRejected as e:
                logger.warning(f"Rejected upload {filename!r}: {e.message}")
                return _error(e.status_code, e.message)
            except (ClientError, BotoCoreError, S3UploadFailedError) as e:
                logger.error(f"Storage provider failed for {filename!r}: {e}")
                return _error(500, str(e))
            except Exception as e:
                logger.exception(f"Forwarding {filename!r} failed")
                return _error(500, str(e) or e.__class__.__name__)
            finally:
                if tmp_path and os.path.exists(tmp_path):
                    os.remove(tmp_path)
        finally:
            await form.close()

        return {"success": True, "fileId": stored.file_id, "fileUrl": stored.file_url}

    @app.api_route("/upload", methods=["GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS"])
    async def upload_method_not_allowed():
        return _error(405, "Method not allowed")

    @app.get("/healthz")
    async def health():
        return PlainTextResponse("ok")

    return app
