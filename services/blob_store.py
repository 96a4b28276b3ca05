# services/blob_store.py
# Uploaded report photos, stored on local disk and referenced by filename
import os
import secrets
import time
import logging

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from errors import InvalidUpload, StorageError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB


class LocalBlobStore:
    def __init__(self, directory: str = "uploads", max_bytes: int = MAX_FILE_SIZE):
        self.directory = directory
        self.max_bytes = max_bytes
        os.makedirs(directory, exist_ok=True)
        logger.info(f"Ensured upload directory exists: {directory}")

    def generate_filename(self, original_name: str) -> str:
        file_ext = os.path.splitext(original_name or "")[1].lower()
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{file_ext}"

    def path_for(self, filename: str) -> str:
        return os.path.join(self.directory, filename)

    async def save(self, upload: UploadFile) -> str:
        """Validate and store an uploaded image, returning its filename"""
        content_type = upload.content_type or ""
        if not content_type.startswith("image/"):
            logger.info(f"Rejected upload with content type '{content_type}'")
            raise InvalidUpload()

        # Starlette has already spooled the whole part to a temporary file by
        # now; this bounds what we read into memory and keep, not what the
        # server receives. One byte past the limit is enough to reject it.
        data = await upload.read(self.max_bytes + 1)
        if len(data) > self.max_bytes:
            logger.info(f"Rejected upload larger than {self.max_bytes} bytes")
            raise InvalidUpload(f"File too large. Maximum size: {self.max_bytes // (1024 * 1024)}MB")

        filename = self.generate_filename(upload.filename)
        try:
            await run_in_threadpool(self._write, self.path_for(filename), data)
        except OSError as e:
            logger.error(f"Error saving upload {filename}: {e}")
            raise StorageError("Upload failed") from e
        return filename

    def _write(self, file_path: str, data: bytes) -> None:
        with open(file_path, "wb") as buffer:
            buffer.write(data)

    async def discard(self, filename: str) -> None:
        file_path = self.path_for(filename)
        if os.path.exists(file_path):
            await run_in_threadpool(os.remove, file_path)
