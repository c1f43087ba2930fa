"""Image upload storage on local disk."""

import logging
import secrets
import time
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class UploadError(Exception):
    """An upload was rejected or could not be stored."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class UploadStore:
    """
    Stores uploaded files under one directory and hands out their URLs.

    Files are renamed to ``<millis>-<random hex>.<ext>`` so names from the
    client never reach the filesystem.
    """

    DEFAULT_EXTENSION = "jpg"

    def __init__(self, upload_dir: str, url_prefix: str = "/uploads"):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = "/" + url_prefix.strip("/")

    def _extension(self, filename: Optional[str]) -> str:
        if filename and "." in filename:
            ext = filename.rsplit(".", 1)[1].lower()
            if ext.isalnum() and len(ext) <= 5:
                return ext
        return self.DEFAULT_EXTENSION

    def save(self, file_storage: Any) -> Dict[str, str]:
        """
        Store one uploaded file.

        Args:
            file_storage: A werkzeug FileStorage (anything with ``filename``
                          and ``save(path)``)

        Returns:
            {"url": "/uploads/<name>"}

        Raises:
            UploadError: 400 when no file was sent, 500 when it could not be written
        """
        if file_storage is None or not getattr(file_storage, "filename", ""):
            raise UploadError(400, "Ingen filer mottatt")

        name = f"{int(time.time() * 1000)}-{secrets.token_hex(6)}.{self._extension(file_storage.filename)}"
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            file_storage.save(str(self.upload_dir / name))
        except OSError as e:
            logger.error(f"Upload failed for {file_storage.filename}: {e}")
            raise UploadError(500, "Upload failed") from e

        logger.info(f"Stored upload {name}")
        return {"url": f"{self.url_prefix}/{name}"}

    def path_for(self, url: str) -> Optional[Path]:
        """Local path of a URL this store handed out, or None for any other URL."""
        if not isinstance(url, str) or not url.startswith(self.url_prefix + "/"):
            return None
        name = url[len(self.url_prefix) + 1:]
        if not name or "/" in name or "\\" in name or name.startswith("."):
            return None
        return self.upload_dir / name

    def delete_best_effort(self, url: str) -> bool:
        """
        Remove a stored upload, best effort.

        Never raises: an unknown URL or a failed delete is logged and
        reported as False. Callers use this when an image is dropped from a
        draft and must not be blocked by cleanup.
        """
        path = self.path_for(url)
        if path is None:
            logger.debug(f"Not an upload URL, nothing to delete: {url!r}")
            return False
        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Could not delete upload {path}: {e}")
            return False
        logger.info(f"Deleted upload {path.name}")
        return True
