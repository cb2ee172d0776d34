"""
Image storage behind a two-method interface.

    upload(data, folder=..., filename=...) -> public URL
    delete(public_id)

LocalImageStorage writes under UPLOAD_FOLDER and serves files from
IMAGE_BASE_URL. A hosted backend only has to implement the same two methods
and be registered in app.extensions["image_storage"].
"""

from __future__ import annotations

import os
import uuid
from abc import ABC, abstractmethod

from flask import current_app
from werkzeug.utils import secure_filename


ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}


class ImageStorageError(Exception):
    """Raised by storage backends when an upload or delete fails."""


class ImageStorage(ABC):
    @abstractmethod
    def upload(self, data: bytes, *, folder: str, filename: str | None = None) -> str:
        ...

    @abstractmethod
    def delete(self, public_id: str) -> None:
        ...

    @abstractmethod
    def public_id_from_url(self, url: str) -> str | None:
        ...


class LocalImageStorage(ImageStorage):
    """
    Files land in <upload_folder>/<root>/<folder>/<uuid>.<ext>.
    The public id is "<root>/<folder>/<uuid>" (no extension).
    """

    def __init__(self, upload_folder: str, base_url: str, root: str):
        self.upload_folder = upload_folder
        self.base_url = base_url.rstrip("/")
        self.root = root.strip("/")

    def _extension(self, filename: str | None) -> str:
        safe = secure_filename(filename or "")
        ext = safe.rsplit(".", 1)[-1].lower() if "." in safe else ""
        if ext and ext not in ALLOWED_EXTENSIONS:
            raise ImageStorageError(f"Unsupported image type: .{ext}")
        return ext or "jpg"

    def upload(self, data: bytes, *, folder: str, filename: str | None = None) -> str:
        if not data:
            raise ImageStorageError("Empty upload")

        ext = self._extension(filename)
        public_id = f"{self.root}/{folder.strip('/')}/{uuid.uuid4().hex}"
        path = os.path.join(self.upload_folder, *public_id.split("/")) + f".{ext}"

        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(data)

        return f"{self.base_url}/{public_id}.{ext}"

    def _is_safe_public_id(self, public_id: str) -> bool:
        parts = public_id.split("/")
        return parts[0] == self.root and all(part and part not in (".", "..") for part in parts)

    def delete(self, public_id: str) -> None:
        if not public_id or not self._is_safe_public_id(public_id):
            raise ImageStorageError(f"Invalid image id: {public_id}")

        base = os.path.realpath(self.upload_folder)
        directory = os.path.realpath(os.path.join(base, *public_id.split("/")[:-1]))
        if os.path.commonpath([directory, base]) != base:
            raise ImageStorageError(f"Invalid image id: {public_id}")

        stem = public_id.split("/")[-1]
        if not os.path.isdir(directory):
            raise ImageStorageError(f"Image not found: {public_id}")

        matches = [name for name in os.listdir(directory) if name.rsplit(".", 1)[0] == stem]
        if not matches:
            raise ImageStorageError(f"Image not found: {public_id}")
        for name in matches:
            os.remove(os.path.join(directory, name))

    def public_id_from_url(self, url: str) -> str | None:
        """Only URLs this storage issued map to a public id; anything else is None."""
        prefix = f"{self.base_url}/{self.root}/"
        if not url or not url.startswith(prefix):
            return None
        relative = url[len(self.base_url) + 1:]
        public_id = relative.rsplit(".", 1)[0]
        return public_id if self._is_safe_public_id(public_id) else None


def build_image_storage(config) -> ImageStorage:
    return LocalImageStorage(
        upload_folder=config["UPLOAD_FOLDER"],
        base_url=config["IMAGE_BASE_URL"],
        root=config["IMAGE_STORAGE_ROOT"],
    )


def get_image_storage() -> ImageStorage:
    return current_app.extensions["image_storage"]


def delete_images_quietly(urls) -> int:
    """
    Remove stored images, logging and skipping failures.
    Returns the number actually removed.
    """
    storage = get_image_storage()
    removed = 0
    for url in urls:
        if not url:
            continue
        public_id = storage.public_id_from_url(url)
        if public_id is None:
            continue
        try:
            storage.delete(public_id)
            removed += 1
        except Exception:
            current_app.logger.exception("Failed to delete image %s", public_id)
    return removed
