"""
users/photos.py — Photo storage behind one small capability interface


Purpose
===============================================================================
Users carry an optional `photo` reference. Where the bytes live is a deployment
choice (PHOTO_STORAGE_MODE):

    local → MEDIA_ROOT/uploads/<uuid><ext>   reference "/uploads/<uuid><ext>"
    s3    → s3://<bucket>/user-photos/<uuid><ext>
                                              reference "/user-photos/<uuid><ext>"

Both backends sit on Django's Storage API (FileSystemStorage / django-storages
S3Storage), so the rest of the app only talks to PhotoStore:

    put(upload)          -> reference
    put_bytes(data, fn)  -> reference (no upload validation; used by migrations)
    get(reference)       -> bytes
    delete(reference)    -> None
    resolve_url(ref)     -> public URL (absolute when a request is given)
    describe()           -> dict for /api/upload-info/

Maintenance helpers (management commands): owns(), exists(), size(),
list_references(), and reference_kind() to tell which backend a row points at.

Legacy references
- Older rows may hold a full S3 URL
  (https://<bucket>.s3.<region>.amazonaws.com/user-photos/<file>). The S3 store
  maps those back to their key; resolve_url returns them untouched.

Uploads are validated before anything is written (image/* content type,
allowed extension, size cap). Backend faults surface as PhotoStorageError.
"""

import logging
import os
import re
import uuid
from urllib.parse import urlparse

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.files.base import ContentFile
from django.core.files.storage import FileSystemStorage

from .exceptions import PhotoStorageError, ValidationError

logger = logging.getLogger(__name__)


def validate_upload(upload):
    """Raise ValidationError({"photo": [...]}) unless `upload` is an acceptable image."""
    if upload is None:
        raise ValidationError({"photo": ["No file was submitted."]})

    errors = []
    content_type = (getattr(upload, "content_type", "") or "").lower()
    if not content_type.startswith("image/"):
        errors.append("Only image uploads are allowed (jpg, png, gif, webp).")

    ext = os.path.splitext(upload.name or "")[1].lower().lstrip(".")
    allowed = settings.PHOTO_ALLOWED_EXTENSIONS
    if ext not in allowed:
        errors.append(f"Unsupported file extension. Allowed: {', '.join(allowed)}.")

    max_size = settings.PHOTO_MAX_UPLOAD_SIZE
    if upload.size is not None and upload.size > max_size:
        errors.append(f"File too large. Maximum size is {max_size // (1024 * 1024)}MB.")

    if errors:
        raise ValidationError({"photo": errors})


class PhotoStore:
    """Base for photo backends. Subclasses provide `storage` and the key layout."""

    mode = None
    prefix = None
    storage_errors = (OSError,)

    def __init__(self, storage):
        self.storage = storage

    # ---- reference <-> storage name ---- #
    def _reference_for(self, name):
        return "/" + name

    def _name_for(self, reference):
        if not reference:
            return None
        name = reference.lstrip("/")
        if re.fullmatch(rf"{re.escape(self.prefix)}/[\w.-]+", name) and ".." not in name:
            return name
        return None

    def _new_name(self, upload):
        ext = os.path.splitext(upload.name or "")[1].lower()
        return f"{self.prefix}/{uuid.uuid4()}{ext}"

    # ---- capability interface ---- #
    def put(self, upload) -> str:
        validate_upload(upload)
        return self._save(upload)

    def put_bytes(self, data, filename) -> str:
        """Store already-validated bytes (e.g. a photo copied from the other backend)."""
        return self._save(ContentFile(data, name=filename))

    def _save(self, content):
        try:
            name = self.storage.save(self._new_name(content), content)
        except self.storage_errors as exc:
            logger.exception("Photo upload to %s storage failed", self.mode)
            raise PhotoStorageError() from exc
        logger.info("Stored photo %s (%s bytes) in %s storage", name, content.size, self.mode)
        return self._reference_for(name)

    def owns(self, reference) -> bool:
        return self._name_for(reference) is not None

    def exists(self, reference) -> bool:
        name = self._name_for(reference)
        if name is None:
            return False
        try:
            return self.storage.exists(name)
        except self.storage_errors as exc:
            raise PhotoStorageError(f"Could not check photo {reference}") from exc

    def size(self, reference) -> int:
        try:
            return self.storage.size(self._name_for(reference))
        except self.storage_errors as exc:
            raise PhotoStorageError(f"Could not stat photo {reference}") from exc

    def list_references(self) -> list:
        """Every stored photo under this backend's prefix, as references."""
        try:
            _, files = self.storage.listdir(self.prefix)
        except FileNotFoundError:
            return []
        except self.storage_errors as exc:
            raise PhotoStorageError(f"Could not list {self.prefix}/") from exc
        allowed = {f".{ext}" for ext in settings.PHOTO_ALLOWED_EXTENSIONS}
        return sorted(
            self._reference_for(f"{self.prefix}/{filename}")
            for filename in files
            if os.path.splitext(filename)[1].lower() in allowed
        )

    def get(self, reference) -> bytes:
        name = self._name_for(reference)
        if name is None:
            raise PhotoStorageError(f"Unknown photo reference: {reference}")
        try:
            with self.storage.open(name, "rb") as fh:
                return fh.read()
        except self.storage_errors as exc:
            raise PhotoStorageError(f"Could not read photo {reference}") from exc

    def delete(self, reference) -> None:
        name = self._name_for(reference)
        if name is None:
            logger.debug("Not deleting foreign photo reference %r", reference)
            return
        try:
            self.storage.delete(name)
        except self.storage_errors as exc:
            raise PhotoStorageError(f"Could not delete photo {reference}") from exc

    def discard(self, reference) -> bool:
        """Best-effort delete of a replaced photo; failures are only logged."""
        if not reference:
            return False
        try:
            self.delete(reference)
        except PhotoStorageError as exc:
            logger.warning("Could not remove old photo %s: %s", reference, exc.__cause__ or exc)
            return False
        return True

    def resolve_url(self, reference, request=None):
        if not reference:
            return None
        name = self._name_for(reference)
        url = self.storage.url(name) if name else reference
        if request is not None and url.startswith("/"):
            return request.build_absolute_uri(url)
        return url

    def describe(self) -> dict:
        return {
            "mode": self.mode,
            "max_file_size": settings.PHOTO_MAX_UPLOAD_SIZE,
            "max_file_size_mb": settings.PHOTO_MAX_UPLOAD_SIZE // (1024 * 1024),
            "allowed_types": list(settings.PHOTO_ALLOWED_EXTENSIONS),
            "upload_path": f"/{self.prefix}/",
        }


class LocalPhotoStore(PhotoStore):
    mode = "local"
    prefix = "uploads"

    def __init__(self, location=None, base_url=None):
        super().__init__(FileSystemStorage(
            location=location or settings.MEDIA_ROOT,
            base_url=base_url or settings.MEDIA_URL,
        ))

    def describe(self) -> dict:
        info = super().describe()
        info["location"] = str(self.storage.path(self.prefix))
        return info


class S3PhotoStore(PhotoStore):
    mode = "s3"
    prefix = "user-photos"

    def __init__(self, storage=None):
        from botocore.exceptions import BotoCoreError, ClientError
        from storages.backends.s3 import S3Storage

        self.storage_errors = (BotoCoreError, ClientError, OSError)
        super().__init__(storage or S3Storage())

    def _name_for(self, reference):
        if reference and reference.startswith(("http://", "https://")):
            parsed = urlparse(reference)
            if not parsed.netloc.endswith("amazonaws.com"):
                return None
            reference = parsed.path
        return super()._name_for(reference)

    def resolve_url(self, reference, request=None):
        if reference and reference.startswith(("http://", "https://")):
            return reference
        return super().resolve_url(reference, request)

    def describe(self) -> dict:
        info = super().describe()
        info.update({
            "bucket": self.storage.bucket_name,
            "region": getattr(settings, "AWS_S3_REGION_NAME", None),
        })
        try:
            self.storage.connection.meta.client.head_bucket(Bucket=self.storage.bucket_name)
        except self.storage_errors as exc:
            logger.warning("S3 bucket check failed for %s: %s", self.storage.bucket_name, exc)
            info.update({"status": "error", "error": str(exc)})
        else:
            info["status"] = "connected"
        return info


def reference_kind(reference):
    """Classify a stored reference: "local", "s3", "legacy" (full S3 URL), "unknown" or None."""
    if not reference:
        return None
    if reference.startswith(f"/{LocalPhotoStore.prefix}/"):
        return "local"
    if reference.startswith(f"/{S3PhotoStore.prefix}/"):
        return "s3"
    if "amazonaws.com" in reference:
        return "legacy"
    return "unknown"


def get_photo_store(mode=None) -> PhotoStore:
    """Backend for `mode`, or for the current PHOTO_STORAGE_MODE (read on every call)."""
    mode = mode or settings.PHOTO_STORAGE_MODE
    if mode == "local":
        return LocalPhotoStore()
    if mode == "s3":
        return S3PhotoStore()
    raise ImproperlyConfigured(f"PHOTO_STORAGE_MODE must be 'local' or 's3', got {mode!r}")


def copy_photo(reference, target: PhotoStore) -> str:
    """
    Copy the bytes behind `reference` into `target` under a fresh key and return
    the new reference. The source object is left in place.
    """
    kind = reference_kind(reference)
    if kind in (None, "unknown"):
        raise PhotoStorageError(f"Unknown photo reference: {reference}")
    source = get_photo_store("local" if kind == "local" else "s3")
    data = source.get(reference)
    filename = os.path.basename(urlparse(reference).path)
    return target.put_bytes(data, filename)
