"""Client for the external media store (Cloudinary REST API)."""

import hashlib
import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import BinaryIO

import httpx
from fastapi import HTTPException, UploadFile

from coursehub.core import config

logger = logging.getLogger(__name__)

IMAGE = "image"
VIDEO = "video"
GENERIC_CONTENT_TYPE = "application/octet-stream"


class MediaStoreError(Exception):
    """Raised when an upload or delete against the media store fails."""


@dataclass(frozen=True)
class MediaAsset:
    secure_url: str
    public_id: str
    resource_type: str = IMAGE
    duration: float | None = None


class CloudinaryMediaStore:
    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "",
        base_url: str = config.CLOUDINARY_API_BASE_URL,
        timeout: float = config.MEDIA_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._cloud_name = cloud_name
        self._api_key = api_key
        self._api_secret = api_secret
        self._folder = folder
        self._client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/{cloud_name}",
            timeout=timeout,
            transport=transport,
        )

    def _ensure_configured(self) -> None:
        if not (self._cloud_name and self._api_key and self._api_secret):
            raise MediaStoreError("Media store is not configured")

    def sign(self, params: dict) -> str:
        to_sign = "&".join(
            f"{key}={value}" for key, value in sorted(params.items()) if value not in (None, "")
        )
        return hashlib.sha1(f"{to_sign}{self._api_secret}".encode("utf-8")).hexdigest()

    def _signed(self, params: dict) -> dict:
        params = {key: value for key, value in params.items() if value not in (None, "")}
        params["timestamp"] = str(int(time.time()))
        params["signature"] = self.sign(params)
        params["api_key"] = self._api_key
        return params

    def _post(self, path: str, data: dict, files: dict | None = None) -> dict:
        try:
            response = self._client.post(path, data=data, files=files)
        except httpx.HTTPError as exc:
            raise MediaStoreError(f"Media store request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_error:
            message = body.get("error", {}).get("message") or response.text
            raise MediaStoreError(f"Media store rejected the request ({response.status_code}): {message}")
        return body

    def upload(
        self,
        file: BinaryIO,
        filename: str,
        content_type: str | None = None,
        resource_type: str = IMAGE,
    ) -> MediaAsset:
        self._ensure_configured()
        data = self._signed({"folder": self._folder})
        body = self._post(
            f"/{resource_type}/upload",
            data=data,
            files={"file": (filename, file, content_type or GENERIC_CONTENT_TYPE)},
        )
        if not body.get("secure_url") or not body.get("public_id"):
            raise MediaStoreError("Media store response is missing the asset reference")
        return MediaAsset(
            secure_url=body["secure_url"],
            public_id=body["public_id"],
            resource_type=body.get("resource_type", resource_type),
            duration=body.get("duration"),
        )

    def delete(self, public_id: str, resource_type: str = IMAGE) -> None:
        self._ensure_configured()
        body = self._post(
            f"/{resource_type}/destroy",
            data=self._signed({"public_id": public_id}),
        )
        result = body.get("result")
        if result == "not found":
            logger.warning("Media asset %s was already gone from the store", public_id)
        elif result != "ok":
            raise MediaStoreError(f"Could not delete media asset {public_id}: {result}")


@lru_cache
def get_media_store() -> CloudinaryMediaStore:
    return CloudinaryMediaStore(
        cloud_name=config.CLOUDINARY_CLOUD_NAME,
        api_key=config.CLOUDINARY_API_KEY,
        api_secret=config.CLOUDINARY_API_SECRET,
        folder=config.MEDIA_FOLDER,
    )


def ensure_upload_type(upload: UploadFile, resource_type: str) -> None:
    content_type = upload.content_type
    if content_type and content_type != GENERIC_CONTENT_TYPE and not content_type.startswith(f"{resource_type}/"):
        raise HTTPException(status_code=400, detail=f"Expected a {resource_type} file")


def upload_file(media_store, upload: UploadFile, resource_type: str) -> MediaAsset:
    """Check an incoming upload's declared type and push it to the store."""
    ensure_upload_type(upload, resource_type)
    return media_store.upload(
        upload.file,
        filename=upload.filename or "upload",
        content_type=upload.content_type,
        resource_type=resource_type,
    )
