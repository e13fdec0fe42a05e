"""UploadThing REST client used for avatars and case documents."""
import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from app import config

logger = logging.getLogger(__name__)

UPLOADTHING_HOSTS = ("utfs.io", "uploadthing.com")
UPLOADTHING_HOST_SUFFIXES = (".ufs.sh", ".utfs.io", ".uploadthing.com")


class UploadError(Exception):
    pass


@dataclass
class UploadedFile:
    key: str
    url: str
    name: str
    size: int
    content_type: str


def _headers() -> dict:
    if not config.UPLOADTHING_SECRET:
        raise UploadError("UploadThing is not configured")
    return {"x-uploadthing-api-key": config.UPLOADTHING_SECRET, "Content-Type": "application/json"}


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=4),
    retry=retry_if_exception_type(requests.ConnectionError),
    reraise=True,
)
def _post(path: str, payload: dict) -> dict:
    response = requests.post(f"{config.UPLOADTHING_API_URL}{path}", json=payload, headers=_headers(), timeout=30)
    if response.status_code >= 400:
        raise UploadError(f"UploadThing {path} failed: {response.status_code} {response.text[:200]}")
    return response.json()


def upload_file(content: bytes, filename: str, content_type: str) -> UploadedFile:
    """Request a presigned slot then push the bytes to it.

    Any transport failure surfaces as ``UploadError``.
    """
    try:
        presigned = _post("/v6/uploadFiles", {
            "files": [{"name": filename, "size": len(content), "type": content_type}],
            "acl": "public-read",
            "contentDisposition": "inline",
        })
    except requests.RequestException as e:
        raise UploadError(f"UploadThing request failed: {e}") from e
    try:
        slot = presigned["data"][0]
    except (KeyError, IndexError):
        raise UploadError("UploadThing returned no upload slot")

    try:
        upload = requests.post(
            slot["url"],
            data=slot.get("fields", {}),
            files={"file": (filename, content, content_type)},
            timeout=60,
        )
    except requests.RequestException as e:
        raise UploadError(f"Upload to storage failed: {e}") from e
    if upload.status_code >= 400:
        raise UploadError(f"Upload to storage failed: {upload.status_code}")

    file_url = slot.get("fileUrl") or f"https://utfs.io/f/{slot['key']}"
    logger.info(f"Uploaded {filename} to UploadThing as {slot['key']}")
    return UploadedFile(key=slot["key"], url=file_url, name=filename, size=len(content), content_type=content_type)


def delete_files(keys: List[str]) -> None:
    if not keys:
        return
    _post("/v6/deleteFiles", {"fileKeys": keys})
    logger.info(f"Deleted {len(keys)} file(s) from UploadThing")


def is_uploadthing_url(url: Optional[str]) -> bool:
    if not url:
        return False
    host = (urlparse(url).hostname or "").lower()
    return host in UPLOADTHING_HOSTS or host.endswith(UPLOADTHING_HOST_SUFFIXES)


def file_key_from_url(url: str) -> Optional[str]:
    """UploadThing URLs end in the file key: https://utfs.io/f/<key>."""
    if not is_uploadthing_url(url):
        return None
    segments = [segment for segment in urlparse(url).path.split("/") if segment]
    return segments[-1] if segments else None
