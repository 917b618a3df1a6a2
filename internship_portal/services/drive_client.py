"""
Google Drive Client - hosts uploaded assignment files.

Upload flow:
1. multipart upload (metadata + bytes) -> file id
2. grant "anyone with the link" reader permission
3. return the shareable view link
"""
import json
import logging
from typing import Optional

import httpx

from internship_portal.core.config import get_settings
from internship_portal.core.exceptions import CollaboratorUnavailable

logger = logging.getLogger(__name__)

VIEW_URL = "https://drive.google.com/file/d/{file_id}/view"


class GoogleDriveClient:

    def __init__(
        self,
        access_token: str,
        upload_url: str,
        api_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.access_token = access_token
        self.upload_url = upload_url
        self.api_url = api_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout, transport=transport)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"}

    def upload(self, filename: str, content: bytes, mime_type: str = "application/octet-stream") -> str:
        """Upload a file, make it publicly readable and return its link."""
        metadata = {"name": filename, "mimeType": mime_type}
        try:
            response = self.client.post(
                self.upload_url,
                params={"uploadType": "multipart", "fields": "id"},
                headers=self._headers(),
                files={
                    "metadata": ("metadata", json.dumps(metadata), "application/json"),
                    "file": (filename, content, mime_type),
                },
            )
            response.raise_for_status()
            file_id = response.json()["id"]

            permission = self.client.post(
                f"{self.api_url}/{file_id}/permissions",
                headers=self._headers(),
                json={"role": "reader", "type": "anyone"},
            )
            permission.raise_for_status()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error("Drive upload of %s failed: %s", filename, e, exc_info=True)
            raise CollaboratorUnavailable("File storage", "upload") from e

        logger.info("Uploaded %s to Drive as %s", filename, file_id)
        return VIEW_URL.format(file_id=file_id)

    def close(self) -> None:
        self.client.close()


def get_drive_client() -> GoogleDriveClient:
    settings = get_settings()
    return GoogleDriveClient(
        access_token=settings.drive_access_token,
        upload_url=settings.drive_upload_url,
        api_url=settings.drive_api_url,
        timeout=settings.drive_timeout_seconds,
    )
