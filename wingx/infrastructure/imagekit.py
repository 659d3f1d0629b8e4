"""ImageKit upload client and upload-signature issuer.

Every upload first fetches a short-lived `{token, expire, signature}` triple
from the authentication endpoint, then posts the file to ImageKit's upload API.
"""

import hashlib
import hmac
import time
import uuid
import logging
from typing import Optional

import httpx

from wingx.domain.errors import UploadError

logger = logging.getLogger(__name__)

UPLOAD_FAILED = "No se pudo subir la imagen"


def sign_upload(private_key: str, ttl_seconds: int = 600, token: Optional[str] = None,
                expire: Optional[int] = None) -> dict:
    """HMAC-SHA1 of `token + expire` keyed with the private key (ImageKit's scheme)."""
    token = token or str(uuid.uuid4())
    expire = expire or int(time.time()) + ttl_seconds
    signature = hmac.new(private_key.encode("utf-8"), f"{token}{expire}".encode("utf-8"), hashlib.sha1).hexdigest()
    return {"token": token, "expire": expire, "signature": signature}


class ImageKitUploader:
    def __init__(
        self,
        public_key: str,
        upload_url: str,
        auth_url: str,
        folder: str = "/catalogo",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.public_key = public_key
        self.upload_url = upload_url
        self.auth_url = auth_url
        self.folder = folder
        self.timeout = timeout
        self.transport = transport

    async def upload(self, content: bytes, file_name: str, content_type: str = "application/octet-stream") -> str:
        """Upload one file and return its public URL."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                auth_resp = await client.get(self.auth_url)
                if auth_resp.status_code != 200:
                    logger.error(f"Upload auth endpoint answered {auth_resp.status_code}")
                    raise UploadError(UPLOAD_FAILED)
                auth = auth_resp.json()
                resp = await client.post(
                    self.upload_url,
                    data={
                        "fileName": file_name,
                        "folder": self.folder,
                        "publicKey": self.public_key,
                        "signature": auth["signature"],
                        "expire": str(auth["expire"]),
                        "token": auth["token"],
                    },
                    files={"file": (file_name, content, content_type)},
                )
            except (httpx.HTTPError, KeyError, ValueError) as e:
                logger.error(f"Upload transport error: {e}")
                raise UploadError(UPLOAD_FAILED) from e
        if resp.status_code not in (200, 201):
            logger.error(f"ImageKit rejected upload: HTTP {resp.status_code} {resp.text[:200]}")
            raise UploadError(UPLOAD_FAILED)
        url = resp.json().get("url")
        if not url:
            raise UploadError(UPLOAD_FAILED)
        return url
