"""
Filesystem blob storage for local development and tests.

Signed links point at the API's /files route; the signature is an
itsdangerous token over {key, filename, ttl}.
"""
import os
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote

from itsdangerous import BadSignature, URLSafeTimedSerializer

from smartlearn.core.config import settings
from smartlearn.storage.base import BlobStorage

_SALT = "smartlearn-blob-link"


class LinkExpired(Exception):
    pass


class LocalStorage(BlobStorage):
    def __init__(self, base_path: str | None = None, base_url: str | None = None):
        self.base_path = Path(base_path or settings.storage_base_path)
        self.base_url = (base_url or settings.public_base_url).rstrip("/")
        self._serializer = URLSafeTimedSerializer(settings.identity_secret, salt=_SALT)

    def path_for(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise ValueError(f"Key escapes storage root: {key!r}")
        return path

    def put(self, key: str, content: bytes, content_type: str) -> str:
        path = self.path_for(key)
        os.makedirs(path.parent, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(content)
        os.replace(tmp, path)
        return key

    def sign(self, key: str, ttl_seconds: int, filename: str | None = None) -> str:
        token = self._serializer.dumps({"key": key, "filename": filename, "ttl": ttl_seconds})
        return f"{self.base_url}/files/{quote(key)}?token={token}"

    def open_link(self, token: str) -> tuple[str, str | None]:
        """Validate a signed link token. Returns (key, filename)."""
        try:
            data, signed_at = self._serializer.loads(token, return_timestamp=True)
        except BadSignature:
            raise LinkExpired("Invalid link")
        age = (datetime.now(timezone.utc) - signed_at).total_seconds()
        if age > int(data.get("ttl", 0)):
            raise LinkExpired("Link expired")
        return data["key"], data.get("filename")

    def head_exists(self, key: str) -> bool:
        return self.path_for(key).is_file()
