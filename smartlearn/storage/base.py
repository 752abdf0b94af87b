from abc import ABC, abstractmethod


class BlobStorage(ABC):
    @abstractmethod
    def put(self, key: str, content: bytes, content_type: str) -> str:
        """Store content under key; returns the key."""
        raise NotImplementedError

    @abstractmethod
    def sign(self, key: str, ttl_seconds: int, filename: str | None = None) -> str:
        """Time-limited download URL. filename sets the attachment name."""
        raise NotImplementedError

    @abstractmethod
    def head_exists(self, key: str) -> bool:
        raise NotImplementedError
