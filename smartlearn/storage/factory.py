from smartlearn.core.config import settings
from smartlearn.storage.base import BlobStorage


def get_storage() -> BlobStorage:
    if settings.storage_backend == "r2":
        from smartlearn.storage.r2 import R2Storage

        return R2Storage()
    from smartlearn.storage.local import LocalStorage

    return LocalStorage()
