"""
Local-disk asset store: originals under settings.storage_base_path,
served to entitled viewers from settings.asset_public_base_url.
"""
import logging
import os

from marketplace.core.config import settings
from marketplace.ledger.errors import DependencyUnavailable, ValidationError
from marketplace.storage.base import AssetStore

logger = logging.getLogger(__name__)


class LocalAssetStore(AssetStore):
    def __init__(self, base_path: str | None = None, public_base_url: str | None = None) -> None:
        self.base_path = os.path.abspath(base_path or settings.storage_base_path)
        self.public_base_url = (public_base_url or settings.asset_public_base_url).rstrip("/")

    def _path(self, storage_key: str) -> str:
        path = os.path.abspath(os.path.join(self.base_path, storage_key))
        if os.path.commonpath([path, self.base_path]) != self.base_path:
            raise ValidationError(f"Invalid storage key: {storage_key}")
        return path

    def read_original(self, storage_key: str) -> bytes:
        path = self._path(storage_key)
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            logger.error("asset_store_read_failed", extra={"path": path, "error": str(e)})
            raise DependencyUnavailable(f"Asset store unavailable for {storage_key}") from e

    def original_url(self, storage_key: str) -> str:
        self._path(storage_key)
        return f"{self.public_base_url}/{storage_key.lstrip('/')}"
