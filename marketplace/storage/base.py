from abc import ABC, abstractmethod


class AssetStore(ABC):
    """Original asset bytes by storage key. Only read once access is granted or for preview rendering."""

    @abstractmethod
    def read_original(self, storage_key: str) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def original_url(self, storage_key: str) -> str:
        """URL the delivery boundary hands to full-resolution / print-ready viewers."""
        raise NotImplementedError
