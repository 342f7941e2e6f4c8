from abc import ABC, abstractmethod
from typing import Optional

from repogen.domain.models import PackageMap, Source


class CacheStore(ABC):
    """
    Abstract base class for per-source parse result caches.
    """

    @abstractmethod
    def get(self, source: Source) -> Optional[PackageMap]:
        """Return the cached packages for `source`, or None on a miss."""
        pass

    @abstractmethod
    def put(self, source: Source, packages: PackageMap) -> None:
        """Store the packages parsed from `source`."""
        pass

    @abstractmethod
    def invalidate(self, locator: Optional[str] = None) -> bool:
        """
        Drop cached entries: all of them, or only those of `locator`.
        Returns False if the cache could not be cleaned.
        """
        pass
