from abc import ABC, abstractmethod

from internal.models.types import Provider, ProviderName


class OfferingSource(ABC):
    """Read-only view of the offerings the upstream currently sells."""

    @abstractmethod
    def get_provider(self, name: ProviderName) -> Provider:
        raise NotImplementedError
