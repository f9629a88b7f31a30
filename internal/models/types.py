"""Data types for the Atlas service broker.

Two families of types live here:
  - Upstream offerings (Provider, InstanceSize) as reported by Atlas
  - Marketplace entities (Service, ServicePlan) as shown to broker consumers

All of them are built fresh per catalog build or resolution call and are
never mutated afterwards.
"""

from dataclasses import dataclass, field
from enum import Enum


class ProviderName(str, Enum):
    """Cloud providers on which clusters may be provisioned.

    Declaration order is the marketplace listing order.
    """
    AWS = "AWS"
    GCP = "GCP"
    AZURE = "AZURE"


@dataclass(frozen=True)
class InstanceSize:
    """A purchasable cluster size on a single provider (e.g. M10)."""
    name: str
    available_regions: tuple = ()  # region names, in upstream order
    default_region: str = ""

    def pick_region(self, requested: str = "") -> str:
        """Return the region a new cluster of this size should live in.

        An explicit request must be one of the available regions when the
        upstream reported any. Returns "" when nothing can be chosen.
        """
        if requested:
            if self.available_regions and requested not in self.available_regions:
                return ""
            return requested
        if self.default_region:
            return self.default_region
        return self.available_regions[0] if self.available_regions else ""


@dataclass(frozen=True)
class Provider:
    """A cloud provider and the instance sizes Atlas currently offers on it."""
    name: str
    instance_sizes: tuple = ()


@dataclass(frozen=True)
class ServicePlan:
    """Marketplace plan: one instance size of one provider."""
    id: str
    name: str
    description: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}


@dataclass(frozen=True)
class Service:
    """Marketplace service: one provider with its plans."""
    id: str
    name: str
    description: str
    plans: tuple = field(default_factory=tuple)
    bindable: bool = True
    instances_retrievable: bool = False
    bindings_retrievable: bool = False
    plan_updateable: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "bindable": self.bindable,
            "instances_retrievable": self.instances_retrievable,
            "bindings_retrievable": self.bindings_retrievable,
            "plan_updateable": self.plan_updateable,
            "plans": [p.to_dict() for p in self.plans],
        }
