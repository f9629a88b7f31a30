"""Service catalog: marketplace services and plans generated from Atlas offerings.

Flow:
  1. Walk PROVIDER_NAMES in order (this is the listing order).
  2. Fetch each provider's current instance sizes from the offering source.
  3. Emit one Service per provider and one ServicePlan per instance size,
     with IDs from the identifier codec below.

Service and plan IDs are derived from provider and instance size names
only, so they are stable across builds and restarts. Resolving an ID pair
re-fetches the offerings and compares IDs; nothing is parsed or cached.
"""

from internal.atlas.base import OfferingSource
from internal.models.types import (
    InstanceSize, Provider, ProviderName, Service, ServicePlan,
)

# ID_PREFIX is prepended to service and plan IDs to keep them globally unique.
ID_PREFIX = "aosb-cluster"
ID_SEPARATOR = "-"

# All providers on which clusters may be provisioned. Instance sizes for
# each one are fetched dynamically.
PROVIDER_NAMES = tuple(ProviderName)


class CatalogError(Exception):
    pass


class UnknownOfferingError(CatalogError):
    """The service/plan ID pair matches no offering Atlas currently reports."""

    def __init__(self, service_id: str, plan_id: str):
        super().__init__(f"invalid service ID {service_id!r} or plan ID {plan_id!r}")
        self.service_id = service_id
        self.plan_id = plan_id


class InvalidOfferingNameError(CatalogError):
    pass


class DuplicateOfferingError(CatalogError):
    pass


# ── Identifier codec ─────────────────────────────────────────────────────────

def _id_component(name: str, what: str) -> str:
    if not name:
        raise InvalidOfferingNameError(f"{what} name must not be empty")
    if ID_SEPARATOR in name:
        raise InvalidOfferingNameError(
            f"{what} name {name!r} contains the ID separator {ID_SEPARATOR!r}"
        )
    return name.lower()


def service_id_for_provider(provider: Provider) -> str:
    """Generate a globally unique ID for a provider."""
    return ID_SEPARATOR.join(
        (ID_PREFIX, "service", _id_component(provider.name, "provider"))
    )


def plan_id_for_instance_size(provider: Provider, instance_size: InstanceSize) -> str:
    """Generate a globally unique ID for an instance size on a specific provider."""
    return ID_SEPARATOR.join((
        ID_PREFIX,
        "plan",
        _id_component(provider.name, "provider"),
        _id_component(instance_size.name, "instance size"),
    ))


# ── Catalog ──────────────────────────────────────────────────────────────────

def build_catalog(source: OfferingSource) -> list[Service]:
    """Generate the service catalog presented to broker consumers.

    The first offering source error propagates; no partial catalog is
    ever returned.
    """
    services = []
    seen_service_ids = set()

    for provider_name in PROVIDER_NAMES:
        provider = source.get_provider(provider_name)

        service_id = service_id_for_provider(provider)
        if service_id in seen_service_ids:
            raise DuplicateOfferingError(f"provider {provider.name!r} is reported twice")
        seen_service_ids.add(service_id)

        # CLI-friendly name shown in the marketplace.
        catalog_name = f"mongodb-atlas-{provider.name.lower()}"

        services.append(Service(
            id=service_id,
            name=catalog_name,
            description=f'Atlas cluster hosted on "{provider.name}"',
            plans=plans_for_provider(provider),
        ))

    return services


def plans_for_provider(provider: Provider) -> tuple:
    """Convert a provider's instance sizes to service plans, in upstream order."""
    plans = []
    seen = {}

    for instance_size in provider.instance_sizes:
        plan_id = plan_id_for_instance_size(provider, instance_size)
        if plan_id in seen:
            raise DuplicateOfferingError(
                f"instance sizes {seen[plan_id]!r} and {instance_size.name!r} on "
                f"{provider.name!r} differ only by case"
            )
        seen[plan_id] = instance_size.name

        plans.append(ServicePlan(
            id=plan_id,
            name=instance_size.name,
            description=f'Instance size "{instance_size.name}"',
        ))

    return tuple(plans)


def resolve_offering(source: OfferingSource, service_id: str, plan_id: str) -> tuple:
    """Find the provider and instance size matching a service and plan ID.

    Returns (Provider, InstanceSize). Raises UnknownOfferingError when no
    current offering matches.
    """
    for provider_name in PROVIDER_NAMES:
        provider = source.get_provider(provider_name)
        if service_id_for_provider(provider) != service_id:
            continue

        for instance_size in provider.instance_sizes:
            if plan_id_for_instance_size(provider, instance_size) == plan_id:
                return provider, instance_size

    raise UnknownOfferingError(service_id, plan_id)
