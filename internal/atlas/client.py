"""HTTP client for the MongoDB Atlas public API.

Handles:
  - Provider offerings (instance sizes per cloud provider) for the catalog
  - Cluster create / resize / delete / status for provisioning
  - Database users for service bindings

Every failure (transport, timeout, auth, non-2xx) surfaces as AtlasError.
No response is cached: each call hits Atlas.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from internal.atlas.base import OfferingSource
from internal.models.types import InstanceSize, Provider, ProviderName

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://cloud.mongodb.com/api/atlas/v1.0"
DEFAULT_TIMEOUT_SECONDS = 10.0

# Database user bindings authenticate against this database.
AUTH_DATABASE = "admin"
BINDING_ROLE = "readWriteAnyDatabase"


class AtlasError(Exception):
    """An Atlas API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AtlasClient(OfferingSource):
    def __init__(
        self,
        group_id: str,
        public_key: str,
        private_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.group_id = group_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._auth = httpx.DigestAuth(public_key, private_key)

    # ── Offerings ────────────────────────────────────────────────────────────

    def get_provider(self, name: ProviderName) -> Provider:
        """Fetch the instance sizes Atlas currently offers on a provider."""
        provider_name = ProviderName(name).value
        body = self._request(
            "GET",
            self._group_path("clusters/provider/regions"),
            params={"providerName": provider_name},
        )

        results = body.get("results") or []
        if not results:
            return Provider(name=provider_name)

        entry = results[0]
        return Provider(
            name=entry.get("provider", provider_name),
            instance_sizes=tuple(
                _instance_size_from_json(raw) for raw in entry.get("instanceSizes", [])
            ),
        )

    # ── Clusters ─────────────────────────────────────────────────────────────

    def get_cluster(self, name: str) -> Optional[Dict[str, Any]]:
        """Fetch a cluster by name. Returns None if it does not exist."""
        try:
            return self._request("GET", self._group_path(f"clusters/{name}"))
        except AtlasError as exc:
            if exc.status_code == 404:
                return None
            raise

    def create_cluster(self, name: str, provider: Provider, instance_size: InstanceSize, region: str) -> Dict[str, Any]:
        logger.info(
            "Creating cluster %s on %s (%s, %s)", name, provider.name, instance_size.name, region,
        )
        return self._request(
            "POST",
            self._group_path("clusters"),
            json={
                "name": name,
                "providerSettings": {
                    "providerName": provider.name,
                    "instanceSizeName": instance_size.name,
                    "regionName": region,
                },
            },
        )

    def update_cluster(self, name: str, provider: Provider, instance_size: InstanceSize) -> Dict[str, Any]:
        logger.info("Resizing cluster %s to %s", name, instance_size.name)
        return self._request(
            "PATCH",
            self._group_path(f"clusters/{name}"),
            json={
                "providerSettings": {
                    "providerName": provider.name,
                    "instanceSizeName": instance_size.name,
                },
            },
        )

    def delete_cluster(self, name: str) -> None:
        logger.info("Deleting cluster %s", name)
        try:
            self._request("DELETE", self._group_path(f"clusters/{name}"))
        except AtlasError as exc:
            if exc.status_code == 404:
                return  # already gone
            raise

    # ── Database users ───────────────────────────────────────────────────────

    def create_database_user(self, username: str, password: str, cluster_name: str) -> Dict[str, Any]:
        """Create a database user that can only reach the given cluster."""
        return self._request(
            "POST",
            self._group_path("databaseUsers"),
            json={
                "databaseName": AUTH_DATABASE,
                "username": username,
                "password": password,
                "roles": [{"databaseName": AUTH_DATABASE, "roleName": BINDING_ROLE}],
                "scopes": [{"name": cluster_name, "type": "CLUSTER"}],
            },
        )

    def delete_database_user(self, username: str) -> None:
        try:
            self._request("DELETE", self._group_path(f"databaseUsers/{AUTH_DATABASE}/{username}"))
        except AtlasError as exc:
            if exc.status_code == 404:
                return
            raise

    # ── Transport ────────────────────────────────────────────────────────────

    def _group_path(self, suffix: str) -> str:
        return f"{self.base_url}/groups/{self.group_id}/{suffix}"

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            with httpx.Client(auth=self._auth, timeout=self.timeout) as client:
                response = client.request(method, url, headers={"Accept": "application/json"}, **kwargs)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status != 404:
                logger.error("Atlas %s %s failed with %s: %s", method, url, status, exc.response.text)
            raise AtlasError(
                f"Atlas API {method} {url} returned {status}: {_error_detail(exc.response)}",
                status_code=status,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Atlas %s %s failed: %s", method, url, exc)
            raise AtlasError(f"Atlas API {method} {url} failed: {exc}") from exc

        if not response.content:
            return {}
        return response.json()


def _instance_size_from_json(raw: dict) -> InstanceSize:
    regions = raw.get("availableRegions", [])
    default = next((r["name"] for r in regions if r.get("default")), "")
    return InstanceSize(
        name=raw["name"],
        available_regions=tuple(r["name"] for r in regions),
        default_region=default,
    )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return body.get("detail", response.text)
    return response.text
