"""Open Service Broker API handlers backed by MongoDB Atlas.

Endpoints:
  GET    /v2/catalog                                              — Service catalog
  PUT    /v2/service_instances/<id>                               — Provision a cluster (async)
  PATCH  /v2/service_instances/<id>                               — Change plan (resize, async)
  DELETE /v2/service_instances/<id>                               — Deprovision a cluster (async)
  GET    /v2/service_instances/<id>/last_operation                — Poll an async operation
  PUT    /v2/service_instances/<id>/service_bindings/<binding_id> — Create a database user
  DELETE /v2/service_instances/<id>/service_bindings/<binding_id> — Delete a database user

Each service instance maps to one Atlas cluster named after the instance ID.
The broker keeps no state of its own: every request resolves offerings and
cluster status against Atlas.
"""

import hmac
import logging
import secrets

from flask import Blueprint, current_app, jsonify, request

from internal.atlas.client import AtlasError
from internal.broker.catalog import (
    CatalogError, UnknownOfferingError, build_catalog, resolve_offering,
)

logger = logging.getLogger(__name__)

broker_bp = Blueprint("broker", __name__)

OPERATION_PROVISION = "provision"
OPERATION_UPDATE = "update"
OPERATION_DEPROVISION = "deprovision"

STATE_SUCCEEDED = "succeeded"
STATE_IN_PROGRESS = "in progress"
STATE_FAILED = "failed"

# Atlas cluster stateName values that mean work is still running.
_BUSY_STATES = {"CREATING", "UPDATING", "REPAIRING", "DELETING"}


def _atlas():
    return current_app.config["ATLAS"]


def _error(status: int, description: str, error: str = ""):
    payload = {"description": description}
    if error:
        payload["error"] = error
    return jsonify(payload), status


def _accepts_incomplete() -> bool:
    return request.args.get("accepts_incomplete", "").lower() == "true"


def _validate_offering_body(body) -> str:
    """Return an error message for a malformed provision/update body, or ""."""
    if body is None:
        return "Request body must be valid JSON"
    if not isinstance(body, dict):
        return "Request body must be a JSON object"
    for name in ("service_id", "plan_id"):
        if not body.get(name) or not isinstance(body[name], str):
            return "service_id and plan_id are required strings"

    parameters = body.get("parameters")
    if parameters is None:
        return ""
    if not isinstance(parameters, dict):
        return "parameters must be a JSON object"
    if not isinstance(parameters.get("region", ""), str):
        return "parameters.region must be a string"
    return ""


@broker_bp.before_request
def _require_basic_auth():
    settings = current_app.config["BROKER_SETTINGS"]
    auth = request.authorization
    if (
        auth is None
        or not hmac.compare_digest(auth.username or "", settings.username)
        or not hmac.compare_digest(auth.password or "", settings.password)
    ):
        return _error(401, "Unauthorized")
    return None


# ── Catalog ──────────────────────────────────────────────────────────────────

@broker_bp.route("/v2/catalog", methods=["GET"])
def get_catalog():
    logger.info("Retrieving service catalog")
    try:
        services = build_catalog(_atlas())
    except AtlasError as exc:
        logger.error("Failed to fetch offerings from Atlas: %s", exc)
        return _error(502, str(exc))
    except CatalogError as exc:
        logger.error("Failed to build service catalog: %s", exc)
        return _error(500, str(exc))

    return jsonify({"services": [s.to_dict() for s in services]}), 200


# ── Provisioning ─────────────────────────────────────────────────────────────

@broker_bp.route("/v2/service_instances/<instance_id>", methods=["PUT"])
def provision(instance_id: str):
    if not _accepts_incomplete():
        return _error(422, "This service plan requires client support for asynchronous service operations.", "AsyncRequired")

    body = request.get_json(silent=True)
    error = _validate_offering_body(body)
    if error:
        return _error(400, error)

    atlas = _atlas()
    try:
        provider, instance_size = resolve_offering(atlas, body["service_id"], body["plan_id"])

        requested_region = (body.get("parameters") or {}).get("region", "")
        region = instance_size.pick_region(requested_region)
        if not region:
            return _error(
                400,
                f"Region {requested_region!r} is not available for instance size "
                f"{instance_size.name!r} on {provider.name}",
            )

        if atlas.get_cluster(instance_id) is not None:
            return _error(409, f"Service instance {instance_id!r} already exists")

        atlas.create_cluster(instance_id, provider, instance_size, region)
    except UnknownOfferingError as exc:
        return _error(400, str(exc))
    except CatalogError as exc:
        return _error(500, str(exc))
    except AtlasError as exc:
        logger.error("Provisioning %s failed: %s", instance_id, exc)
        return _error(502, str(exc))

    logger.info("Provisioning instance %s on %s/%s", instance_id, provider.name, instance_size.name)
    return jsonify({"operation": OPERATION_PROVISION}), 202


@broker_bp.route("/v2/service_instances/<instance_id>", methods=["PATCH"])
def update(instance_id: str):
    if not _accepts_incomplete():
        return _error(422, "This service plan requires client support for asynchronous service operations.", "AsyncRequired")

    body = request.get_json(silent=True)
    error = _validate_offering_body(body)
    if error:
        return _error(400, error)

    atlas = _atlas()
    try:
        provider, instance_size = resolve_offering(atlas, body["service_id"], body["plan_id"])
        if atlas.get_cluster(instance_id) is None:
            return _error(404, f"Service instance {instance_id!r} not found")
        atlas.update_cluster(instance_id, provider, instance_size)
    except UnknownOfferingError as exc:
        return _error(400, str(exc))
    except CatalogError as exc:
        return _error(500, str(exc))
    except AtlasError as exc:
        logger.error("Updating %s failed: %s", instance_id, exc)
        return _error(502, str(exc))

    logger.info("Updating instance %s to %s/%s", instance_id, provider.name, instance_size.name)
    return jsonify({"operation": OPERATION_UPDATE}), 202


@broker_bp.route("/v2/service_instances/<instance_id>", methods=["DELETE"])
def deprovision(instance_id: str):
    if not _accepts_incomplete():
        return _error(422, "This service plan requires client support for asynchronous service operations.", "AsyncRequired")

    atlas = _atlas()
    try:
        if atlas.get_cluster(instance_id) is None:
            return jsonify({}), 410
        atlas.delete_cluster(instance_id)
    except AtlasError as exc:
        logger.error("Deprovisioning %s failed: %s", instance_id, exc)
        return _error(502, str(exc))

    logger.info("Deprovisioning instance %s", instance_id)
    return jsonify({"operation": OPERATION_DEPROVISION}), 202


@broker_bp.route("/v2/service_instances/<instance_id>/last_operation", methods=["GET"])
def last_operation(instance_id: str):
    operation = request.args.get("operation", "")

    try:
        cluster = _atlas().get_cluster(instance_id)
    except AtlasError as exc:
        logger.error("Polling %s failed: %s", instance_id, exc)
        return _error(502, str(exc))

    if cluster is None:
        if operation == OPERATION_DEPROVISION:
            return jsonify({"state": STATE_SUCCEEDED}), 200
        return jsonify({}), 410

    state_name = cluster.get("stateName", "")
    if operation == OPERATION_DEPROVISION:
        state = STATE_SUCCEEDED if state_name == "DELETED" else STATE_IN_PROGRESS
    elif state_name == "IDLE":
        state = STATE_SUCCEEDED
    elif state_name in _BUSY_STATES:
        state = STATE_IN_PROGRESS
    else:
        state = STATE_FAILED

    return jsonify({"state": state, "description": f"Cluster state: {state_name or 'unknown'}"}), 200


# ── Bindings ─────────────────────────────────────────────────────────────────

@broker_bp.route("/v2/service_instances/<instance_id>/service_bindings/<binding_id>", methods=["PUT"])
def bind(instance_id: str, binding_id: str):
    atlas = _atlas()
    password = secrets.token_urlsafe(24)

    try:
        cluster = atlas.get_cluster(instance_id)
        if cluster is None:
            return _error(404, f"Service instance {instance_id!r} not found")
        atlas.create_database_user(binding_id, password, instance_id)
    except AtlasError as exc:
        if exc.status_code == 409:
            return _error(409, f"Service binding {binding_id!r} already exists")
        logger.error("Binding %s to %s failed: %s", binding_id, instance_id, exc)
        return _error(502, str(exc))

    logger.info("Created binding %s for instance %s", binding_id, instance_id)
    return jsonify({
        "credentials": {
            "uri": cluster.get("srvAddress", ""),
            "username": binding_id,
            "password": password,
        },
    }), 201


@broker_bp.route("/v2/service_instances/<instance_id>/service_bindings/<binding_id>", methods=["DELETE"])
def unbind(instance_id: str, binding_id: str):
    try:
        _atlas().delete_database_user(binding_id)
    except AtlasError as exc:
        logger.error("Unbinding %s from %s failed: %s", binding_id, instance_id, exc)
        return _error(502, str(exc))

    logger.info("Removed binding %s for instance %s", binding_id, instance_id)
    return jsonify({}), 200
