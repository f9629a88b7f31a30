from __future__ import annotations

import logging
import sys
from pathlib import Path

from flask import Flask, jsonify

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

from internal.atlas.base import OfferingSource
from internal.atlas.client import AtlasClient
from internal.config.settings import BrokerSettings, ConfigError, settings_store
from internal.handlers.broker import broker_bp

logger = logging.getLogger(__name__)


def create_app(atlas: OfferingSource | None = None, settings: BrokerSettings | None = None) -> Flask:
    """Build the broker Flask app.

    Without an explicit offering source, an AtlasClient is built from the
    settings.
    """
    if settings is None:
        settings = settings_store.load()
    if atlas is None:
        atlas = AtlasClient(
            group_id=settings.atlas_group_id,
            public_key=settings.atlas_public_key,
            private_key=settings.atlas_private_key,
            base_url=settings.atlas_base_url,
            timeout=settings.atlas_timeout_seconds,
        )

    app = Flask(__name__)
    app.config["ATLAS"] = atlas
    app.config["BROKER_SETTINGS"] = settings
    app.register_blueprint(broker_bp)

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "service": "atlas-service-broker"}), 200

    return app


def run() -> None:
    settings = settings_store.load()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    errors = settings.validate()
    if errors:
        raise ConfigError("Invalid broker configuration: " + "; ".join(errors))

    app = create_app(settings=settings)
    logger.info("Atlas service broker listening on http://%s:%s", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
