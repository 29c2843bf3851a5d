#!/usr/bin/python3
"""Application initialization module.

Creates the Flask application that serves the exporter: registers the
collectors with the metrics registry, times the application's own requests
and mounts the /metrics and /health resources.

Usage:
    export TOMCAT_EXPORTER_EMBEDDED=1
    python -m tomcat_exporter.app
"""
from os import getenv
from typing import Optional

from flask import Flask, jsonify, make_response
from flask_cors import CORS
from prometheus_client import CollectorRegistry

from tomcat_exporter.app_api import register_api
from tomcat_exporter.config import config as exporter_config, configure_logging
from tomcat_exporter.management.server import ManagementServer, get_platform_server
from tomcat_exporter.monitoring.families import FamilyRegistry
from tomcat_exporter.monitoring.metrics import METRICS_REGISTRY, init_exporter
from tomcat_exporter.monitoring.request_metrics import RequestMetrics


def create_app(config: dict = None, server: Optional[ManagementServer] = None,
               registry: Optional[CollectorRegistry] = None,
               families: Optional[FamilyRegistry] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Optional dict to override Flask configuration.
        server: Management server to export (defaults to the platform server).
        registry: Metrics registry to serve (defaults to METRICS_REGISTRY).
        families: Family schema registry shared by the collectors.

    Returns:
        Flask app instance with the exporter routes.
    """
    app = Flask(__name__)

    # Prometheus and dashboards may scrape from another origin
    CORS(app, resources={r"/metrics": {"origins": "*"}})

    if config:
        app.config.update(config)

    server = server if server is not None else get_platform_server()
    registry = registry if registry is not None else METRICS_REGISTRY
    app.config["MANAGEMENT_SERVER"] = server
    app.config["METRICS_REGISTRY"] = init_exporter(registry, server, families)

    RequestMetrics(app, registry=registry)
    register_api(app)

    @app.errorhandler(404)
    def page_not_found(e):
        """Return JSON 404 response."""
        return make_response(jsonify({"error": "Resource (endpoint) not found"}), 404)

    return app


if __name__ == "__main__":
    configure_logging()
    host = getenv("TOMCAT_EXPORTER_API_HOST", "0.0.0.0")
    port = int(getenv("TOMCAT_EXPORTER_API_PORT", "9404"))
    debug = getenv("TOMCAT_EXPORTER_DEBUG", "0") == "1"
    app = create_app({"ENV_NAME": exporter_config.ENV})
    app.run(host=host, port=port, debug=debug, threaded=True)
