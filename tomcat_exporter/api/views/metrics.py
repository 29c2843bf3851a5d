#!/usr/bin/python3
"""
Metrics exposition endpoints.

Endpoints:
- /metrics -> Prometheus scrape (text format)
- /health  -> liveness and the version of the exported server
"""
from flask import current_app, jsonify, make_response
from flask_restful import Resource
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from tomcat_exporter.monitoring.metrics import METRICS_REGISTRY


def _registry():
    return current_app.config.get("METRICS_REGISTRY", METRICS_REGISTRY)


class Metrics(Resource):
    """Prometheus scrape endpoint."""

    def get(self):
        """Return Prometheus-formatted metrics, or 500 if a collector failed in strict mode."""
        try:
            payload = generate_latest(_registry())
        except Exception as e:
            current_app.logger.exception("Metrics scrape failed")
            return make_response(f"# Error computing metrics: {str(e)}\n", 500,
                                 {"Content-Type": "text/plain"})
        return make_response(payload, 200, {"Content-Type": CONTENT_TYPE_LATEST})


class Health(Resource):
    """Liveness endpoint."""

    def get(self):
        server = current_app.config.get("MANAGEMENT_SERVER")
        info = server.server_info if server is not None else None
        return jsonify({
            "status": "healthy",
            "server_version": info.number if info else None,
            "server_built": info.built if info else None,
        })
