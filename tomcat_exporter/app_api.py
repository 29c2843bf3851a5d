#!/usr/bin/python3
"""API registration module.

Registers the Flask-RESTful resources of the exporter with the Flask app.
"""

from flask_restful import Api

from tomcat_exporter.api.views.metrics import Health, Metrics


def register_api(app):
    """
    Register all API resources with the Flask application.
    """
    api = Api(app)

    # Monitoring endpoints
    api.add_resource(Metrics, "/metrics")
    api.add_resource(Health, "/health")
    return api
