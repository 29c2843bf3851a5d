"""Prometheus exporter for Tomcat managed objects and JDBC query timings."""

__version__ = "0.4.0"
