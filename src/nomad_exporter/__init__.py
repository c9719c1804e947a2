"""Prometheus exporter for HashiCorp Nomad."""

__version__ = "0.3.0"
