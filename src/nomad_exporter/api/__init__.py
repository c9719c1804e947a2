"""Clients for the Nomad control-plane API."""

from nomad_exporter.api.base import DEFAULT_QUERY_OPTIONS, NomadAPI, NomadAPIError, QueryOptions

__all__ = ["DEFAULT_QUERY_OPTIONS", "NomadAPI", "NomadAPIError", "QueryOptions"]
