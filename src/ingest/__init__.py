from __future__ import annotations

from .catalog_api import RestCatalogReader, build_auth_headers, build_table_url
from .http import PoliteHttpClient

__all__ = [
    "PoliteHttpClient",
    "RestCatalogReader",
    "build_auth_headers",
    "build_table_url",
]
