from __future__ import annotations

import logging
from typing import Any, Protocol

from src.errors import ValidationError
from src.normalize.schema import Scholarship, scholarship_from_mapping

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "scholarships"


class JsonHttpClient(Protocol):
    def get_json(self, url: str, *, params: dict[str, Any] | None = None) -> Any:
        """Fetch and decode a JSON document."""


def build_table_url(base_url: str, table: str) -> str:
    return f"{base_url.rstrip('/')}/rest/v1/{table.strip('/')}"


def build_auth_headers(api_key: str | None) -> dict[str, str]:
    if not api_key:
        return {}
    return {"apikey": api_key, "Authorization": f"Bearer {api_key}"}


class RestCatalogReader:
    """Catalog reader for a PostgREST-style `scholarships` table.

    Rows are snake_case records ordered newest first; malformed rows are
    skipped with a warning so one bad listing does not hide the catalog.
    """

    def __init__(
        self,
        http_client: JsonHttpClient,
        *,
        base_url: str,
        table: str = DEFAULT_TABLE,
        source: str | None = None,
    ) -> None:
        self.http_client = http_client
        self.url = build_table_url(base_url, table)
        self.source = source
        self.skipped_rows = 0

    def _params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"select": "*", "order": "created_at.desc"}
        if self.source:
            params["source"] = f"eq.{self.source}"
        return params

    def list_scholarships(self) -> list[Scholarship]:
        payload = self.http_client.get_json(self.url, params=self._params())
        if not isinstance(payload, list):
            raise ValidationError(f"Catalog endpoint {self.url} did not return a list.")

        scholarships: list[Scholarship] = []
        skipped = 0
        for row in payload:
            if not isinstance(row, dict):
                skipped += 1
                logger.warning("Skipping non-object catalog row from %s", self.url)
                continue
            try:
                scholarships.append(scholarship_from_mapping(row))
            except ValidationError as exc:
                skipped += 1
                logger.warning("Skipping catalog row %s: %s", row.get("id"), exc)
        self.skipped_rows = skipped
        logger.info("Loaded %d scholarships from %s (skipped=%d)", len(scholarships), self.url, skipped)
        return scholarships
