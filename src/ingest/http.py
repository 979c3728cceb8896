from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from src.errors import ValidationError

DEFAULT_USER_AGENT = "ScholarshipEngine/0.1 (+https://localhost; contact=local)"
RETRY_STATUSES = (429, 500, 502, 503, 504)
logger = logging.getLogger(__name__)
_SLOW_REQUEST_SECONDS = 5.0


def build_retry(max_retries: int, backoff_factor: float) -> Retry:
    return Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        status=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET"}),
        respect_retry_after_header=True,
        raise_on_status=False,
    )


@dataclass(slots=True)
class PoliteHttpClient:
    """Rate-limited JSON client over a `requests` session.

    Transport retries (including 429 Retry-After) are delegated to urllib3;
    callers only ever see the final response or its error.
    """

    requests_per_second: float = 1.0
    timeout_seconds: float = 20.0
    user_agent: str = DEFAULT_USER_AGENT
    max_retries: int = 3
    backoff_factor: float = 0.5
    default_headers: dict[str, str] = field(default_factory=dict)
    _session: requests.Session = field(init=False, repr=False)
    _last_request_monotonic: float = field(init=False, default=0.0)
    _rate_limit_lock: threading.Lock = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": self.user_agent, "Accept": "application/json"})
        self._session.headers.update(self.default_headers)

        adapter = HTTPAdapter(max_retries=build_retry(self.max_retries, self.backoff_factor))
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)
        self._last_request_monotonic = 0.0
        self._rate_limit_lock = threading.Lock()

    def __enter__(self) -> PoliteHttpClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._session.headers)

    @property
    def timeout_tuple(self) -> tuple[float, float]:
        connect_timeout = max(1.0, min(self.timeout_seconds, 5.0))
        read_timeout = max(connect_timeout, self.timeout_seconds)
        return connect_timeout, read_timeout

    def close(self) -> None:
        self._session.close()

    def get_json(self, url: str, *, params: dict[str, Any] | None = None) -> Any:
        response = self._get(url, params=params)
        try:
            return response.json()
        except ValueError as exc:
            raise ValidationError(f"Response from {url} is not valid JSON.") from exc

    def _get(self, url: str, *, params: dict[str, Any] | None = None) -> Response:
        self._wait_for_slot()
        started_at = time.monotonic()
        response = self._session.get(url, params=params, timeout=self.timeout_tuple)
        elapsed = time.monotonic() - started_at
        logger.debug("GET %s -> %d in %.3fs", url, response.status_code, elapsed)
        if elapsed > _SLOW_REQUEST_SECONDS:
            logger.warning("Slow HTTP GET %.3fs %s", elapsed, url)
        response.raise_for_status()
        return response

    def _wait_for_slot(self) -> None:
        if self.requests_per_second <= 0:
            return
        min_interval = 1.0 / self.requests_per_second
        with self._rate_limit_lock:
            sleep_seconds = min_interval - (time.monotonic() - self._last_request_monotonic)
            if sleep_seconds > 0:
                time.sleep(sleep_seconds)
            self._last_request_monotonic = time.monotonic()
