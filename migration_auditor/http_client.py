"""
REST transport shared by the Jenkins and GitHub clients.

Wraps a requests.Session with retry/backoff for rate limits (429),
server errors (5xx) and transport exceptions. Only performs GET requests
(the auditor never writes to either CI system).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

import requests
from requests.exceptions import RequestException

from . import __version__
from .logging_config import log_api_call

logger = logging.getLogger(__name__)


@dataclass
class APICallStats:
    """Track API call statistics."""
    total_calls: int = 0
    successful_calls: int = 0
    retried_calls: int = 0
    failed_calls: int = 0


class HTTPClientError(Exception):
    """Raised when a request cannot be completed after all retries."""
    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class RestClient:
    """
    JSON REST client with exponential backoff.

    Features:
    - Exponential backoff for rate limits (429) and server errors (5xx)
    - Respects Retry-After header
    - Streaming downloads for artifact bundles
    - API call tracking/statistics

    Usage:
        client = RestClient("https://jenkins.example.com", auth=("user", "token"))
        status, data, headers = client.get("/api/json")
    """

    DEFAULT_TIMEOUT = 30
    MAX_RETRIES = 5
    BASE_BACKOFF_SECONDS = 1.0
    MAX_BACKOFF_SECONDS = 60.0
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        verify_ssl: bool = True,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service root (e.g., "https://jenkins.example.com")
            headers: Extra headers sent with every request
            auth: Optional (username, password/token) basic auth pair
            timeout: Request timeout in seconds
            max_retries: Maximum attempts per request
            verify_ssl: Whether to verify SSL certificates
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.verify_ssl = verify_ssl
        self.stats = APICallStats()

        self._session = requests.Session()
        self._session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"Migration-Auditor/{__version__}",
        })
        if headers:
            self._session.headers.update(headers)
        if auth:
            self._session.auth = auth
        self._session.verify = verify_ssl

    def _build_url(self, path: str) -> str:
        """Build full URL from path."""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return urljoin(self.base_url + "/", path.lstrip("/"))

    def _calculate_backoff(self, attempt: int, retry_after: int | None = None) -> float:
        """Calculate backoff time with exponential increase."""
        if retry_after is not None:
            return min(float(retry_after), self.MAX_BACKOFF_SECONDS)
        backoff = self.BASE_BACKOFF_SECONDS * (2 ** attempt)
        return min(backoff, self.MAX_BACKOFF_SECONDS)

    def _should_retry(self, status_code: int) -> bool:
        """Retry on rate limit (429) or server errors (5xx)."""
        return status_code == 429 or (500 <= status_code < 600)

    def _get_retry_after(self, headers: dict[str, str]) -> int | None:
        """Extract Retry-After header value."""
        retry_after = headers.get("Retry-After") or headers.get("retry-after")
        if retry_after:
            try:
                return int(retry_after)
            except ValueError:
                pass
        return None

    def _send(self, url: str, params: dict[str, Any], stream: bool) -> requests.Response:
        """Send one GET with retries; the final response is returned even if it is an error."""
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            self.stats.total_calls += 1
            started = time.monotonic()

            try:
                logger.debug(f"GET {url} params={params} (attempt {attempt + 1})")
                response = self._session.get(
                    url,
                    params=params,
                    timeout=self.timeout,
                    stream=stream,
                )
            except RequestException as e:
                last_error = e
                backoff = self._calculate_backoff(attempt)

                if attempt < self.max_retries - 1:
                    self.stats.retried_calls += 1
                    logger.warning(
                        f"Request error: {e}, retrying in {backoff:.1f}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(backoff)
                    continue
                logger.error(f"Request failed after {self.max_retries} attempts: {e}")
                break

            duration_ms = (time.monotonic() - started) * 1000
            log_api_call(logger, "GET", url, response.status_code, duration_ms)

            if self._should_retry(response.status_code) and attempt < self.max_retries - 1:
                retry_after = self._get_retry_after(dict(response.headers))
                backoff = self._calculate_backoff(attempt, retry_after)
                self.stats.retried_calls += 1
                logger.warning(
                    f"Request failed with {response.status_code}, "
                    f"retrying in {backoff:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                )
                response.close()
                time.sleep(backoff)
                continue

            if response.status_code < 400:
                self.stats.successful_calls += 1
            else:
                self.stats.failed_calls += 1
            return response

        self.stats.failed_calls += 1
        raise HTTPClientError(
            f"Request to {url} failed after {self.max_retries} retries: {last_error}",
        )

    def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> tuple[int, Any, dict[str, str]]:
        """
        Perform GET request with automatic retry and backoff.

        Args:
            path: Endpoint path relative to the base URL, or an absolute URL
            params: Query parameters

        Returns:
            Tuple of (status_code, json_or_text, headers)

        Raises:
            HTTPClientError: On transport errors after retries
        """
        url = self._build_url(path)
        response = self._send(url, dict(params or {}), stream=False)

        headers = dict(response.headers)
        try:
            data = response.json()
        except ValueError:
            data = response.text

        return response.status_code, data, headers

    def download(
        self,
        path: str,
        dest: Path,
        params: dict[str, Any] | None = None,
    ) -> int:
        """
        Stream a response body to a file.

        The file is only created when the server answers with a success
        status.

        Returns:
            HTTP status code of the final response
        """
        url = self._build_url(path)
        response = self._send(url, dict(params or {}), stream=True)

        try:
            if response.status_code >= 400:
                return response.status_code

            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(dest, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
            return response.status_code
        except RequestException as e:
            raise HTTPClientError(f"Download of {url} interrupted: {e}") from e
        finally:
            response.close()

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()

    def __enter__(self) -> "RestClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
