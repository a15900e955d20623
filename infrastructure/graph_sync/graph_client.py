import logging
import random
import time
from typing import Any, Callable, Dict, Optional

import requests

from core.errors import GraphPermissionError, GraphRateLimitError, RemoteRequestError

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
logger = logging.getLogger("planner_sync.graph")


class GraphClient:
    """Authenticated Graph transport.

    Retries network failures and 5xx responses (except for POST, which is not
    idempotent) and throttled 429 responses. Everything else, 412 included, is
    raised on the first attempt.
    """

    def __init__(
        self,
        session: Optional[requests.Session],
        token_provider: Callable[[], Optional[str]],
        rate_limiter,
        base_url: str = GRAPH_BASE_URL,
        timeout: int = 30,
        max_attempts: int = 3,
    ) -> None:
        self.session = session or requests.Session()
        self.token_provider = token_provider
        self.rate_limiter = rate_limiter
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts

    def url_for(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        token = self.token_provider()
        if not token:
            raise GraphPermissionError("Graph access token missing", status=None)
        method = method.upper()
        url = self.url_for(path)
        request_headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        if body is not None:
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})
        retry_server_errors = method != "POST"
        attempt = 0
        delay = 1.0
        while True:
            attempt += 1
            try:
                self.rate_limiter.acquire()
                logger.debug("%s %s (attempt %s)", method, url, attempt)
                response = getattr(self.session, method.lower())(
                    url,
                    params=query or None,
                    json=body,
                    headers=request_headers,
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                if attempt >= self.max_attempts or not retry_server_errors:
                    raise RemoteRequestError(f"Graph API network error: {exc}") from exc
                logger.warning("Graph request %s %s failed (%s), retrying", method, url, exc)
                self._sleep(delay)
                delay *= 2
                continue
            self.rate_limiter.update(response.headers, response.status_code)
            status = response.status_code
            if status == 429 and attempt < self.max_attempts:
                logger.warning("Graph throttled %s %s, retry #%s", method, url, attempt)
                continue
            if status >= 500 and retry_server_errors and attempt < self.max_attempts:
                logger.warning("Graph %s for %s %s, retry #%s", status, method, url, attempt)
                self._sleep(delay)
                delay *= 2
                continue
            if status >= 400:
                raise self._error(method, path, response)
            return self._decode(response)

    def _sleep(self, base_delay: float) -> None:
        time.sleep(base_delay + random.uniform(0, base_delay))

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if response.status_code == 204 or not response.text:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    @staticmethod
    def _error(method: str, path: str, response: requests.Response) -> RemoteRequestError:
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        detail = ""
        if isinstance(body, dict):
            detail = str((body.get("error") or {}).get("message") or "")
        message = f"{method} {path} failed with HTTP {response.status_code}"
        if detail:
            message = f"{message}: {detail}"
        if response.status_code in (401, 403):
            return GraphPermissionError(message, status=response.status_code, body=body)
        if response.status_code == 429:
            return GraphRateLimitError(message, status=response.status_code, body=body)
        return RemoteRequestError(message, status=response.status_code, body=body)
