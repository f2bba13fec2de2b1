from typing import Any, Dict, Optional
import requests
from ..core.errors import RecoverableIntegrationError
from ..core.logger import get_logger

logger = get_logger("HttpClient")

class JsonHttpClient:
    """
    Thin JSON-over-HTTP transport shared by the bank and market clients.
    Every failure (transport, status, body) surfaces as RecoverableIntegrationError.
    """
    def __init__(self, service: str, base_url: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None,
                 headers: Optional[Dict[str, str]] = None):
        self.service = service
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if headers:
            self.headers.update(headers)

    def request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.request(method, url, json=body, headers=self.headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise RecoverableIntegrationError(self.service, f"{method} {path} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise RecoverableIntegrationError(self.service, f"{method} {path} failed: {e}") from e

        if not (200 <= resp.status_code < 300):
            logger.error("integration_http_error", service=self.service, method=method,
                         path=path, status=resp.status_code)
            raise RecoverableIntegrationError(self.service, f"{resp.status_code} {resp.reason}")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RecoverableIntegrationError(self.service, f"{method} {path} returned a non-JSON body") from e
