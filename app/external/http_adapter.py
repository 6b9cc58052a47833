import base64
import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from app.external.base_adapter import IntegrationAdapter, IntegrationConfig

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "KPI-Dashboard/1.0"
DEFAULT_API_KEY_HEADER = "X-API-Key"


class HttpAdapter(IntegrationAdapter):
    """Socle commun des adapters HTTP (REST, GraphQL) : en-têtes, auth, envoi"""

    def __init__(self, timeout: float = 30.0, user_agent: str = DEFAULT_USER_AGENT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.user_agent = user_agent
        # Permet d'injecter un httpx.MockTransport dans les tests
        self.transport = transport

    def _parse_headers(self, headers: Any) -> Dict[str, str]:
        """Les en-têtes peuvent arriver sous forme de chaîne JSON depuis le front"""
        if isinstance(headers, str):
            try:
                headers = json.loads(headers)
            except ValueError:
                logger.warning("En-têtes d'intégration illisibles, ignorés")
                return {}
        if not isinstance(headers, dict):
            return {}
        return {str(key): str(value) for key, value in headers.items()}

    def _build_headers(self, config: IntegrationConfig,
                       defaults: Optional[Dict[str, str]] = None) -> httpx.Headers:
        headers = httpx.Headers(defaults or {})
        headers.update(self._parse_headers(config.headers))

        if "User-Agent" not in headers:
            headers["User-Agent"] = self.user_agent

        self._apply_auth(headers, config)
        return headers

    def _apply_auth(self, headers: httpx.Headers, config: IntegrationConfig) -> None:
        token = config.token
        auth_type = config.auth_type or "none"

        if auth_type == "apiKey":
            if token:
                headers[config.auth_header or DEFAULT_API_KEY_HEADER] = token
        elif auth_type == "bearer":
            if token:
                headers["Authorization"] = f"Bearer {token}"
        elif auth_type == "basic":
            if config.username and config.password:
                credentials = base64.b64encode(
                    f"{config.username}:{config.password}".encode("utf-8")
                ).decode("ascii")
                headers["Authorization"] = f"Basic {credentials}"

    async def _send(self, method: str, url: str, headers: httpx.Headers,
                    content: Optional[str] = None) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport,
                                     follow_redirects=True) as client:
            return await client.request(method, url, headers=headers, content=content)

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)

    @staticmethod
    def _status_text(response: httpx.Response) -> str:
        return f"{response.status_code} {response.reason_phrase}".strip()
