"""Base client for the remote practice API."""

import logging
from typing import Any, Optional

import httpx

from lifecycle_service.core.errors import ConflictError, NotFoundError, TransportError, ValidationError

logger = logging.getLogger(__name__)


class BaseServiceClient:
    """Base class for service-to-service HTTP clients.

    User context is propagated via X-User-* headers. Every response goes
    through ``_check`` so callers only ever see lifecycle errors:

    - 409 -> ConflictError
    - 400 / 422 -> ValidationError
    - 404 -> NotFoundError
    - connect / timeout / 5xx -> TransportError
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize service client.

        Args:
            base_url: Service base URL (e.g., http://practice-api:8000)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional transport override (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

        logger.info(f"Initialized {self.__class__.__name__} with base_url={base_url}")

    def _headers(self, actor: Optional[str] = None) -> dict:
        """Generate request headers with user context."""
        headers = {
            "Content-Type": "application/json",
        }
        if actor:
            headers["X-User-Name"] = actor
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        """Get HTTP client instance with configured timeout.

        Returns:
            Configured AsyncClient ready for use with async context manager
        """
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _request(
        self,
        method: str,
        path: str,
        entity_id: str = "",
        actor: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with self._get_client() as client:
                response = await client.request(method, url, headers=self._headers(actor), **kwargs)
        except httpx.TransportError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TransportError(f"Practice API unreachable: {e}") from e
        return self._check(response, entity_id or path)

    def _check(self, response: httpx.Response, entity_id: str) -> httpx.Response:
        code = response.status_code
        if code < 400:
            return response

        detail = _detail(response)
        if code == 409:
            body = _json(response)
            raise ConflictError(
                entity_id,
                body.get("expected_version", 0),
                body.get("actual_version"),
                body.get("latest"),
            )
        if code in (400, 422):
            raise ValidationError(detail)
        if code == 404:
            kind = "Case" if "/cases" in str(response.request.url) else "Customer"
            raise NotFoundError(kind, entity_id)
        if code >= 500:
            logger.error(f"Practice API error {code}: {detail}")
            raise TransportError(f"Practice API error {code}: {detail}")
        raise ValidationError(f"Practice API rejected request ({code}): {detail}")

    async def close(self):
        """Close any persistent connections (none are kept)."""
        pass


def _json(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _detail(response: httpx.Response) -> str:
    body = _json(response)
    detail = body.get("detail") or body.get("error") or body.get("message")
    return str(detail) if detail else (response.text or response.reason_phrase)
