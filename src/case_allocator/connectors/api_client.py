"""HTTP transport for the allocation backend."""

import asyncio
import logging
from typing import Optional, Dict, Any

import requests
from pydantic import ValidationError as SchemaError

from ..core.config import settings
from ..rules.errors import ApiError, NetworkError
from .schemas import ApiEnvelope

logger = logging.getLogger(__name__)


class ApiClient:
    """Thin wrapper over a requests session.

    Attaches the bearer token, enforces the timeout and unwraps the
    ``{status, message, payload}`` envelope. Transport problems raise
    ``NetworkError``; error statuses and failure envelopes raise ``ApiError``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token = token if token is not None else settings.api_token
        self.timeout = timeout if timeout is not None else settings.api_timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Send a request and return the envelope payload."""
        url = f"{self.base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                params=params,
                json=json,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise NetworkError(f"Could not reach allocation service: {e}") from e

        if response.status_code == 204 or not response.content:
            if response.status_code >= 400:
                raise ApiError(f"Request failed with status {response.status_code}",
                               status_code=response.status_code)
            return None

        try:
            envelope = ApiEnvelope.model_validate(response.json())
        except (ValueError, SchemaError) as e:
            raise ApiError(
                f"Unexpected response from allocation service ({response.status_code})",
                status_code=response.status_code
            ) from e

        if response.status_code >= 400 or not envelope.ok:
            raise ApiError(
                envelope.message or f"Request failed with status {response.status_code}",
                status_code=response.status_code,
                error_code=envelope.error_code
            )

        return envelope.body

    async def arequest(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Run ``request`` in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.request, method, path, params, json)

    def close(self):
        self.session.close()
