import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from pms_client.config import Settings
from pms_client.core.errors import AuthError, NetworkError

logger = logging.getLogger(__name__)

BODY_METHODS = {"POST", "PUT", "PATCH"}


class RequestGateway:
    """
    One backend call with a per-request timeout and bounded, linearly
    backed-off retries. Knows nothing about caching or queuing.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings
        self.base_url = settings.API_BASE_URL.rstrip("/")
        self.max_retries = settings.MAX_RETRIES
        self.base_delay = settings.RETRY_BASE_DELAY_SECONDS
        self.auth_token: Optional[str] = None
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(settings.REQUEST_TIMEOUT_SECONDS),
            headers={"Content-Type": "application/json"},
        )

    def _target(self, endpoint: str):
        if endpoint.startswith(("http://", "https://")):
            return endpoint, None
        param = self.settings.API_PATH_PARAM
        if param:
            return self.base_url, {param: endpoint}
        return f"{self.base_url}/{endpoint.lstrip('/')}", None

    def _headers(self):
        if self.auth_token:
            return {"Authorization": f"Bearer {self.auth_token}"}
        return {}

    async def send(self, endpoint: str, method: str = "GET", payload: Any = None, attempt: int = 0) -> Any:
        method = method.upper()
        url, params = self._target(endpoint)
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=payload if method in BODY_METHODS and payload is not None else None,
                headers=self._headers(),
            )
            if response.status_code in (401, 403):
                raise AuthError(f"{method} {endpoint} rejected with HTTP {response.status_code}")
            response.raise_for_status()
            return self._decode(response)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("API request failed (%s %s), attempt %d: %s", method, endpoint, attempt + 1, e)
            if attempt < self.max_retries:
                await self._sleep(self.base_delay * (attempt + 1))
                return await self.send(endpoint, method, payload, attempt + 1)
            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            raise NetworkError(f"{method} {endpoint} failed after {attempt + 1} attempts: {e}", status_code) from e

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return response.json()
        return response.text

    async def aclose(self) -> None:
        await self._client.aclose()
