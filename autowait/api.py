"""HTTP API request context built on httpx."""

from __future__ import annotations

import json
from typing import Any

import httpx

from autowait.exceptions import APIResponseError, ContextClosedError
from autowait.logger import get_logger

log = get_logger(__name__)


class APIResponse:
    """A fully-read API response. ``dispose()`` frees the body."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._body: bytes | None = response.content
        self._disposed = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status <= 299

    @property
    def status(self) -> int:
        return self._response.status_code

    @property
    def status_text(self) -> str:
        return self._response.reason_phrase

    @property
    def url(self) -> str:
        return str(self._response.url)

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._response.headers)

    def body(self) -> bytes:
        if self._disposed or self._body is None:
            raise APIResponseError(self.url, self.status, "Response has been disposed")
        return self._body

    def text(self) -> str:
        return self.body().decode(self._response.encoding or "utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body())

    def dispose(self) -> None:
        self._disposed = True
        self._body = None

    def __repr__(self) -> str:
        return f"<APIResponse status={self.status} url='{self.url}'>"


class APIRequestContext:
    """Issues HTTP requests with shared base URL and headers.

    Status codes never raise unless ``fail_on_status_code`` is set, and
    ``max_retries`` only retries connectivity failures, never HTTP errors.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        extra_http_headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or ""
        self._http: httpx.AsyncClient | None = httpx.AsyncClient(
            base_url=self.base_url,
            headers=extra_http_headers or {},
            timeout=timeout,
            transport=transport,
        )

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        data: Any = None,
        max_retries: int = 0,
        fail_on_status_code: bool = False,
    ) -> APIResponse:
        if self._http is None:
            raise ContextClosedError("API request context has been disposed")
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if isinstance(data, (dict, list)):
            kwargs["json"] = data
        elif isinstance(data, str):
            kwargs["content"] = data.encode("utf-8")
        elif data is not None:
            kwargs["content"] = data

        attempt = 0
        while True:
            try:
                resp = await self._http.request(method, url, **kwargs)
                break
            except httpx.TransportError as exc:
                if attempt >= max_retries:
                    raise
                attempt += 1
                log.warning("api_request_retry", url=url, attempt=attempt, error=str(exc))

        response = APIResponse(resp)
        log.debug("api_response", method=method, url=response.url, status=response.status)
        if fail_on_status_code and not response.ok:
            raise APIResponseError(response.url, response.status, response.status_text)
        return response

    async def get(self, url: str, **kwargs: Any) -> APIResponse:
        return await self.fetch(url, method="GET", **kwargs)

    async def post(self, url: str, **kwargs: Any) -> APIResponse:
        return await self.fetch(url, method="POST", **kwargs)

    async def put(self, url: str, **kwargs: Any) -> APIResponse:
        return await self.fetch(url, method="PUT", **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> APIResponse:
        return await self.fetch(url, method="PATCH", **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> APIResponse:
        return await self.fetch(url, method="DELETE", **kwargs)

    async def head(self, url: str, **kwargs: Any) -> APIResponse:
        return await self.fetch(url, method="HEAD", **kwargs)

    async def dispose(self) -> None:
        """Close the underlying client. Further requests raise ``ContextClosedError``."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> APIRequestContext:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.dispose()
