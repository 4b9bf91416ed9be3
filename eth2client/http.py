"""HTTP transport shared by every REST backend."""

import asyncio
import json
import logging
import ssl
import time
from typing import Any, AsyncIterator, Optional, Union

import aiohttp

from . import metrics
from .exceptions import BackendRejected, DecodingError, NotFound, RequestTimeout, TransportError
from .version import user_agent

logger = logging.getLogger(__name__)

Body = Union[str, bytes, dict, list, None]
# A mapping, or a sequence of pairs for repeated keys.
Params = Union[dict, list, None]


def decode_json(raw: Union[str, bytes], operation: str = "") -> Any:
    """Parse a response body, classifying malformed JSON as a decoding error."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        prefix = f"{operation}: " if operation else ""
        raise DecodingError(f"{prefix}invalid JSON response: {e}") from e


def encode_body(body: Body) -> Optional[bytes]:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body, separators=(",", ":")).encode("utf-8")


class HTTPTransport:
    """One aiohttp session per adapter.

    Every call is tagged with an operation name that is carried into any
    error it raises. Non-2xx responses raise ``BackendRejected`` (``NotFound``
    for 404), connection failures raise ``TransportError`` and an expired
    deadline raises ``RequestTimeout``. Cancellation is never converted.
    """

    def __init__(
        self,
        address: str,
        backend: str,
        timeout: float = 2.0,
        ssl_context: Optional[ssl.SSLContext] = None,
        headers: Optional[dict] = None,
        log: Optional[logging.LoggerAdapter] = None,
    ):
        self.address = address.rstrip("/")
        self.backend = backend
        self.timeout = timeout
        self._ssl_context = ssl_context
        self._headers = {"User-Agent": user_agent()}
        self._headers.update(headers or {})
        self._session: Optional[aiohttp.ClientSession] = None
        self._log = log or logger

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=self._ssl_context) if self._ssl_context else None
            self._session = aiohttp.ClientSession(headers=self._headers, connector=connector)
        return self._session

    def _url(self, path: str) -> str:
        return f"{self.address}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        operation: str,
        params: Params = None,
        body: Body = None,
        headers: Optional[dict] = None,
    ) -> bytes:
        """Send a request and return the raw response body."""
        session = await self._ensure_session()
        url = self._url(path)
        request_headers = {"Accept": "application/json"}
        data = encode_body(body)
        if data is not None:
            request_headers["Content-Type"] = "application/json"
        if headers:
            request_headers.update(headers)

        self._log.debug(f"{method} {url} ({operation})")

        start_time = time.monotonic()
        error_type = None
        try:
            async with session.request(
                method,
                url,
                params=params,
                data=data,
                headers=request_headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                raw = await response.read()
                if response.status == 404:
                    error_type = "not_found"
                    raise NotFound(raw.decode("utf-8", errors="replace"), operation)
                if response.status < 200 or response.status >= 300:
                    error_type = f"status_{response.status}"
                    raise BackendRejected(
                        response.status, raw.decode("utf-8", errors="replace"), operation
                    )
                return raw
        except asyncio.TimeoutError as e:
            error_type = "timeout"
            raise RequestTimeout(operation, self.timeout) from e
        except aiohttp.ClientError as e:
            error_type = "connection_error"
            self._log.debug(f"{operation} connection error: {e}")
            raise TransportError(operation, str(e) or type(e).__name__) from e
        finally:
            metrics.record_request(
                self.backend, method, operation, time.monotonic() - start_time, error_type
            )

    async def get(self, path: str, operation: str, params: Params = None) -> bytes:
        return await self.request("GET", path, operation, params=params)

    async def post(
        self,
        path: str,
        body: Body,
        operation: str,
        params: Params = None,
    ) -> bytes:
        return await self.request("POST", path, operation, params=params, body=body)

    async def stream_lines(
        self,
        path: str,
        operation: str,
        params: Params = None,
        headers: Optional[dict] = None,
    ) -> AsyncIterator[bytes]:
        """Yield response lines from a long-lived streaming request.

        The stream has no deadline; it ends when the server closes it or the
        consuming task is cancelled.
        """
        session = await self._ensure_session()
        url = self._url(path)
        self._log.info(f"Connecting to stream: {url}")
        try:
            async with session.get(
                url,
                params=params,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=None, sock_read=None),
            ) as response:
                if response.status == 404:
                    raise NotFound(await response.text(), operation)
                if response.status != 200:
                    raise BackendRejected(response.status, await response.text(), operation)
                async for line in response.content:
                    yield line
        except aiohttp.ClientError as e:
            raise TransportError(operation, str(e) or type(e).__name__) from e

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
