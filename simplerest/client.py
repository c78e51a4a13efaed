"""HTTP Client - Sends requests through the cache and request gate.

Every verb runs the same sequence: cache lookup (GET only), gate acquisition,
transport call, status classification, cache store (GET only), gate release.

Usage:
    client = HttpClient(ClientConfig(cache_results=True, wait_millis=250))
    body = client.get("https://example.com/items")
    client.post("https://example.com/items", {"name": "widget"})
"""

from __future__ import annotations

import base64
import logging
import threading
from collections.abc import Mapping, MutableMapping
from typing import IO, Any

import httpx

from simplerest.cache import ResponseCache, cache_key
from simplerest.encoding import encode_multipart, form_encode, multipart_content_type
from simplerest.gate import Gate, make_gate
from simplerest.models import ClientConfig

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = (
    "There was a connection error.  The server responded with status code {status_code}."
)
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Request body forms accepted by post() and put()
Body = str | bytes | bytearray | Mapping[str, str] | IO[bytes]


class ClientError(Exception):
    """Base class for client errors."""


class RequestError(ClientError):
    """Raised when a request fails in transport (connection error, timeout, etc.)."""


class HTTPError(ClientError):
    """Raised when the server responds with a status code of 400 or above.

    Attributes:
        status_code: The response status code.
        message: The error body sent by the server, or a default message when
            it could not be read.
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


def _encode_body(data: Body) -> tuple[bytes, dict[str, str]]:
    """Convert a post/put body into raw content plus headers it requires.

    Raises:
        TypeError: If data is not one of the supported body forms.
    """
    if isinstance(data, str):
        return data.encode("utf-8"), {}
    if isinstance(data, (bytes, bytearray)):
        return bytes(data), {}
    if isinstance(data, Mapping):
        return form_encode(data).encode("ascii"), {"Content-Type": FORM_CONTENT_TYPE}
    if hasattr(data, "read"):
        # Streams are sent as Base64 text
        return base64.b64encode(data.read()), {}
    raise TypeError(
        f"Unsupported body type {type(data).__name__}; expected str, bytes, mapping, or binary stream"
    )


class HttpClient:
    """Synchronous HTTP client with optional caching and rate limiting.

    Each request opens its own httpx.Client and closes it afterwards; no
    connection is reused between requests.

    Any verb returns None instead of a body when its cancel token is set
    while the request is waiting at the gate. Set the token from another
    thread to abandon the request.

    Usage:
        with HttpClient(config) as client:
            client.get(url)
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        cache_store: MutableMapping[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client settings. Defaults to no cache and no rate limit.
            cache_store: Mapping to hold cached responses. Supplying one
                enables caching even when config.cache_results is False.
            transport: httpx transport to send requests through. None uses
                httpx's default network transport.
        """
        self._config = config or ClientConfig()
        self._cache = ResponseCache(
            store=cache_store,
            enabled=self._config.cache_results or cache_store is not None,
        )
        self._gate: Gate = make_gate(self._config.wait_millis)
        self._transport = transport
        self._timeout = httpx.Timeout(self._config.read_timeout)

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release client resources.

        Connections are closed after every request, so there is nothing
        pooled to tear down. Provided for context-manager symmetry.
        """

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def get(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> str | None:
        """Fetch a URL, serving repeated requests from the cache when enabled.

        Args:
            url: Absolute URL to fetch.
            headers: Extra request headers. They become part of the cache key.
            cancel: Token that abandons the request while it waits at the gate.

        Returns:
            The response body, or None if cancelled.

        Raises:
            HTTPError: If the response status is 400 or above.
            RequestError: If the request fails in transport.
        """
        key = cache_key(url, headers)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for {url}")
            return cached
        return self._request("GET", url, headers=headers, cancel=cancel, cache_as=key)

    def post(
        self,
        url: str,
        data: Body,
        headers: Mapping[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> str | None:
        """Send a POST request.

        Args:
            url: Absolute URL.
            data: Text (sent as UTF-8), raw bytes, a str -> str mapping
                (form-encoded), or a binary stream (read fully and sent as
                Base64 text).
            headers: Extra request headers.
            cancel: Token that abandons the request while it waits at the gate.

        Returns:
            The response body, or None if cancelled.
        """
        content, body_headers = _encode_body(data)
        return self._request(
            "POST", url, headers=headers, content=content, body_headers=body_headers, cancel=cancel
        )

    def post_multipart(
        self,
        url: str,
        parts: Mapping[str, Any],
        headers: Mapping[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> str | None:
        """Send a multipart/form-data POST.

        Args:
            url: Absolute URL.
            parts: Field name -> text, bytes, or FormFile.
            headers: Extra request headers. Content-Type is always replaced
                with the multipart type carrying the generated boundary.
            cancel: Token that abandons the request while it waits at the gate.
        """
        boundary, content = encode_multipart(parts)
        return self._request(
            "POST",
            url,
            headers=headers,
            content=content,
            forced_headers={"Content-Type": multipart_content_type(boundary)},
            cancel=cancel,
        )

    def put(
        self,
        url: str,
        data: Body,
        headers: Mapping[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> str | None:
        """Send a PUT request. Accepts the same body forms as post()."""
        content, body_headers = _encode_body(data)
        return self._request(
            "PUT", url, headers=headers, content=content, body_headers=body_headers, cancel=cancel
        )

    def delete(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> str | None:
        """Send a DELETE request."""
        return self._request("DELETE", url, headers=headers, cancel=cancel)

    def head(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> str | None:
        """Send a HEAD request. A successful response yields an empty string."""
        return self._request("HEAD", url, headers=headers, cancel=cancel)

    def clear_cache(self) -> None:
        """Drop all cached responses. No-op when caching is disabled."""
        self._cache.clear()

    def _build_headers(
        self,
        headers: Mapping[str, str] | None,
        body_headers: Mapping[str, str] | None,
        forced_headers: Mapping[str, str] | None,
    ) -> httpx.Headers:
        """Merge headers by precedence: config < body < caller < forced."""
        merged = httpx.Headers(self._config.headers)
        for layer in (body_headers, headers, forced_headers):
            if layer:
                merged.update(layer)
        return merged

    def _request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
        body_headers: Mapping[str, str] | None = None,
        forced_headers: Mapping[str, str] | None = None,
        cancel: threading.Event | None = None,
        cache_as: str | None = None,
    ) -> str | None:
        """Run one request through the gate.

        Args:
            cache_as: Cache key to check after acquiring the gate and to store
                the body under on success. None for uncached verbs.
        """
        if not self._gate.acquire(cancel):
            logger.info(f"{method} {url} cancelled before sending")
            return None

        try:
            if cache_as is not None:
                # Another caller may have filled the entry while this one waited
                cached = self._cache.get(cache_as)
                if cached is not None:
                    logger.debug(f"Cache hit for {url} after waiting")
                    return cached

            text = self._send(
                method,
                url,
                self._build_headers(headers, body_headers, forced_headers),
                content,
            )

            if cache_as is not None:
                self._cache.put(cache_as, text)
            return text
        finally:
            self._gate.release()

    def _send(
        self,
        method: str,
        url: str,
        headers: httpx.Headers,
        content: bytes | None,
    ) -> str:
        """Perform the transport call and classify the response.

        Raises:
            HTTPError: If the response status is 400 or above.
            RequestError: If the request fails in transport.
        """
        logger.debug(f"{method} {url}")

        with httpx.Client(
            transport=self._transport,
            timeout=self._timeout,
            follow_redirects=True,
        ) as client:
            request = client.build_request(method, url, headers=headers, content=content)

            try:
                response = client.send(request, stream=True)
            except httpx.TimeoutException as e:
                raise RequestError(f"{method} {url} timed out: {e}") from e
            except httpx.ConnectError as e:
                raise RequestError(f"{method} {url} connection error: {e}") from e
            except httpx.RequestError as e:
                raise RequestError(f"{method} {url} request error: {e}") from e

            try:
                logger.debug(f"{method} {url} -> {response.status_code}")
                if response.status_code >= 400:
                    raise HTTPError(response.status_code, self._read_error_message(response))

                try:
                    response.read()
                except httpx.RequestError as e:
                    raise RequestError(f"{method} {url} failed reading response: {e}") from e
                return response.text
            finally:
                response.close()

    @staticmethod
    def _read_error_message(response: httpx.Response) -> str:
        """Read the error body, falling back to a default message.

        Failures while reading the body are not raised; the status code is
        what the caller needs.
        """
        try:
            response.read()
            message = response.text
        except (httpx.HTTPError, httpx.StreamError) as e:
            logger.debug(f"Could not read error body for status {response.status_code}: {e}")
            message = ""
        return message or DEFAULT_ERROR_MESSAGE.format(status_code=response.status_code)
