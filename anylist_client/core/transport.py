"""
Interface to the HTTP transport used to reach AnyList.

{obj}`BaseTransport` sends a single request and returns the response;
{obj}`HttpClient` layers default headers and interception hooks on top of
a transport, in the manner of a "before request" / "after response" hook
chain.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from functools import partial
from logging import Logger
from typing import Any

import aiohttp

from .exceptions import TransportError

__all__ = [
    "Request",
    "Response",
    "BaseTransport",
    "AiohttpTransport",
    "HttpClient",
]

REQUEST_TIMEOUT = 30.0
"""
Default timeout of a single request, in seconds.
"""

type FormValue = str | bytes

type BeforeRequestHook = Callable[[Request], Request]
"""
Invoked with each outgoing request, returns the request to send.
"""

type Retry = Callable[[Mapping[str, str]], Awaitable[Response]]
"""
Reissues the original request once, with the given headers merged in.
"""

type AfterResponseHook = Callable[[Response, Retry], Awaitable[Response]]
"""
Invoked with each response, returns the response to use.
"""


@dataclass(frozen=True)
class Request:
    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    form: dict[str, FormValue] | None = None

    def merge_headers(self, headers: Mapping[str, str]) -> Request:
        """
        Return a copy of this request with the given headers taking
        precedence.
        """
        return replace(self, headers={**self.headers, **headers})


@dataclass(frozen=True)
class Response:
    status: int
    body: bytes
    request: Request

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.body)


class BaseTransport(ABC):
    """
    Sends requests to AnyList. Implementations raise {obj}`TransportError`
    upon network failure; any HTTP status is returned as a response.
    """

    @abstractmethod
    async def send(self, request: Request) -> Response:
        ...

    async def close(self):
        """
        Release any resources held by this transport.
        """
        ...


class AiohttpTransport(BaseTransport):
    """
    Transport using an `aiohttp` client session.
    """

    _base_url: str
    _timeout: float
    _session: aiohttp.ClientSession | None
    _owns_session: bool

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = REQUEST_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        :param base_url: URL to which request paths are appended
        :param timeout: Total timeout of each request, in seconds
        :param session: Client session to use, or `None` to create one when first needed
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def send(self, request: Request) -> Response:
        url = f"{self._base_url}/{request.path.lstrip('/')}"

        data: aiohttp.FormData | None = None
        if request.form is not None:
            data = aiohttp.FormData()
            for name, value in request.form.items():
                if isinstance(value, bytes):
                    data.add_field(
                        name,
                        value,
                        filename=name,
                        content_type="application/octet-stream",
                    )
                else:
                    data.add_field(name, value)

        try:
            async with self._get_session().request(
                request.method,
                url,
                headers=request.headers,
                data=data,
                allow_redirects=False,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                body = await resp.read()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Request to {url} failed: {e!r}", url=url
            ) from e

        return Response(status=status, body=body, request=request)

    async def close(self):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        # created lazily since it must be created within the event loop
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session


class HttpClient:
    """
    Sends requests through a transport, applying default headers and
    hooks. Non-2xx responses remaining after the hooks run are raised as
    {obj}`TransportError`.
    """

    _transport: BaseTransport
    _headers: dict[str, str]
    _before_request: list[BeforeRequestHook]
    _after_response: list[AfterResponseHook]
    _logger: Logger

    def __init__(
        self,
        transport: BaseTransport,
        *,
        headers: Mapping[str, str] | None = None,
        before_request: Iterable[BeforeRequestHook] = (),
        after_response: Iterable[AfterResponseHook] = (),
        logger: Logger | None = None,
    ):
        self._transport = transport
        self._headers = dict(headers or {})
        self._before_request = list(before_request)
        self._after_response = list(after_response)
        self._logger = logger or logging.getLogger("anylist_client")

    def extend(
        self,
        *,
        headers: Mapping[str, str] | None = None,
        before_request: Iterable[BeforeRequestHook] = (),
        after_response: Iterable[AfterResponseHook] = (),
    ) -> HttpClient:
        """
        Create a client sharing this client's transport, with additional
        headers and hooks.
        """
        return HttpClient(
            self._transport,
            headers={**self._headers, **(headers or {})},
            before_request=self._before_request + list(before_request),
            after_response=self._after_response + list(after_response),
            logger=self._logger,
        )

    @property
    def transport(self) -> BaseTransport:
        return self._transport

    async def post(
        self,
        path: str,
        *,
        form: dict[str, FormValue] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        request = Request(
            "POST", path, {**self._headers, **(headers or {})}, form
        )
        return await self.send(request)

    async def send(self, request: Request) -> Response:
        for before in self._before_request:
            request = before(request)

        response = await self._transport.send(request)

        for after in self._after_response:
            response = await after(
                response, partial(self._retry, response.request)
            )

        if not response.ok:
            self._logger.warning(
                f"Endpoint {response.request.path} returned uncaught status code {response.status}"
            )
            raise TransportError(
                f"Endpoint {response.request.path} returned status code {response.status}",
                status=response.status,
                url=response.request.path,
            )

        return response

    async def _retry(
        self, request: Request, headers: Mapping[str, str]
    ) -> Response:
        # hooks are not reapplied so a request is retried at most once
        return await self._transport.send(request.merge_headers(headers))
