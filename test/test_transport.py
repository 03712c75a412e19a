from aiohttp import test_utils, web
from pytest import raises

from anylist_client import (
    AiohttpTransport,
    BaseTransport,
    HttpClient,
    Request,
    Response,
    TransportError,
)


class RecordingTransport(BaseTransport):
    """
    Returns queued statuses and records requests.
    """

    def __init__(self, *statuses: int):
        self.statuses = list(statuses)
        self.requests: list[Request] = []

    async def send(self, request: Request) -> Response:
        self.requests.append(request)
        return Response(
            status=self.statuses.pop(0), body=b"{}", request=request
        )


async def test_headers():
    transport = RecordingTransport(200)
    client = HttpClient(transport, headers={"a": "1", "b": "1"})

    await client.post("path", headers={"b": "2"})

    request = transport.requests[0]
    assert request.method == "POST"
    assert request.path == "path"
    assert request.headers == {"a": "1", "b": "2"}


async def test_extend():
    transport = RecordingTransport(200, 200)
    client = HttpClient(transport, headers={"a": "1"})

    def add_header(request: Request) -> Request:
        return request.merge_headers({"c": "3"})

    extended = client.extend(headers={"b": "2"}, before_request=[add_header])
    assert extended.transport is transport

    await extended.post("path")
    await client.post("path")

    assert transport.requests[0].headers == {"a": "1", "b": "2", "c": "3"}

    # original client is unchanged
    assert transport.requests[1].headers == {"a": "1"}


async def test_uncaught_status():
    client = HttpClient(RecordingTransport(500))

    with raises(TransportError) as e:
        await client.post("path")

    assert e.value.status == 500
    assert e.value.url == "path"


async def test_retry():
    transport = RecordingTransport(401, 200)

    async def retry_unauthorized(response: Response, retry) -> Response:
        if response.status == 401:
            return await retry({"authorization": "new"})
        return response

    client = HttpClient(
        transport,
        headers={"authorization": "old"},
        after_response=[retry_unauthorized],
    )

    response = await client.post("path", form={"field": "value"})

    assert response.ok
    assert [r.headers["authorization"] for r in transport.requests] == [
        "old",
        "new",
    ]

    # retried request is otherwise identical
    assert transport.requests[1].form == {"field": "value"}


async def test_retry_once():
    transport = RecordingTransport(401, 401)
    calls = []

    async def retry_unauthorized(response: Response, retry) -> Response:
        calls.append(response.status)
        if response.status == 401:
            return await retry({})
        return response

    client = HttpClient(transport, after_response=[retry_unauthorized])

    with raises(TransportError) as e:
        await client.post("path")

    # hook isn't applied to the retry
    assert calls == [401]
    assert e.value.status == 401


async def test_aiohttp_transport():
    received = {}

    async def handler(request: web.Request) -> web.Response:
        form = await request.post()
        received["headers"] = dict(request.headers)
        received["name"] = form["name"]

        operations = form["operations"]
        assert isinstance(operations, web.FileField)
        received["operations"] = operations.file.read()

        return web.json_response({"ok": True}, status=201)

    app = web.Application()
    app.router.add_post("/data/update", handler)

    async with test_utils.TestServer(app) as server:
        transport = AiohttpTransport(str(server.make_url("/")))

        try:
            response = await transport.send(
                Request(
                    "POST",
                    "data/update",
                    {"X-Test": "1"},
                    {"name": "value", "operations": b"\x00\x01"},
                )
            )
        finally:
            await transport.close()

    assert response.status == 201
    assert response.json() == {"ok": True}
    assert received["headers"]["X-Test"] == "1"
    assert received["name"] == "value"
    assert received["operations"] == b"\x00\x01"


async def test_aiohttp_transport_unreachable():
    # nothing listens on port 1
    transport = AiohttpTransport("http://127.0.0.1:1", timeout=5.0)

    try:
        with raises(TransportError) as e:
            await transport.send(Request("POST", "path"))
    finally:
        await transport.close()

    assert e.value.status is None
