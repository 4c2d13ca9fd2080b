"""全局 pytest 配置 -- 基于 httpx.MockTransport 的 agrirouter 模拟平台"""

import asyncio
import json
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from agrirouter.client import AgrirouterClient

API_URL = "http://agrirouter.test"
RECEIVING_ENDPOINT_ID = "0d5b1c0e-5a07-4bc4-9f6a-1c2b3a4d5e6f"
TENANT_ID = "6f1e2d3c-4b5a-4978-8a6b-5c4d3e2f1a0b"

Route = Callable[[httpx.Request], httpx.Response]


def sse_frame(event_type: str | None, body: Any, event_id: str | None = None) -> str:
    """构造一条 SSE 消息（body 非 str 时序列化为 JSON）"""
    data = body if isinstance(body, str) else json.dumps(body)
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    if event_type is not None:
        lines.append(f"event: {event_type}")
    lines.extend(f"data: {line}" for line in data.split("\n"))
    return "\n".join(lines) + "\n\n"


def message_body(
    payload: str | None = None,
    payload_uri: str | None = None,
    app_message_id: str = "ctx-0",
    message_type: str = "img:png",
    **extra: Any,
) -> dict[str, Any]:
    """构造 MESSAGE_RECEIVED 事件 body"""
    body: dict[str, Any] = {
        "messageType": message_type,
        "appMessageId": app_message_id,
        "receivingEndpointId": RECEIVING_ENDPOINT_ID,
    }
    if payload is not None:
        body["payload"] = payload
    if payload_uri is not None:
        body["payloadUri"] = payload_uri
    body.update(extra)
    return body


def file_body(
    payload_uri: str | None,
    size: int,
    filename: str | None = "field.zip",
    message_type: str = "shp:shape:zip",
) -> dict[str, Any]:
    """构造 FILE_RECEIVED 事件 body"""
    body: dict[str, Any] = {
        "messageType": message_type,
        "receivingEndpointId": RECEIVING_ENDPOINT_ID,
        "size": size,
    }
    if payload_uri is not None:
        body["payloadUri"] = payload_uri
    if filename is not None:
        body["filename"] = filename
    return body


async def _chunks(body: bytes) -> AsyncIterator[bytes]:
    """以异步流形式返回字节，使模拟响应保持未读取状态"""
    yield body


async def broken_body(first: bytes) -> AsyncIterator[bytes]:
    """先输出一段数据，然后读取中断"""
    yield first
    raise httpx.ReadError("connection reset by peer")


class StalledBody:
    """输出一段数据后永不结束的响应体，记录开始读取与释放"""

    def __init__(self, first: bytes = b"part") -> None:
        self.first = first
        self.started = asyncio.Event()
        self.released = False

    async def _body(self) -> AsyncIterator[bytes]:
        try:
            self.started.set()
            yield self.first
            await asyncio.Event().wait()
        finally:
            self.released = True

    def __call__(self) -> AsyncIterator[bytes]:
        return self._body()


class FakePlatform:
    """模拟 agrirouter 平台

    - GET /events: 依次推送 frames，之后按 hang 决定挂起或关闭流
    - 其他请求按 (method, path) 查找 routes，未注册时返回 404
    """

    def __init__(self) -> None:
        self.frames: list[str] = []
        self.hang = False
        self.events_status = 200
        self.events_body = b""
        self.events_error: Exception | None = None
        self.routes: dict[tuple[str, str], Route] = {}
        self.requests: list[httpx.Request] = []
        self.events_response: httpx.Response | None = None
        self.events_released = False

    def push(self, event_type: str | None, body: Any, event_id: str | None = None) -> None:
        self.frames.append(sse_frame(event_type, body, event_id))

    def route(self, method: str, path: str, route: Route) -> None:
        self.routes[(method, path)] = route

    def add_payload(
        self,
        path: str,
        content: bytes | Callable[[], AsyncIterator[bytes]],
        status: int = 200,
    ) -> str:
        """注册 payload 下载地址，返回完整 URI"""

        def respond(request: httpx.Request) -> httpx.Response:
            if callable(content):
                return httpx.Response(status, content=content())
            return httpx.Response(
                status,
                headers={"Content-Length": str(len(content))},
                content=_chunks(content),
            )

        self.route("GET", path, respond)
        return f"{API_URL}{path}"

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    async def _event_stream(self) -> AsyncIterator[bytes]:
        try:
            for frame in self.frames:
                yield frame.encode()
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.events_released = True

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.method == "GET" and request.url.path == "/events":
            if self.events_error is not None:
                raise self.events_error
            if self.events_status != 200:
                return httpx.Response(self.events_status, content=self.events_body)
            self.events_response = httpx.Response(
                200,
                headers={"Content-Type": "text/event-stream"},
                content=self._event_stream(),
            )
            return self.events_response

        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, content=b"not found")
        return route(request)


@pytest.fixture
def platform() -> FakePlatform:
    """提供模拟平台"""
    return FakePlatform()


@pytest_asyncio.fixture
async def http_client(platform: FakePlatform) -> AsyncGenerator[httpx.AsyncClient, None]:
    """提供连接到模拟平台的 httpx 客户端"""
    async with httpx.AsyncClient(transport=httpx.MockTransport(platform.handler)) as ac:
        yield ac


@pytest.fixture
def client(http_client: httpx.AsyncClient) -> AgrirouterClient:
    """提供使用模拟平台的 AgrirouterClient"""
    return AgrirouterClient(API_URL, http_client=http_client)
