"""EventStreamSubscriber -- 事件流订阅

持有一条到 GET /events 的长连接（text/event-stream），按到达顺序
逐条 await 回调；回调返回前不读取下一条消息，慢 handler 自然限制读取速率。

终止方式只有两种：
- task 被取消（CancelledError / 外层 asyncio.timeout 的 TimeoutError），属正常停止
- 连接级失败，抛出 EventStreamError
"""

from collections.abc import (
    AsyncGenerator,
    AsyncIterator,
    Awaitable,
    Callable,
    Mapping,
    Sequence,
)
from typing import NoReturn

import httpx
import structlog
from pydantic import BaseModel, Field

from .exceptions import EventStreamError

log = structlog.get_logger()

# 握手失败时最多保留的响应体字节数
MAX_ERROR_BODY_BYTES = 4096


class ServerSentEvent(BaseModel):
    """一条 SSE 消息"""

    event: str | None = Field(default=None, description="event 字段，未设置时为 None")
    data: str = Field(default="", description="data 字段（多行以 \\n 连接）")
    id: str | None = Field(default=None, description="最近一次 id 字段")
    retry: int | None = Field(default=None, description="服务端建议的重连间隔（毫秒）")


async def iter_sse(lines: AsyncIterator[str]) -> AsyncGenerator[ServerSentEvent, None]:
    """按 text/event-stream 规则把文本行组装为 SSE 消息

    - 空行分发当前消息，data 为空的消息被丢弃
    - 以 ":" 开头的注释行（心跳）忽略
    - 流在消息中途结束时，未分发的部分被丢弃
    """
    event: str | None = None
    data: list[str] = []
    last_id: str | None = None
    retry: int | None = None

    async for line in lines:
        if not line:
            if data:
                yield ServerSentEvent(
                    event=event,
                    data="\n".join(data),
                    id=last_id,
                    retry=retry,
                )
            event = None
            data = []
            retry = None
            continue

        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
        elif field == "id":
            if "\0" not in value:
                last_id = value
        elif field == "retry":
            if value.isdigit():
                retry = int(value)
        # 其他字段按规范忽略


class EventStreamSubscriber:
    """事件流订阅器 -- 每次 subscribe() 独占一条物理连接"""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_url: str,
        connect_timeout_s: float = 30,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """
        Args:
            http_client: 共享的 httpx 客户端
            api_url: agrirouter API 基础地址
            connect_timeout_s: 建立连接超时（读取不设超时，事件流可能长时间空闲）
            headers: 订阅请求附加的请求头（如 Authorization）
        """
        self._http = http_client
        self._headers = dict(headers or {})
        self._api_url = api_url.rstrip("/")
        self._timeout = httpx.Timeout(connect_timeout_s, read=None)

    async def subscribe(
        self,
        event_types: Sequence[str],
        on_raw_event: Callable[[ServerSentEvent], Awaitable[None]],
        on_connected: Callable[[], None] | None = None,
    ) -> NoReturn:
        """订阅事件流，直到取消或连接终止

        Args:
            event_types: 请求的事件类型（服务端只推送这些类型，但调用方不应依赖）
            on_raw_event: 每条 SSE 消息的回调，按到达顺序逐条 await
            on_connected: 握手成功后调用一次

        Raises:
            EventStreamError: 连接失败、握手状态码非 200、读取中断或服务端关闭流
            asyncio.CancelledError: task 被取消（连接已关闭）
        """
        url = f"{self._api_url}/events"
        types = [str(t) for t in event_types]
        request = self._http.build_request(
            "GET",
            url,
            params=[("types", t) for t in types],
            headers={
                **self._headers,
                "Accept": "text/event-stream",
                "Cache-Control": "no-cache",
            },
            timeout=self._timeout,
        )

        log.info("event_stream_connecting", url=url, types=types)
        try:
            response = await self._http.send(request, stream=True)
        except httpx.TransportError as e:
            log.error("event_stream_connect_failed", url=url, error=str(e))
            raise EventStreamError(f"failed to connect to event stream: {e}") from e

        events: AsyncGenerator[ServerSentEvent, None] | None = None
        try:
            if response.status_code != httpx.codes.OK:
                body = await self._read_error_body(response)
                log.error(
                    "event_stream_handshake_failed",
                    url=url,
                    status_code=response.status_code,
                )
                raise EventStreamError(
                    f"unexpected status code {response.status_code} from event stream, "
                    f"body: {body[:512]!r}",
                    status_code=response.status_code,
                    body=body,
                )

            log.info("event_stream_connected", url=url, types=types)
            if on_connected is not None:
                on_connected()
            events = iter_sse(response.aiter_lines())
            while True:
                try:
                    sse = await anext(events)
                except StopAsyncIteration:
                    break
                except httpx.TransportError as e:
                    log.error("event_stream_broken", url=url, error=str(e))
                    raise EventStreamError(f"event stream broken: {e}") from e

                await on_raw_event(sse)
        finally:
            if events is not None:
                await events.aclose()
            await response.aclose()
            log.debug("event_stream_released", url=url)

        log.warning("event_stream_closed_by_server", url=url)
        raise EventStreamError("event stream closed by server")

    @staticmethod
    async def _read_error_body(response: httpx.Response) -> bytes:
        try:
            body = await response.aread()
        except httpx.TransportError:
            return b""
        return body[:MAX_ERROR_BODY_BYTES]
