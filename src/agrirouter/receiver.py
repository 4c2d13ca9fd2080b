"""ReceiveLoop -- 消息/文件接收循环

组合 EventStreamSubscriber + EventDecoder + PayloadResolver：
订阅 -> 解码 -> 收窄 -> payload 校验 -> 解析 payload -> 构建领域对象 -> 调用 handler

单事件失败（解码、收窄、缺失 payload、拉取失败、handler 异常）通过 on_error 上报，
循环继续；只有 subscribe() 抛出（取消或连接失败）时循环结束，异常原样传给调用方。
没有重试/重连状态，需要重连时由调用方创建新的接收循环。
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, Generic, NoReturn, TypeVar

import structlog

from .decoder import EventDecoder
from .exceptions import (
    EventDecodeError,
    EventNarrowError,
    HandlerError,
    InvalidPayloadURIError,
    MissingPayloadError,
    PayloadFetchError,
    PayloadReadError,
)
from .models.enums import EventType
from .models.events import GenericEvent
from .models.message import File, Message
from .payload import PayloadResolver
from .subscriber import EventStreamSubscriber, ServerSentEvent

log = structlog.get_logger()

T = TypeVar("T")

# handler 可以是普通函数，也可以是协程函数
Handler = Callable[[T], Awaitable[None] | None]
ErrorHandler = Callable[[Exception], Awaitable[None] | None]

# 单事件错误：上报后继续循环
EVENT_ERRORS = (
    EventDecodeError,
    EventNarrowError,
    MissingPayloadError,
    InvalidPayloadURIError,
    PayloadFetchError,
    PayloadReadError,
)


class ReceiverState(StrEnum):
    """接收循环状态"""

    IDLE = "IDLE"
    SUBSCRIBING = "SUBSCRIBING"
    STREAMING = "STREAMING"
    DECODING = "DECODING"
    RESOLVING = "RESOLVING"
    DISPATCHING = "DISPATCHING"
    TERMINATED = "TERMINATED"


async def _invoke(callback: Callable[[Any], Any], arg: Any) -> None:
    """调用 handler，协程结果在当前 task 中 await"""
    result = callback(arg)
    if inspect.isawaitable(result):
        await result


def _log_error(error: Exception) -> None:
    """未提供 on_error 时的默认错误处理"""
    log.warning(
        "receive_event_failed",
        error=str(error),
        error_type=type(error).__name__,
    )


class ReceiveLoop(ABC, Generic[T]):
    """接收循环基类 -- 每个实例只运行一次

    子类实现 _materialize()：把收窄后的事件变成交给 handler 的领域对象。
    """

    event_type: EventType
    name: str = "receive"

    def __init__(
        self,
        subscriber: EventStreamSubscriber,
        resolver: PayloadResolver,
        decoder: EventDecoder | None = None,
    ) -> None:
        self._subscriber = subscriber
        self._resolver = resolver
        self._decoder = decoder or EventDecoder()
        self.state = ReceiverState.IDLE
        self.terminal_error: BaseException | None = None
        self._log = log.bind(loop=self.name)

    async def run(
        self,
        on_item: Handler[T],
        on_error: ErrorHandler | None = None,
    ) -> NoReturn:
        """运行接收循环，直到取消或连接终止

        Args:
            on_item: 成功 handler，按事件到达顺序逐个调用
            on_error: 单事件错误回调，None 时仅记录日志

        Raises:
            EventStreamError: 连接级失败
            asyncio.CancelledError: task 被取消（正常停止）
            RuntimeError: 同一实例重复运行
        """
        if self.state != ReceiverState.IDLE:
            raise RuntimeError(f"{type(self).__name__} can only run once")

        error_handler = on_error or _log_error

        async def on_raw_event(sse: ServerSentEvent) -> None:
            try:
                item = await self._process(sse)
            except EVENT_ERRORS as e:
                self._log.info(
                    "event_rejected",
                    error=str(e),
                    error_type=type(e).__name__,
                    sse_id=sse.id,
                )
                await _invoke(error_handler, e)
            else:
                await self._dispatch(item, on_item, error_handler)
            finally:
                self.state = ReceiverState.STREAMING

        def on_connected() -> None:
            self.state = ReceiverState.STREAMING

        self.state = ReceiverState.SUBSCRIBING
        try:
            await self._subscriber.subscribe(
                [self.event_type],
                on_raw_event,
                on_connected=on_connected,
            )
        except BaseException as e:
            self.terminal_error = e
            self._log.info("receive_loop_terminated", reason=type(e).__name__)
            raise
        finally:
            self.state = ReceiverState.TERMINATED

    async def _process(self, sse: ServerSentEvent) -> T:
        self.state = ReceiverState.DECODING
        event = self._decoder.decode(sse.data, sse.event, sse.id)
        self.state = ReceiverState.RESOLVING
        return await self._materialize(event)

    async def _dispatch(
        self,
        item: T,
        on_item: Handler[T],
        on_error: ErrorHandler,
    ) -> None:
        self.state = ReceiverState.DISPATCHING
        try:
            await _invoke(on_item, item)
        except Exception as e:
            self._log.warning(
                "handler_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=e,
            )
            await self._on_handler_failure(item)
            await _invoke(on_error, HandlerError(e))

    @abstractmethod
    async def _materialize(self, event: GenericEvent) -> T:
        """把收窄后的事件变成交给 handler 的领域对象（含 payload 解析）"""

    async def _on_handler_failure(self, item: T) -> None:
        """handler 抛出异常后的清理"""


class MessageReceiver(ReceiveLoop[Message]):
    """MESSAGE_RECEIVED 接收循环 -- payload 完整读入内存"""

    event_type = EventType.MESSAGE_RECEIVED
    name = "messages"

    async def _materialize(self, event: GenericEvent) -> Message:
        received = self._decoder.narrow_to_message(event)
        payload = await self._resolver.resolve_buffered(
            received.payload,
            received.payload_uri,
        )
        return Message(
            message_type=received.message_type,
            payload=payload,
            app_message_id=received.app_message_id,
            receiving_endpoint_id=received.receiving_endpoint_id,
            filename=received.filename,
        )


class FileReceiver(ReceiveLoop[File]):
    """FILE_RECEIVED 接收循环 -- payload 以打开的流交给 handler

    handler 正常返回后流归 handler 所有，由其负责关闭；
    handler 抛出异常时流由接收循环关闭。
    """

    event_type = EventType.FILE_RECEIVED
    name = "files"

    async def _materialize(self, event: GenericEvent) -> File:
        received = self._decoder.narrow_to_file(event)
        if received.payload_uri is None:
            raise MissingPayloadError(self.event_type)

        stream = await self._resolver.resolve_stream(received.payload_uri)
        return File(
            message_type=received.message_type,
            receiving_endpoint_id=received.receiving_endpoint_id,
            payload=stream,
            filename=received.filename,
            size=received.size,
        )

    async def _on_handler_failure(self, item: File) -> None:
        await item.payload.aclose()
