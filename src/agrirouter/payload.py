"""PayloadResolver -- 事件 payload 解析

两种策略：
- resolve_buffered(): 消息事件，返回完整 bytes（有 URI 时拉取远程 payload，
  否则直接返回内嵌 payload，不发请求）
- resolve_stream(): 文件事件，返回未读取的 PayloadStream，所有权交给调用方

所有请求复用客户端的 httpx.AsyncClient，并运行在接收循环所在的 task 中，
task 取消时请求随之中止，连接在每条退出路径上释放。
"""

from collections.abc import Mapping

import httpx
import structlog

from .exceptions import (
    InvalidPayloadURIError,
    MissingPayloadError,
    PayloadFetchError,
    PayloadReadError,
)
from .models.enums import EventType
from .models.stream import PayloadStream

log = structlog.get_logger()

# 错误响应体最多保留的字节数（仅用于诊断）
MAX_ERROR_BODY_BYTES = 4096


def parse_payload_uri(uri: str) -> httpx.URL:
    """解析 payload URI，只接受 http(s) 绝对地址

    Raises:
        InvalidPayloadURIError: URI 无法解析或不是 http(s) 绝对地址
    """
    try:
        url = httpx.URL(uri)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise InvalidPayloadURIError(uri, str(e)) from e

    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidPayloadURIError(uri, "expected an absolute http(s) URL")
    return url


async def _drain_error_body(response: httpx.Response) -> bytes:
    """读取非成功响应的正文（截断），读取失败时返回已读部分"""
    chunks: list[bytes] = []
    size = 0
    try:
        async for chunk in response.aiter_bytes():
            chunks.append(chunk)
            size += len(chunk)
            if size >= MAX_ERROR_BODY_BYTES:
                break
    except httpx.TransportError as e:
        log.debug("payload_error_body_unreadable", url=str(response.url), error=str(e))
    return b"".join(chunks)[:MAX_ERROR_BODY_BYTES]


class PayloadResolver:
    """事件 payload 解析器"""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """
        Args:
            http_client: 共享的 httpx 客户端
            headers: 每个拉取请求附加的请求头（如 Authorization）
        """
        self._http = http_client
        self._headers = dict(headers or {})

    async def resolve_buffered(
        self,
        inline: bytes | None,
        uri: str | None,
    ) -> bytes:
        """返回完整 payload

        有 payload URI 时总是拉取远程 payload，内嵌 payload 只在没有 URI 时使用。
        这是消息事件的 payload 不变量唯一的检查点。

        Args:
            inline: 事件内嵌的 payload
            uri: 远程 payload 地址

        Returns:
            payload bytes

        Raises:
            MissingPayloadError: 两者都缺失
            InvalidPayloadURIError: URI 非法
            PayloadFetchError: 网络错误或状态码非 200
            PayloadReadError: 响应体读取中断
        """
        if uri is None:
            if inline is None:
                raise MissingPayloadError(EventType.MESSAGE_RECEIVED)
            return inline

        url = parse_payload_uri(uri)
        log.debug("payload_fetch_start", uri=uri, mode="buffered")

        try:
            async with self._http.stream("GET", url, headers=self._headers) as response:
                if response.status_code != httpx.codes.OK:
                    body = await _drain_error_body(response)
                    log.warning(
                        "payload_fetch_failed",
                        uri=uri,
                        status_code=response.status_code,
                    )
                    raise PayloadFetchError(uri, response.status_code, body)
                try:
                    payload = await response.aread()
                except httpx.TransportError as e:
                    raise PayloadReadError(uri, e) from e
        except httpx.TransportError as e:
            log.warning("payload_fetch_failed", uri=uri, error=str(e))
            raise PayloadFetchError(uri, reason=str(e)) from e

        log.debug("payload_fetch_completed", uri=uri, size=len(payload))
        return payload

    async def resolve_stream(self, uri: str) -> PayloadStream:
        """打开 payload 流，不读取响应体

        返回的 PayloadStream 必须由调用方关闭。状态码非 200 时，
        响应体读取用于诊断后立即释放连接，再抛出异常。

        Raises:
            InvalidPayloadURIError: URI 非法
            PayloadFetchError: 网络错误或状态码非 200
        """
        url = parse_payload_uri(uri)
        log.debug("payload_fetch_start", uri=uri, mode="stream")

        request = self._http.build_request("GET", url, headers=self._headers)
        try:
            response = await self._http.send(request, stream=True)
        except httpx.TransportError as e:
            log.warning("payload_fetch_failed", uri=uri, error=str(e))
            raise PayloadFetchError(uri, reason=str(e)) from e

        if response.status_code != httpx.codes.OK:
            try:
                body = await _drain_error_body(response)
            finally:
                await response.aclose()
            log.warning(
                "payload_fetch_failed",
                uri=uri,
                status_code=response.status_code,
            )
            raise PayloadFetchError(uri, response.status_code, body)

        return PayloadStream(response, uri)
