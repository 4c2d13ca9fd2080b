"""PayloadStream -- 文件 payload 的流式读取句柄

包装一个尚未读取的 httpx 流式响应。
所有权随 File 转交给 handler，handler 负责关闭。
"""

from collections.abc import AsyncIterator

import httpx

from ..exceptions import PayloadReadError


class PayloadStream:
    """可读的 payload 流，支持 async with 自动关闭"""

    def __init__(self, response: httpx.Response, uri: str) -> None:
        self._response = response
        self.uri = uri

    @property
    def closed(self) -> bool:
        return self._response.is_closed

    @property
    def content_length(self) -> int | None:
        """响应头中声明的长度（服务端未提供时为 None）"""
        value = self._response.headers.get("content-length")
        return int(value) if value and value.isdigit() else None

    async def aiter_bytes(self, chunk_size: int | None = None) -> AsyncIterator[bytes]:
        """逐块读取 payload，读完后底层连接自动释放"""
        try:
            async for chunk in self._response.aiter_bytes(chunk_size):
                yield chunk
        except httpx.TransportError as e:
            await self.aclose()
            raise PayloadReadError(self.uri, e) from e

    async def aread(self) -> bytes:
        """读取剩余全部 payload"""
        try:
            return await self._response.aread()
        except httpx.TransportError as e:
            await self.aclose()
            raise PayloadReadError(self.uri, e) from e

    async def aclose(self) -> None:
        """释放连接（可重复调用）"""
        if not self._response.is_closed:
            await self._response.aclose()

    async def __aenter__(self) -> "PayloadStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<PayloadStream {self.uri} {state}>"
