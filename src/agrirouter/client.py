"""AgrirouterClient -- agrirouter API 客户端

- put_endpoint() / send_messages(): 请求/响应式端点管理与消息发送
- receive_messages() / receive_files(): 长期运行的接收循环

同一个客户端可以并发运行多个接收循环（例如消息和文件各一个 task），
它们只共享不可变配置和 httpx.AsyncClient。
"""

from collections.abc import Mapping
from typing import NoReturn
from urllib.parse import quote
from uuid import UUID

import httpx
import structlog
from pydantic import ValidationError

from .config import DEFAULT_TIMEOUT_S, ClientConfig
from .exceptions import ApiCallError, InvalidURLError
from .models.endpoint import Endpoint, PutEndpointRequest, SendMessagesParams
from .models.message import File, Message
from .payload import PayloadResolver
from .receiver import ErrorHandler, FileReceiver, Handler, MessageReceiver
from .subscriber import EventStreamSubscriber

log = structlog.get_logger()

# 请求/响应式 API 的成功状态码
_PUT_ENDPOINT_OK = (httpx.codes.OK, httpx.codes.CREATED)
_SEND_MESSAGES_OK = (httpx.codes.OK, httpx.codes.ACCEPTED)


def _validate_api_url(api_url: str) -> str:
    try:
        url = httpx.URL(api_url)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise InvalidURLError(api_url, str(e)) from e
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidURLError(api_url, "expected an absolute http(s) URL")
    return str(url).rstrip("/")


def _status_error(action: str, response: httpx.Response) -> ApiCallError:
    content_type = response.headers.get("content-type", "")
    return ApiCallError(
        f"{action}: unexpected status code {response.status_code}, "
        f"contentType: {content_type}, body: {response.content[:512]!r}",
        status_code=response.status_code,
        body=response.content,
        content_type=content_type,
    )


class AgrirouterClient:
    """agrirouter API 客户端

    用法:
        setup_logging()
        async with AgrirouterClient.from_config(load_client_config()) as client:
            await client.receive_messages(on_message, on_error)
    """

    def __init__(
        self,
        api_url: str,
        http_client: httpx.AsyncClient | None = None,
        headers: Mapping[str, str] | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        """初始化客户端

        Args:
            api_url: API 基础地址，如 "https://api.qa.agrirouter.farm"
            http_client: 自定义 httpx 客户端（认证、代理、测试 transport），
                传入时由调用方负责关闭
            headers: 每个请求附加的请求头（如 Authorization），不修改 http_client
            timeout_s: 请求/建立连接超时（秒）

        Raises:
            InvalidURLError: api_url 无法解析
        """
        self._api_url = _validate_api_url(api_url)
        self._timeout_s = timeout_s
        self._headers = dict(headers or {})

        if http_client is None:
            self._http = httpx.AsyncClient(timeout=timeout_s)
            self._owns_http = True
        else:
            self._http = http_client
            self._owns_http = False

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> "AgrirouterClient":
        """根据 ClientConfig 创建客户端"""
        return cls(
            api_url=config.api_url,
            http_client=http_client,
            headers=config.default_headers(),
            timeout_s=config.timeout_s,
        )

    @property
    def api_url(self) -> str:
        return self._api_url

    async def aclose(self) -> None:
        """关闭客户端自己创建的 httpx 连接池"""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "AgrirouterClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------
    # 接收循环
    # ------------------------------------------------------------

    def _subscriber(self) -> EventStreamSubscriber:
        return EventStreamSubscriber(
            self._http,
            self._api_url,
            connect_timeout_s=self._timeout_s,
            headers=self._headers,
        )

    def _resolver(self) -> PayloadResolver:
        return PayloadResolver(self._http, headers=self._headers)

    async def receive_messages(
        self,
        on_message: Handler[Message],
        on_error: ErrorHandler | None = None,
    ) -> NoReturn:
        """接收消息并逐条调用 on_message

        阻塞直到所在 task 被取消或连接终止，建议在独立 task 中运行。
        handler 在循环所在 task 中执行，取消会同样传递给 handler 内部的 await。

        Args:
            on_message: 消息 handler（普通函数或协程函数）
            on_error: 单条消息处理失败的回调，None 时仅记录日志

        Raises:
            EventStreamError: 事件流连接失败或中断
            asyncio.CancelledError: task 被取消
        """
        receiver = MessageReceiver(self._subscriber(), self._resolver())
        await receiver.run(on_message, on_error)

    async def receive_files(
        self,
        on_file: Handler[File],
        on_error: ErrorHandler | None = None,
    ) -> NoReturn:
        """接收文件并逐个调用 on_file

        File.payload 是打开的流，所有权交给 on_file，由其读取并关闭。
        其余行为同 receive_messages()。
        """
        receiver = FileReceiver(self._subscriber(), self._resolver())
        await receiver.run(on_file, on_error)

    # ------------------------------------------------------------
    # 请求/响应式 API
    # ------------------------------------------------------------

    async def put_endpoint(
        self,
        external_id: str,
        request: PutEndpointRequest,
        tenant_id: UUID,
    ) -> Endpoint:
        """创建或更新端点

        external_id 唯一标识端点：已存在时更新（仅当调用方有权修改该端点）。
        request 必须包含完整的能力和订阅列表，不支持部分更新。

        Returns:
            服务端保存的 Endpoint

        Raises:
            ApiCallError: 网络错误、状态码非 200/201 或响应无法解析
        """
        url = f"{self._api_url}/endpoints/{quote(external_id, safe='')}"
        try:
            response = await self._http.put(
                url,
                json=request.model_dump(mode="json", by_alias=True),
                headers={**self._headers, "X-Agrirouter-Tenant-Id": str(tenant_id)},
            )
        except httpx.TransportError as e:
            log.error("put_endpoint_failed", external_id=external_id, error=str(e))
            raise ApiCallError(f"failed to put endpoint: API call failed: {e}") from e

        if response.status_code not in _PUT_ENDPOINT_OK:
            log.warning(
                "put_endpoint_rejected",
                external_id=external_id,
                status_code=response.status_code,
            )
            raise _status_error("failed to put endpoint", response)

        try:
            endpoint = Endpoint.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ApiCallError(
                f"failed to put endpoint: malformed response body: {e}",
                status_code=response.status_code,
                body=response.content,
                content_type=response.headers.get("content-type", ""),
            ) from e

        log.info("put_endpoint_completed", external_id=external_id, endpoint_id=endpoint.id)
        return endpoint

    async def send_messages(self, params: SendMessagesParams, body: bytes) -> None:
        """发送一条消息

        Args:
            params: 消息元数据（以 X-Agrirouter-* 请求头发送）
            body: 原始 payload

        Raises:
            ApiCallError: 网络错误或状态码非 200/202
        """
        url = f"{self._api_url}/messages"
        try:
            response = await self._http.post(
                url,
                content=body,
                headers={**self._headers, **params.to_headers(len(body))},
            )
        except httpx.TransportError as e:
            log.error("send_messages_failed", message_type=params.message_type, error=str(e))
            raise ApiCallError(f"API call failed: {e}") from e

        if response.status_code not in _SEND_MESSAGES_OK:
            log.warning(
                "send_messages_rejected",
                message_type=params.message_type,
                status_code=response.status_code,
            )
            raise _status_error("failed to send messages", response)

        log.info(
            "send_messages_completed",
            message_type=params.message_type,
            context_id=params.context_id,
            size=len(body),
        )
