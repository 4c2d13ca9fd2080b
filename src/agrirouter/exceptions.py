"""agrirouter 客户端异常体系

按接收流水线的错误分类组织：
- 单事件错误（decode/narrow/缺失 payload/拉取失败/handler 失败）：recoverable=True，
  通过 on_error 回调上报，接收循环继续
- 连接级错误（EventStreamError）：recoverable=False，终止接收循环
- 取消：直接使用 asyncio.CancelledError / TimeoutError，不做包装
"""


class AgrirouterError(Exception):
    """agrirouter 客户端基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否只影响单个事件（接收循环可继续）
        """
        super().__init__(message)
        self.recoverable = recoverable


class InvalidURLError(AgrirouterError):
    """提供的服务地址无法解析"""

    def __init__(self, url: str, reason: str = "") -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(f"provided URL is invalid: {url!r}{detail}", recoverable=False)
        self.url = url


class ApiCallError(AgrirouterError):
    """请求/响应式 API 调用失败（网络错误或非预期状态码）"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: bytes = b"",
        content_type: str = "",
    ) -> None:
        super().__init__(message, recoverable=False)
        self.status_code = status_code
        self.body = body
        self.content_type = content_type


class EventDecodeError(AgrirouterError):
    """事件 data 不是合法的 JSON 对象"""


class EventNarrowError(AgrirouterError):
    """通用事件无法收窄为目标事件类型

    类型标识不匹配，或必填字段缺失/格式错误。
    """

    def __init__(self, message: str, event_type: str) -> None:
        super().__init__(message)
        self.event_type = event_type


class MissingPayloadError(AgrirouterError):
    """事件既没有内嵌 payload，也没有 payload URI"""

    def __init__(self, event_type: str) -> None:
        super().__init__(
            f"missing payload: no embedded payload and no payload URI ({event_type})"
        )
        self.event_type = event_type


class InvalidPayloadURIError(AgrirouterError):
    """payload URI 无法解析或不是 http(s) 绝对地址"""

    def __init__(self, uri: str, reason: str = "") -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(f"invalid payload URI {uri!r}{detail}")
        self.uri = uri


class PayloadFetchError(AgrirouterError):
    """拉取远程 payload 失败

    status_code 为 None 表示请求未拿到响应（网络错误）。
    body 为非成功响应的正文，供诊断使用。
    """

    def __init__(
        self,
        uri: str,
        status_code: int | None = None,
        body: bytes = b"",
        reason: str = "",
    ) -> None:
        if status_code is None:
            message = f"failed to fetch payload from {uri}: {reason}"
        else:
            message = (
                f"unexpected status code when fetching payload from {uri}: "
                f"{status_code}, body: {body[:512]!r}"
            )
        super().__init__(message)
        self.uri = uri
        self.status_code = status_code
        self.body = body


class PayloadReadError(AgrirouterError):
    """payload 响应体读取中断"""

    def __init__(self, uri: str, original_error: Exception) -> None:
        super().__init__(f"failed to read payload from {uri}: {original_error}")
        self.uri = uri
        self.original_error = original_error


class HandlerError(AgrirouterError):
    """用户 handler 处理事件时抛出异常"""

    def __init__(self, original_error: Exception) -> None:
        super().__init__(
            f"handler failed: {type(original_error).__name__}: {original_error}"
        )
        self.original_error = original_error


class EventStreamError(AgrirouterError):
    """事件流连接失败或中断 -- 终止接收循环

    包括：连接被拒、流读取中断、握手返回非 200、服务端关闭流。
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: bytes = b"",
    ) -> None:
        super().__init__(message, recoverable=False)
        self.status_code = status_code
        self.body = body
