"""端点管理与消息发送的请求/响应模型"""

from datetime import UTC, datetime
from uuid import UUID

from pydantic import ConfigDict, Field

from .enums import CapabilityDirection
from .events import WireModel


class EndpointCapability(WireModel):
    """端点能力 -- 端点可以发送/接收哪些消息类型"""

    message_type: str = Field(description="消息类型")
    direction: CapabilityDirection = Field(description="能力方向")


class EndpointSubscription(WireModel):
    """端点订阅 -- 其他端点发布该类型消息时本端点可接收"""

    message_type: str = Field(description="订阅的消息类型")


class PutEndpointRequest(WireModel):
    """创建或更新端点的请求 body

    必须携带完整的能力和订阅列表，不支持部分更新：
    未提供的订阅会被清空。
    """

    capabilities: list[EndpointCapability] = Field(default_factory=list)
    subscriptions: list[EndpointSubscription] = Field(default_factory=list)


class Endpoint(WireModel):
    """服务端保存的端点表示"""

    model_config = ConfigDict(extra="allow")

    external_id: str = Field(description="调用方提供的外部标识")
    id: UUID | None = Field(default=None, description="agrirouter 分配的端点 ID")
    capabilities: list[EndpointCapability] = Field(default_factory=list)
    subscriptions: list[EndpointSubscription] = Field(default_factory=list)


class SendMessagesParams(WireModel):
    """发送消息的元数据，以 X-Agrirouter-* 请求头传递"""

    endpoint_id: UUID = Field(description="发送端点 ID")
    tenant_id: UUID = Field(description="租户 ID")
    message_type: str = Field(description="消息类型")
    context_id: str = Field(description="发送方上下文 ID，用于生成 appMessageId")
    is_publish: bool = Field(default=True, description="是否按订阅发布")
    sent_timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="发送时间",
    )
    filename: str | None = Field(default=None, description="原始文件名")
    recipients: list[UUID] = Field(default_factory=list, description="直发接收端点")

    def to_headers(self, content_length: int) -> dict[str, str]:
        """转换为请求头"""
        headers = {
            "X-Agrirouter-Endpoint-Id": str(self.endpoint_id),
            "X-Agrirouter-Tenant-Id": str(self.tenant_id),
            "X-Agrirouter-Message-Type": self.message_type,
            "X-Agrirouter-Context-Id": self.context_id,
            "X-Agrirouter-Is-Publish": "true" if self.is_publish else "false",
            "X-Agrirouter-Sent-Timestamp": self.sent_timestamp.isoformat(),
            "Content-Type": "application/octet-stream",
            "Content-Length": str(content_length),
        }
        if self.filename:
            headers["X-Agrirouter-Filename"] = self.filename
        if self.recipients:
            headers["X-Agrirouter-Recipients"] = ",".join(str(r) for r in self.recipients)
        return headers
