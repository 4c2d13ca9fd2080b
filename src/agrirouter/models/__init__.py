"""agrirouter 数据模型 -- 公共类型导出"""

from .endpoint import (
    Endpoint,
    EndpointCapability,
    EndpointSubscription,
    PutEndpointRequest,
    SendMessagesParams,
)
from .enums import (
    MESSAGE_TYPE_EXTENSIONS,
    CapabilityDirection,
    EventType,
    file_extension_for,
)
from .events import FileReceivedEvent, GenericEvent, MessageReceivedEvent
from .message import File, Message
from .stream import PayloadStream

__all__ = [
    # 枚举
    "EventType",
    "CapabilityDirection",
    "MESSAGE_TYPE_EXTENSIONS",
    "file_extension_for",
    # 事件
    "GenericEvent",
    "MessageReceivedEvent",
    "FileReceivedEvent",
    # 领域对象
    "Message",
    "File",
    "PayloadStream",
    # 端点管理
    "Endpoint",
    "EndpointCapability",
    "EndpointSubscription",
    "PutEndpointRequest",
    "SendMessagesParams",
]
