"""agrirouter -- agrirouter 数据交换平台 Python 客户端

公开接口导出。
"""

# 客户端
from .client import AgrirouterClient

# 配置
from .config import ClientConfig, load_client_config
from .logging_config import setup_logging

# 异常
from .exceptions import (
    AgrirouterError,
    ApiCallError,
    EventDecodeError,
    EventNarrowError,
    EventStreamError,
    HandlerError,
    InvalidPayloadURIError,
    InvalidURLError,
    MissingPayloadError,
    PayloadFetchError,
    PayloadReadError,
)

# 数据模型
from .models import (
    CapabilityDirection,
    Endpoint,
    EndpointCapability,
    EndpointSubscription,
    EventType,
    File,
    Message,
    PayloadStream,
    PutEndpointRequest,
    SendMessagesParams,
    file_extension_for,
)

__version__ = "0.1.0"

__all__ = [
    "AgrirouterClient",
    "ClientConfig",
    "load_client_config",
    "setup_logging",
    "EventType",
    "CapabilityDirection",
    "file_extension_for",
    "Message",
    "File",
    "PayloadStream",
    "Endpoint",
    "EndpointCapability",
    "EndpointSubscription",
    "PutEndpointRequest",
    "SendMessagesParams",
    "AgrirouterError",
    "ApiCallError",
    "InvalidURLError",
    "EventDecodeError",
    "EventNarrowError",
    "MissingPayloadError",
    "InvalidPayloadURIError",
    "PayloadFetchError",
    "PayloadReadError",
    "HandlerError",
    "EventStreamError",
]
