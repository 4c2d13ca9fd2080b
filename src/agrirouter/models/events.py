"""事件流数据模型

GenericEvent 为解码后的通用信封（类型标识 + 不透明 body），
MessageReceivedEvent / FileReceivedEvent 为收窄后的具体事件。
线上字段使用 camelCase，同时接受 snake_case 构造。
"""

import base64
import binascii
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """线上 JSON 模型基类 -- camelCase 别名 + 不可变"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class GenericEvent(BaseModel):
    """通用事件信封 -- 每条流消息产生一个，收窄后丢弃"""

    model_config = ConfigDict(frozen=True)

    event_type: str = Field(description="事件类型标识（可能为未知类型）")
    data: dict[str, Any] = Field(default_factory=dict, description="结构化事件 body")
    event_id: str | None = Field(default=None, description="SSE id 字段")


class MessageReceivedEvent(WireModel):
    """MESSAGE_RECEIVED 事件 body

    payload 与 payload_uri 至少存在一个；两者都缺失时由接收循环报告 MissingPayloadError。
    """

    message_type: str = Field(description="消息内容语义类型，如 img:png")
    app_message_id: str = Field(description="发送方分配的消息 ID")
    receiving_endpoint_id: UUID = Field(description="接收该消息的端点 ID")
    payload: bytes | None = Field(default=None, description="内嵌 payload（线上为 base64）")
    payload_uri: str | None = Field(default=None, description="远程 payload 地址")
    filename: str | None = Field(default=None, description="原始文件名")

    @field_validator("payload", mode="before")
    @classmethod
    def _decode_base64_payload(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValueError(f"payload is not valid base64: {e}") from e
        return value


class FileReceivedEvent(WireModel):
    """FILE_RECEIVED 事件 body

    文件永远不内嵌，payload_uri 缺失视为非法（由接收循环报告）。
    """

    message_type: str = Field(description="消息内容语义类型")
    receiving_endpoint_id: UUID = Field(description="接收该文件的端点 ID")
    payload_uri: str | None = Field(default=None, description="远程 payload 地址")
    filename: str | None = Field(default=None, description="原始文件名")
    size: int = Field(ge=0, description="声明的字节长度")
