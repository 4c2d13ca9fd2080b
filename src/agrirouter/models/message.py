"""Message / File 领域对象 -- payload 解析完成后交给 handler

每个入站事件产生一个对象，只传递给 handler 一次，流水线不保留引用。
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .stream import PayloadStream


class Message(BaseModel):
    """从 agrirouter 收到的消息（payload 已完整读入内存）"""

    message_type: str = Field(description="消息内容语义类型")
    payload: bytes = Field(description="完整 payload")
    app_message_id: str = Field(description="发送方分配的消息 ID")
    receiving_endpoint_id: UUID = Field(description="接收端点 ID")
    filename: str | None = Field(default=None, description="原始文件名")


class File(BaseModel):
    """从 agrirouter 收到的文件

    payload 是尚未读取的流，handler 负责读取并关闭：

        async with file.payload as stream:
            data = await stream.aread()
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    message_type: str = Field(description="消息内容语义类型")
    receiving_endpoint_id: UUID = Field(description="接收端点 ID")
    payload: PayloadStream = Field(description="打开的 payload 流")
    filename: str | None = Field(default=None, description="原始文件名")
    size: int = Field(ge=0, description="声明的字节长度")
