"""枚举定义 -- 事件类型与端点能力方向"""

from enum import StrEnum


class EventType(StrEnum):
    """事件流中的事件类型（SSE event 字段与订阅过滤参数）"""

    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
    FILE_RECEIVED = "FILE_RECEIVED"


class CapabilityDirection(StrEnum):
    """端点能力方向"""

    SEND = "SEND"
    RECEIVE = "RECEIVE"
    SEND_RECEIVE = "SEND_RECEIVE"


# 已知消息类型 -> 文件扩展名
MESSAGE_TYPE_EXTENSIONS: dict[str, str] = {
    "iso:11783:-10:taskdata:zip": ".isobus.taskdata.zip",
    "iso:11783:-10:device_description:protobuf": ".isobus.devicedescription.pb",
    "iso:11783:-10:time_log:protobuf": ".isobus.timelog.pb",
    "gps:info": ".gps.info.pb",
    "img:bmp": ".bmp",
    "img:jpeg": ".jpeg",
    "img:png": ".png",
    "shp:shape:zip": ".shape.zip",
    "doc:pdf": ".pdf",
    "vid:avi": ".avi",
    "vid:mp4": ".mp4",
    "vid:wmv": ".wmv",
}


def file_extension_for(message_type: str, default: str = ".bin") -> str:
    """根据消息类型返回保存 payload 时使用的文件扩展名

    Args:
        message_type: agrirouter 消息类型（如 "img:png"）
        default: 未知消息类型时的扩展名

    Returns:
        以 "." 开头的扩展名
    """
    return MESSAGE_TYPE_EXTENSIONS.get(message_type, default)
