"""EventDecoder -- 事件解码与收窄

decode(): 原始 SSE data -> GenericEvent（纯结构解析，无 I/O）
narrow_to_message() / narrow_to_file(): GenericEvent -> 具体事件类型

未知事件类型在 decode 阶段不报错，只在收窄到不匹配的类型时失败。
"""

import json
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from .exceptions import EventDecodeError, EventNarrowError
from .models.enums import EventType
from .models.events import FileReceivedEvent, GenericEvent, MessageReceivedEvent

_E = TypeVar("_E", bound=BaseModel)


class EventDecoder:
    """无状态事件解码器"""

    def decode(
        self,
        raw: str | bytes,
        event_type: str | None = None,
        event_id: str | None = None,
    ) -> GenericEvent:
        """解析一条流消息为通用事件

        Args:
            raw: SSE data 字段内容（JSON 文本）
            event_type: SSE event 字段；为空时回退到 body 中的 eventType
            event_id: SSE id 字段

        Returns:
            GenericEvent

        Raises:
            EventDecodeError: data 不是 JSON 对象，或无法确定事件类型
        """
        try:
            body = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise EventDecodeError(f"event data is not valid JSON: {e}") from e

        if not isinstance(body, dict):
            raise EventDecodeError(
                f"event data must be a JSON object, got {type(body).__name__}"
            )

        resolved_type = event_type or body.get("eventType")
        if not resolved_type or not isinstance(resolved_type, str):
            raise EventDecodeError("event type is missing")

        return GenericEvent(event_type=resolved_type, data=body, event_id=event_id)

    def narrow_to_message(self, event: GenericEvent) -> MessageReceivedEvent:
        """收窄为 MESSAGE_RECEIVED 事件

        Raises:
            EventNarrowError: 类型不匹配或字段非法
        """
        return self._narrow(event, EventType.MESSAGE_RECEIVED, MessageReceivedEvent)

    def narrow_to_file(self, event: GenericEvent) -> FileReceivedEvent:
        """收窄为 FILE_RECEIVED 事件

        Raises:
            EventNarrowError: 类型不匹配或字段非法
        """
        return self._narrow(event, EventType.FILE_RECEIVED, FileReceivedEvent)

    @staticmethod
    def _narrow(event: GenericEvent, expected: EventType, model: type[_E]) -> _E:
        if event.event_type != expected:
            raise EventNarrowError(
                f"cannot narrow event of type {event.event_type!r} to {expected.value}",
                event_type=event.event_type,
            )
        try:
            return model.model_validate(event.data)
        except ValidationError as e:
            fields = ", ".join(
                ".".join(str(loc) for loc in err["loc"]) or "<root>" for err in e.errors()
            )
            raise EventNarrowError(
                f"malformed {expected.value} event ({fields}): {e.error_count()} error(s)",
                event_type=event.event_type,
            ) from e
