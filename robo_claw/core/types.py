"""
核心类型定义 - 对话消息、内容块、事件与取消令牌

内容块与 Anthropic Messages API 的格式一一对应，
历史记录可以原样发送给模型。
"""
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime

from .errors import AbortedError


class LoopState(Enum):
    """Agent Loop 状态机"""
    IDLE = "idle"
    THINKING = "thinking"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED = "aborted"
    ERROR = "error"


@dataclass
class TextBlock:
    """文本内容块"""
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass
class ImageBlock:
    """图像内容块，data 为 base64 编码"""
    data: str
    media_type: str = "image/png"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": self.media_type,
                "data": self.data
            }
        }


@dataclass
class ToolInvocation:
    """模型发起的工具调用"""
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "tool_use",
            "id": self.id,
            "name": self.name,
            "input": self.input
        }


ResultBlock = Union[TextBlock, ImageBlock]


@dataclass
class ToolResult:
    """工具执行结果，回传给模型时通过 tool_use_id 关联调用"""
    tool_use_id: str
    content: List[ResultBlock]

    def __post_init__(self):
        if not self.content:
            raise ValueError("ToolResult requires at least one content block")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": [block.to_dict() for block in self.content]
        }


ContentBlock = Union[TextBlock, ImageBlock, ToolInvocation, ToolResult]


@dataclass
class Message:
    """对话消息"""
    role: str  # "user", "assistant"
    content: Union[str, List[ContentBlock]]
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {
            "role": self.role,
            "content": [block.to_dict() for block in self.content]
        }


@dataclass
class ModelTurn:
    """一次模型响应"""
    content: List[ContentBlock]
    stop_reason: Optional[str] = None

    @property
    def tool_invocations(self) -> List[ToolInvocation]:
        return [b for b in self.content if isinstance(b, ToolInvocation)]


@dataclass
class DataSources:
    """observe_scene 的会话级数据源开关"""
    head_camera: bool = True
    orbit_camera: bool = True
    state_data: bool = True

    def update(
        self,
        head_camera: Optional[bool] = None,
        orbit_camera: Optional[bool] = None,
        state_data: Optional[bool] = None
    ) -> None:
        """只更新显式给出的开关"""
        if head_camera is not None:
            self.head_camera = head_camera
        if orbit_camera is not None:
            self.orbit_camera = orbit_camera
        if state_data is not None:
            self.state_data = state_data

    def to_dict(self) -> Dict[str, bool]:
        return {
            "head_camera": self.head_camera,
            "orbit_camera": self.orbit_camera,
            "state_data": self.state_data
        }


class CancellationToken:
    """
    协作式取消令牌

    每次 process_message 调用创建一个。cancel() 是唯一的写操作，
    循环只在挂起点前后读取。
    """

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise AbortedError()


@dataclass
class AgentEvent:
    """Agent事件"""
    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, **self.data}


# 事件接收器：同步或异步可调用对象均可
StreamSink = Callable[[AgentEvent], Optional[Awaitable[None]]]


class EventType:
    """事件类型常量"""
    STATUS = "status"
    TEXT = "text"
    TOOL_CALL = "tool_call"
    ERROR = "error"
    ABORTED = "aborted"
    DONE = "done"


TERMINAL_EVENTS = {EventType.DONE, EventType.ABORTED, EventType.ERROR}
