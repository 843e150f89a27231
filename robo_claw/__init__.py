"""
Robo Claw - 用自然语言控制仿真机器人

包含功能:
- Agent Loop 工具调用循环（可中断、有迭代上限）
- 基于关联ID的 WebSocket 命令中继
- 机器人工具目录与分发
- 多模态工具结果（相机画面 + 状态数据）
- HTTP 聊天接口（NDJSON 流式事件）
"""

__version__ = "0.1.0"

from .core.types import (
    LoopState, Message, ModelTurn, TextBlock, ImageBlock,
    ToolInvocation, ToolResult, DataSources, CancellationToken,
    AgentEvent, EventType
)
from .core.errors import (
    RoboClawError, RelayError, NotConnectedError, CommandTimeoutError,
    DisconnectedError, UnknownToolError, ToolExecutionError, AbortedError
)
from .core.llm_client import LLMClient
from .core.agent_loop import AgentLoop, AgentConfig
from .relay.transport import TransportRelay
from .tools.base import ToolKind, ToolRegistry, RobotTool
from .tools.robot import register_robot_tools, create_tool_registry
from .tools.dispatcher import ToolDispatcher
from .tools.results import build_tool_result

__all__ = [
    # Core types
    "LoopState", "Message", "ModelTurn", "TextBlock", "ImageBlock",
    "ToolInvocation", "ToolResult", "DataSources", "CancellationToken",
    "AgentEvent", "EventType",
    # Errors
    "RoboClawError", "RelayError", "NotConnectedError", "CommandTimeoutError",
    "DisconnectedError", "UnknownToolError", "ToolExecutionError", "AbortedError",
    # Core components
    "LLMClient", "AgentLoop", "AgentConfig",
    "TransportRelay",
    # Tools
    "ToolKind", "ToolRegistry", "RobotTool",
    "register_robot_tools", "create_tool_registry",
    "ToolDispatcher", "build_tool_result",
]
