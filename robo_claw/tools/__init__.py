"""Robot tool catalog and dispatch"""

from .base import (
    ToolKind,
    ToolRegistry,
    RobotTool,
)
from .robot import register_robot_tools, create_tool_registry
from .dispatcher import ToolDispatcher
from .results import build_tool_result, build_result_blocks

__all__ = [
    'ToolKind',
    'ToolRegistry',
    'RobotTool',
    'register_robot_tools',
    'create_tool_registry',
    'ToolDispatcher',
    'build_tool_result',
    'build_result_blocks',
]
