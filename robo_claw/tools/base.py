"""
工具基类 - 机器人工具的声明与注册表

每个工具是一条静态声明：名称、描述、参数 Schema，
以及如何把模型给出的参数转换为中继命令参数。
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.errors import UnknownToolError
from ..core.types import DataSources


class ToolKind(str, Enum):
    """工具类型枚举"""
    OBSERVE = "observe"
    ACTUATE = "actuate"


class RobotTool:
    """机器人工具基类"""

    def __init__(
        self,
        name: str,
        display_name: str = None,
        description: str = "",
        kind: ToolKind = ToolKind.ACTUATE,
        parameter_schema: Dict = None,
        timeout_multiplier: float = 1.0
    ):
        self.name = name
        self.display_name = display_name or name
        self.description = description
        self.kind = kind
        self.parameter_schema = parameter_schema or {"type": "object", "properties": {}}
        self.timeout_multiplier = timeout_multiplier

    @property
    def action(self) -> str:
        """发送给仿真端的命令名"""
        return self.name

    def build_params(self, tool_input: Dict[str, Any], data_sources: DataSources) -> Dict[str, Any]:
        """构建中继命令参数，默认只转发 Schema 中声明的字段"""
        properties = self.parameter_schema.get("properties", {})
        return {key: tool_input.get(key) for key in properties}

    def to_schema(self) -> Dict[str, Any]:
        """转换为 Anthropic 工具格式"""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameter_schema
        }


class ToolRegistry:
    """工具注册表"""

    def __init__(self):
        self._tools: Dict[str, RobotTool] = {}

    def register(self, tool: RobotTool) -> None:
        """注册工具"""
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        """注销工具"""
        self._tools.pop(name, None)

    def get(self, name: str) -> Optional[RobotTool]:
        """获取工具"""
        return self._tools.get(name)

    def require(self, name: str) -> RobotTool:
        """获取工具，不存在时抛出 UnknownToolError"""
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    def get_all(self) -> List[RobotTool]:
        """获取所有工具"""
        return list(self._tools.values())

    def get_all_schemas(self) -> List[Dict[str, Any]]:
        """获取所有工具的Schema，按注册顺序"""
        return [tool.to_schema() for tool in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
