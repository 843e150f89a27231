"""
异常定义 - 中继层、工具分发与Agent循环共用
"""
from typing import Any


class RoboClawError(Exception):
    """Robo Claw 基础异常"""
    pass


class RelayError(RoboClawError):
    """命令中继相关错误"""
    pass


class NotConnectedError(RelayError):
    """没有活动的仿真连接"""

    def __init__(self, message: str = "Simulation not connected. Please open the simulation in a browser."):
        super().__init__(message)


class CommandTimeoutError(RelayError):
    """单条命令等待结果超时"""

    def __init__(self, action: str, timeout: float):
        super().__init__(f'Command "{action}" timed out after {int(timeout * 1000)}ms')
        self.action = action
        self.timeout = timeout


class DisconnectedError(RelayError):
    """连接在命令未完成时断开"""

    def __init__(self, message: str = "Simulation disconnected"):
        super().__init__(message)


class UnknownToolError(RoboClawError):
    """工具目录中不存在该工具"""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class ToolExecutionError(RoboClawError):
    """仿真端返回了无法使用的结果"""

    def __init__(self, tool_name: str, message: str, result: Any = None):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name
        self.result = result


class AbortedError(RoboClawError):
    """用户中断了当前请求"""

    def __init__(self, message: str = "Interrupted by user"):
        super().__init__(message)
