"""
工具分发器 - 把一次模型工具调用转换为一次中继命令

所有失败都被归约为 ``{"error": message}``，交给模型自行处理；
只有任务取消会继续向上传播。
"""
import logging
from typing import Any, Dict, Optional

from .base import ToolRegistry
from ..core.errors import RoboClawError, ToolExecutionError
from ..core.types import DataSources
from ..relay.transport import COMMAND_TIMEOUT

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """工具分发器"""

    def __init__(self, registry: ToolRegistry, default_timeout: float = COMMAND_TIMEOUT):
        self.registry = registry
        self.default_timeout = default_timeout

    async def dispatch(
        self,
        name: str,
        tool_input: Optional[Dict[str, Any]],
        relay,
        data_sources: Optional[DataSources] = None
    ) -> Dict[str, Any]:
        """执行工具调用，返回仿真端结果或错误字典"""
        try:
            tool = self.registry.require(name)
            params = tool.build_params(tool_input or {}, data_sources or DataSources())
            timeout = self.default_timeout * tool.timeout_multiplier

            logger.debug(f"Dispatching {name} with params {params} (timeout {timeout}s)")
            result = await relay.send(tool.action, params, timeout)
            return self._normalize(name, result)
        except RoboClawError as e:
            logger.info(f"Tool {name} failed: {e}")
            return {"error": str(e)}
        except Exception as e:
            logger.exception(f"Unexpected error while dispatching {name}")
            return {"error": str(e) or e.__class__.__name__}

    def _normalize(self, name: str, result: Any) -> Dict[str, Any]:
        """仿真端结果必须是 JSON 对象"""
        if result is None:
            return {}
        if not isinstance(result, dict):
            raise ToolExecutionError(name, f"expected an object result, got {type(result).__name__}", result)
        if result.get("error"):
            logger.info(f"Tool {name} returned error: {result['error']}")
        return result
