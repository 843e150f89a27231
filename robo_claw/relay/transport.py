"""
命令中继 - 在单条 WebSocket 连接上复用多个带超时的命令请求

每条命令分配一个递增的关联ID，结果帧通过ID找回对应的 Future。
连接断开时所有未完成命令立即失败，定时器全部取消。
"""
import asyncio
import itertools
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..core.errors import CommandTimeoutError, DisconnectedError, NotConnectedError

logger = logging.getLogger(__name__)

# 阻塞型命令的默认超时（秒）
COMMAND_TIMEOUT = 30.0


@dataclass
class PendingCommand:
    """等待结果的命令"""
    id: int
    action: str
    future: asyncio.Future
    timer: Optional[asyncio.TimerHandle] = None
    created_at: float = field(default_factory=time.monotonic)


class TransportRelay:
    """
    命令中继

    持有当前活动连接（不负责其生命周期），维护待完成命令表。
    连接对象只需提供 ``send_str`` 协程与 ``closed`` 属性，
    aiohttp 的 WebSocketResponse 即满足要求。
    """

    def __init__(self, default_timeout: float = COMMAND_TIMEOUT):
        self.default_timeout = default_timeout
        self._connection = None
        self._pending: Dict[int, PendingCommand] = {}
        self._ids = itertools.count()

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._connection.closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def attach(self, connection) -> None:
        """注册新的活动连接，旧连接上的命令不受影响"""
        if self._connection is not None and self._connection is not connection:
            logger.info("Replacing active simulation connection")
        self._connection = connection
        logger.info("Simulation client connected")

    def detach(self, connection) -> None:
        """连接关闭时调用，只有当前注册的连接才会触发清理"""
        if connection is not self._connection:
            return
        self._connection = None
        logger.info("Simulation client disconnected")
        self._reject_all()

    def close(self) -> None:
        """释放中继：丢弃连接并使所有等待中的命令失败"""
        self._connection = None
        self._reject_all()

    async def send(
        self,
        action: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> Any:
        """发送命令并等待对应的 command_result"""
        if not self.connected:
            raise NotConnectedError()

        timeout = self.default_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        command_id = next(self._ids)
        pending = PendingCommand(
            id=command_id,
            action=action,
            future=loop.create_future()
        )
        pending.timer = loop.call_later(timeout, self._expire, command_id, timeout)
        self._pending[command_id] = pending

        frame = {
            "type": "command",
            "id": command_id,
            "action": action,
            "params": params or {}
        }
        try:
            await self._connection.send_str(json.dumps(frame))
        except Exception as e:
            logger.warning(f"Failed to transmit command {command_id} ({action}): {e}")
            self._settle(command_id, error=DisconnectedError())
        else:
            logger.debug(f"Command {command_id} sent: {action}")

        return await pending.future

    def handle_message(self, raw: str) -> None:
        """处理来自仿真端的文本帧"""
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to parse WebSocket message: {e}")
            return

        if not isinstance(msg, dict) or msg.get("type") != "command_result":
            return
        command_id = msg.get("id")
        if command_id not in self._pending:
            logger.debug(f"Ignoring result for unknown command id: {command_id}")
            return
        self._settle(command_id, result=msg.get("result"))

    def _expire(self, command_id: int, timeout: float) -> None:
        pending = self._pending.get(command_id)
        if pending is None:
            return
        logger.warning(f"Command {command_id} ({pending.action}) timed out")
        self._settle(command_id, error=CommandTimeoutError(pending.action, timeout))

    def _settle(self, command_id: int, result: Any = None, error: Optional[Exception] = None) -> None:
        """从表中移除命令并完成其 Future，每条命令只会走到这里一次"""
        pending = self._pending.pop(command_id, None)
        if pending is None:
            return
        if pending.timer is not None:
            pending.timer.cancel()
        if pending.future.done():
            return
        if error is not None:
            pending.future.set_exception(error)
        else:
            pending.future.set_result(result)

    def _reject_all(self) -> None:
        if self._pending:
            logger.info(f"Rejecting {len(self._pending)} pending command(s)")
        for command_id in list(self._pending):
            self._settle(command_id, error=DisconnectedError())
