"""
Agent Loop - 核心循环架构

核心流程:
1. 接收用户输入，追加到历史
2. 调用LLM（完整历史 + 工具目录）
3. 按顺序拆分响应：文本立即推送，工具调用排队
4. 逐个执行工具调用（不并发，动作之间存在物理依赖）
5. 将本轮全部结果作为一条用户消息送回LLM，继续循环
6. 直到没有工具调用、用户中断或达到迭代上限
"""
import asyncio
import functools
import inspect
import logging
from typing import Any, AsyncIterator, Dict, List, Optional
from dataclasses import dataclass

from .errors import AbortedError
from .llm_client import LLMClient
from .prompts import SYSTEM_PROMPT
from .types import (
    LoopState, Message, TextBlock, ToolInvocation, ToolResult, AgentEvent,
    EventType, StreamSink, DataSources, CancellationToken, TERMINAL_EVENTS
)
from ..relay.transport import COMMAND_TIMEOUT, TransportRelay
from ..tools.base import ToolRegistry
from ..tools.dispatcher import ToolDispatcher
from ..tools.results import build_tool_result
from ..tools.robot import create_tool_registry

logger = logging.getLogger(__name__)


@dataclass
class AgentConfig:
    """Agent配置"""
    system_prompt: str = SYSTEM_PROMPT
    max_iterations: int = 20
    stop_action: str = "stop_motors"
    stop_timeout: float = 5.0


class AgentLoop:
    """
    Agent主循环

    每个实例同一时间只应有一个 process_message 在执行，
    并发调用会交错修改对话历史。submit() 会拒绝重叠请求，
    直接调用 process_message 时由调用方保证。
    """

    def __init__(
        self,
        llm_client: LLMClient,
        relay: TransportRelay,
        config: AgentConfig = None,
        tool_registry: Optional[ToolRegistry] = None,
        data_sources: Optional[DataSources] = None,
        command_timeout: float = COMMAND_TIMEOUT
    ):
        self.llm = llm_client
        self.relay = relay
        self.config = config or AgentConfig()

        # 组件
        self.tool_registry = tool_registry or create_tool_registry()
        self.dispatcher = ToolDispatcher(self.tool_registry, default_timeout=command_timeout)

        # 状态
        self.state = LoopState.IDLE
        self.history: List[Message] = []
        self.data_sources = data_sources or DataSources()
        self.truncated = False
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        """是否有请求正在执行"""
        return self._token is not None

    def reserve(self) -> Optional[CancellationToken]:
        """占用 Agent 并返回本次请求的令牌，已被占用时返回 None"""
        if self._token is not None:
            return None
        self._token = CancellationToken()
        return self._token

    def release(self, token: CancellationToken) -> None:
        """释放占用，只对当前令牌生效"""
        if self._token is token:
            self._token = None

    def set_data_sources(
        self,
        head_camera: Optional[bool] = None,
        orbit_camera: Optional[bool] = None,
        state_data: Optional[bool] = None
    ) -> None:
        """设置会话级数据源开关"""
        self.data_sources.update(
            head_camera=head_camera,
            orbit_camera=orbit_camera,
            state_data=state_data
        )

    async def process_message(
        self,
        user_text: str,
        sink: Optional[StreamSink] = None,
        token: Optional[CancellationToken] = None
    ) -> str:
        """
        处理一条用户消息

        Args:
            token: reserve() 得到的令牌，不传则新建

        Returns:
            本次调用中模型输出的全部文本（按顺序拼接）

        Raises:
            AbortedError: 用户中断
        """
        if token is None:
            token = CancellationToken()
            self._token = token
        self.history.append(Message(role="user", content=user_text))
        self.truncated = False

        text_parts: List[str] = []
        invocations: List[ToolInvocation] = []
        results: List[ToolResult] = []

        try:
            for iteration in range(self.config.max_iterations):
                token.raise_if_cancelled()
                self.state = LoopState.THINKING
                await self._emit(sink, EventType.STATUS, {"text": "Thinking..."})

                turn = await self.llm.generate(
                    messages=self.history,
                    tools=self.tool_registry.get_all_schemas(),
                    system_prompt=self.config.system_prompt
                )

                token.raise_if_cancelled()

                invocations = []
                results = []
                for block in turn.content:
                    if isinstance(block, TextBlock):
                        text_parts.append(block.text)
                        await self._emit(sink, EventType.TEXT, {"text": block.text})
                    elif isinstance(block, ToolInvocation):
                        invocations.append(block)
                        await self._emit(sink, EventType.TOOL_CALL, {
                            "id": block.id,
                            "name": block.name,
                            "input": block.input
                        })

                # 完整保留助手消息，模型需要看到自己的 tool_use
                self.history.append(Message(role="assistant", content=list(turn.content)))

                if not invocations or turn.stop_reason == "end_turn":
                    self.state = LoopState.DONE
                    logger.debug(f"Completed after {iteration + 1} iteration(s)")
                    return "".join(text_parts)

                self.state = LoopState.EXECUTING_TOOLS
                for invocation in invocations:
                    token.raise_if_cancelled()
                    await self._emit(sink, EventType.STATUS, {"text": f"Executing: {invocation.name}..."})

                    raw = await self.dispatcher.dispatch(
                        invocation.name,
                        invocation.input,
                        self.relay,
                        self.data_sources
                    )

                    token.raise_if_cancelled()
                    results.append(build_tool_result(invocation.id, raw))

                self.history.append(Message(role="user", content=results))
                invocations = []
                results = []

            logger.warning(f"Reached iteration limit ({self.config.max_iterations})")
            self.truncated = True
            self.state = LoopState.DONE
            return "".join(text_parts)

        except AbortedError:
            self.state = LoopState.ABORTED
            self._close_interrupted_calls(invocations, results)
            await self._stop_actuation()
            raise
        except asyncio.CancelledError:
            self.state = LoopState.ABORTED
            self._close_interrupted_calls(invocations, results)
            raise
        except Exception:
            self.state = LoopState.ERROR
            raise
        finally:
            self.release(token)

    async def submit(
        self,
        message: str,
        data_sources: Optional[Dict[str, Any]] = None,
        token: Optional[CancellationToken] = None
    ) -> AsyncIterator[AgentEvent]:
        """
        运行一次对话请求并以事件流返回进度

        Args:
            token: 调用方已通过 reserve() 占用时传入

        Yields:
            AgentEvent: 进度事件，最后一个一定是 done / aborted / error 之一
        """
        if token is None:
            token = self.reserve()
        if token is None or token is not self._token:
            yield AgentEvent(type=EventType.ERROR, data={"text": "Agent is already running"})
            return

        if data_sources:
            self.set_data_sources(**data_sources)

        queue: asyncio.Queue = asyncio.Queue()
        self._task = asyncio.ensure_future(self._run(message, queue, token))
        self._task.add_done_callback(functools.partial(self._on_run_done, queue, token))

        while True:
            event = await queue.get()
            yield event
            if event.type in TERMINAL_EVENTS:
                break

    async def _run(self, message: str, queue: asyncio.Queue, token: CancellationToken) -> AgentEvent:
        try:
            text = await self.process_message(message, sink=queue.put_nowait, token=token)
            return AgentEvent(type=EventType.DONE, data={"text": text})
        except AbortedError as e:
            return AgentEvent(type=EventType.ABORTED, data={"text": str(e)})
        except Exception as e:
            logger.exception("Chat error")
            return AgentEvent(type=EventType.ERROR, data={"text": str(e)})

    def _on_run_done(self, queue: asyncio.Queue, token: CancellationToken, task: asyncio.Task) -> None:
        # 任务在开始前被取消时 process_message 不会执行，这里兜底释放
        self.release(token)
        if task.cancelled():
            self.state = LoopState.ABORTED
            queue.put_nowait(AgentEvent(type=EventType.ABORTED, data={"text": "Request cancelled"}))
        else:
            queue.put_nowait(task.result())

    async def shutdown(self) -> None:
        """取消正在执行的请求（服务关闭时调用）"""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    def abort(self) -> bool:
        """中断当前请求，没有请求在执行时什么也不做"""
        if self._token is None:
            return False
        self._token.cancel()
        return True

    def get_history(self) -> List[Message]:
        """获取对话历史"""
        return self.history.copy()

    def clear_history(self) -> None:
        """清除对话历史（调用方需保证没有请求在执行）"""
        self.history.clear()

    async def _emit(self, sink: Optional[StreamSink], event_type: str, data: Dict[str, Any]) -> None:
        """推送事件，接收方的异常不影响循环"""
        if sink is None:
            return
        try:
            result = sink(AgentEvent(type=event_type, data=data))
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Error in stream sink: {e}")

    async def _stop_actuation(self) -> None:
        """尽力发送一次停止命令，失败忽略"""
        try:
            await self.relay.send(self.config.stop_action, {}, self.config.stop_timeout)
        except Exception as e:
            logger.debug(f"Stop command failed: {e}")

    def _close_interrupted_calls(
        self,
        invocations: List[ToolInvocation],
        results: List[ToolResult]
    ) -> None:
        """为被中断的工具调用补齐结果，保证下一轮的 tool_use 都有对应的 tool_result"""
        if not invocations:
            return
        answered = {result.tool_use_id for result in results}
        closed = list(results)
        for invocation in invocations:
            if invocation.id not in answered:
                closed.append(build_tool_result(invocation.id, {"error": "Interrupted by user"}))
        self.history.append(Message(role="user", content=closed))
