"""
测试夹具 - 内存连接、脚本化模型与记录型中继
"""
import asyncio
import json
from typing import Any, Callable, Dict, List, Optional

import pytest

from robo_claw.core.types import ModelTurn, TextBlock, ToolInvocation


class FakeConnection:
    """记录发送帧的内存连接"""

    def __init__(self, fail: bool = False):
        self.frames: List[Dict[str, Any]] = []
        self.closed = False
        self.fail = fail

    async def send_str(self, data: str) -> None:
        if self.fail:
            raise ConnectionResetError("socket closed")
        self.frames.append(json.loads(data))


class ScriptedLLM:
    """按顺序返回预设响应的模型客户端"""

    def __init__(self, turns: Optional[List[ModelTurn]] = None, repeat: Optional[ModelTurn] = None):
        self.turns = list(turns or [])
        self.repeat = repeat
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, messages, tools=None, system_prompt=None) -> ModelTurn:
        self.calls.append({
            "messages": [m.to_dict() for m in messages],
            "tools": tools,
            "system_prompt": system_prompt,
        })
        if self.turns:
            return self.turns.pop(0)
        if self.repeat is not None:
            return self.repeat
        raise AssertionError("ScriptedLLM ran out of turns")


class GatedLLM(ScriptedLLM):
    """gate 打开之前阻塞的模型客户端"""

    def __init__(self, turns: Optional[List[ModelTurn]] = None, repeat: Optional[ModelTurn] = None):
        super().__init__(turns, repeat)
        self.gate = asyncio.Event()

    async def generate(self, messages, tools=None, system_prompt=None) -> ModelTurn:
        await self.gate.wait()
        return await super().generate(messages, tools, system_prompt)


class RecordingRelay:
    """记录调用并返回预设结果的中继"""

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.calls: List[Dict[str, Any]] = []
        self.on_send: Optional[Callable[[str], None]] = None

    async def send(self, action: str, params=None, timeout=None):
        self.calls.append({"action": action, "params": params, "timeout": timeout})
        if self.on_send:
            self.on_send(action)
        await asyncio.sleep(0)
        response = self.responses.get(action, {})
        if isinstance(response, Exception):
            raise response
        return response

    def actions(self) -> List[str]:
        return [call["action"] for call in self.calls]


def text_turn(*texts: str, stop_reason: str = "end_turn") -> ModelTurn:
    return ModelTurn(content=[TextBlock(text=t) for t in texts], stop_reason=stop_reason)


def tool_turn(*calls, text: Optional[str] = None) -> ModelTurn:
    """calls: (id, name, input) 元组"""
    content = []
    if text:
        content.append(TextBlock(text=text))
    for call_id, name, tool_input in calls:
        content.append(ToolInvocation(id=call_id, name=name, input=tool_input))
    return ModelTurn(content=content, stop_reason="tool_use")


async def drain_loop(times: int = 5) -> None:
    """让出事件循环若干次，使已创建的任务运行"""
    for _ in range(times):
        await asyncio.sleep(0)


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def recording_relay():
    return RecordingRelay()
