"""
测试用例 - Agent Loop
"""
import asyncio

import pytest

from robo_claw.core.agent_loop import AgentConfig, AgentLoop
from robo_claw.core.errors import AbortedError, NotConnectedError
from robo_claw.core.types import EventType, LoopState, ModelTurn, TextBlock, ToolInvocation

from conftest import GatedLLM, RecordingRelay, ScriptedLLM, drain_loop, text_turn, tool_turn


def make_agent(llm, relay=None, max_iterations=20):
    return AgentLoop(
        llm_client=llm,
        relay=relay or RecordingRelay(),
        config=AgentConfig(system_prompt="test prompt", max_iterations=max_iterations)
    )


async def collect_events(agent, message, data_sources=None):
    return [event async for event in agent.submit(message, data_sources)]


class EventCollector:
    """收集事件的接收器"""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def types(self):
        return [e.type for e in self.events]


class TestAgentLoopCompletion:
    """测试正常结束"""

    @pytest.mark.asyncio
    async def test_text_only_turn_finishes_in_one_iteration(self):
        """没有工具调用时一轮结束，按顺序拼接文本"""
        llm = ScriptedLLM([text_turn("Hello ", "world")])
        agent = make_agent(llm)
        sink = EventCollector()

        text = await agent.process_message("hi", sink)

        assert text == "Hello world"
        assert len(llm.calls) == 1
        assert agent.state == LoopState.DONE
        assert [e.data.get("text") for e in sink.events if e.type == EventType.TEXT] == ["Hello ", "world"]

    @pytest.mark.asyncio
    async def test_model_receives_history_tools_and_prompt(self):
        """每轮请求包含完整历史、工具目录与系统提示词"""
        llm = ScriptedLLM([text_turn("ok")])
        agent = make_agent(llm)

        await agent.process_message("look around")

        call = llm.calls[0]
        assert call["messages"] == [{"role": "user", "content": "look around"}]
        assert call["system_prompt"] == "test prompt"
        assert [t["name"] for t in call["tools"]][0] == "observe_scene"
        assert len(call["tools"]) == 9

    @pytest.mark.asyncio
    async def test_tool_round_trip(self):
        """工具结果作为一条用户消息回传，并带调用ID"""
        relay = RecordingRelay({"get_scene_objects": {"objects": ["table1"]}})
        llm = ScriptedLLM([
            tool_turn(("toolu_1", "get_scene_objects", {}), text="Let me check. "),
            text_turn("I see a table."),
        ])
        agent = make_agent(llm, relay)

        text = await agent.process_message("what is here?")

        assert text == "Let me check. I see a table."
        assert relay.actions() == ["get_scene_objects"]
        history = [m.to_dict() for m in agent.get_history()]
        assert [m["role"] for m in history] == ["user", "assistant", "user", "assistant"]
        assert history[1]["content"][1] == {
            "type": "tool_use", "id": "toolu_1", "name": "get_scene_objects", "input": {}
        }
        results = history[2]["content"]
        assert len(results) == 1
        assert results[0]["tool_use_id"] == "toolu_1"
        assert '"table1"' in results[0]["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_tools_execute_sequentially_in_order(self):
        """同一轮多个工具按接收顺序逐个执行，结果合并为一条消息"""
        relay = RecordingRelay()
        in_flight = []

        async def send(action, params=None, timeout=None):
            in_flight.append(action)
            assert len(in_flight) == 1
            relay.calls.append({"action": action, "params": params, "timeout": timeout})
            await asyncio.sleep(0.01)
            in_flight.remove(action)
            return {}

        relay.send = send
        llm = ScriptedLLM([
            tool_turn(
                ("t1", "navigate_to", {"target": "table1"}),
                ("t2", "move_arm", {"arm": "left", "x": 0.1, "y": 0.1}),
                ("t3", "set_gripper", {"arm": "left", "state": "close"}),
            ),
            text_turn("done"),
        ])
        agent = make_agent(llm, relay)

        await agent.process_message("grab it")

        assert relay.actions() == ["navigate_to", "move_arm", "set_gripper"]
        results = agent.get_history()[2].content
        assert [r.tool_use_id for r in results] == ["t1", "t2", "t3"]

    @pytest.mark.asyncio
    async def test_end_turn_stops_even_with_tool_calls(self):
        """模型声明结束时不执行工具"""
        relay = RecordingRelay()
        turn = ModelTurn(
            content=[TextBlock(text="bye"), ToolInvocation(id="t1", name="reset_robot", input={})],
            stop_reason="end_turn"
        )
        agent = make_agent(ScriptedLLM([turn]), relay)

        assert await agent.process_message("stop") == "bye"
        assert relay.calls == []

    @pytest.mark.asyncio
    async def test_iteration_cap(self):
        """模型一直调用工具时恰好在上限处停止"""
        relay = RecordingRelay()
        llm = ScriptedLLM(repeat=tool_turn(("t", "get_robot_state", {}), text="again "))
        agent = make_agent(llm, relay, max_iterations=3)

        text = await agent.process_message("loop")

        assert len(llm.calls) == 3
        assert len(relay.calls) == 3
        assert text == "again again again "
        assert agent.truncated
        assert agent.state == LoopState.DONE

    @pytest.mark.asyncio
    async def test_event_order(self):
        """事件按发生顺序推送"""
        llm = ScriptedLLM([
            tool_turn(("t1", "reset_robot", {}), text="Resetting"),
            text_turn("Done"),
        ])
        agent = make_agent(llm)
        sink = EventCollector()

        await agent.process_message("reset", sink)

        assert sink.types() == [
            EventType.STATUS, EventType.TEXT, EventType.TOOL_CALL,
            EventType.STATUS, EventType.STATUS, EventType.TEXT,
        ]
        assert sink.events[0].data == {"text": "Thinking..."}
        assert sink.events[2].data == {"id": "t1", "name": "reset_robot", "input": {}}
        assert sink.events[3].data == {"text": "Executing: reset_robot..."}

    @pytest.mark.asyncio
    async def test_relay_failure_becomes_tool_result(self):
        """中继失败作为工具结果交给模型，循环继续"""
        relay = RecordingRelay({"move_base": NotConnectedError()})
        llm = ScriptedLLM([
            tool_turn(("t1", "move_base", {"direction": "forward", "amount": 1})),
            text_turn("The simulation is offline."),
        ])
        agent = make_agent(llm, relay)

        text = await agent.process_message("drive")

        assert text == "The simulation is offline."
        result = agent.get_history()[2].content[0]
        assert result.content[0].text.startswith("Error: Simulation not connected")

    @pytest.mark.asyncio
    async def test_session_data_sources(self):
        """会话级数据源开关传递给 observe_scene"""
        relay = RecordingRelay()
        llm = ScriptedLLM([tool_turn(("t1", "observe_scene", {})), text_turn("ok")])
        agent = make_agent(llm, relay)
        agent.set_data_sources(head_camera=False)

        await agent.process_message("look")

        assert relay.calls[0]["params"]["sources"] == {
            "head_camera": False, "orbit_camera": True, "state_data": True
        }

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_halt_loop(self):
        """接收器异常不影响循环"""
        def broken_sink(event):
            raise RuntimeError("client gone")

        agent = make_agent(ScriptedLLM([tool_turn(("t1", "reset_robot", {})), text_turn("ok")]))
        assert await agent.process_message("reset", broken_sink) == "ok"

    @pytest.mark.asyncio
    async def test_async_sink(self):
        """支持异步接收器"""
        received = []

        async def sink(event):
            received.append(event.type)

        agent = make_agent(ScriptedLLM([text_turn("ok")]))
        await agent.process_message("hi", sink)
        assert received == [EventType.STATUS, EventType.TEXT]

    def test_clear_history(self):
        """清除对话历史"""
        agent = make_agent(ScriptedLLM())
        agent.history.append(object())
        agent.clear_history()
        assert agent.get_history() == []


class TestAgentLoopAbort:
    """测试中断"""

    def test_abort_without_call_is_noop(self):
        """没有请求在执行时中断无效果"""
        agent = make_agent(ScriptedLLM())
        assert agent.abort() is False
        assert agent.state == LoopState.IDLE
        assert agent.get_history() == []
        assert not agent.busy

    @pytest.mark.asyncio
    async def test_abort_during_tool_execution(self):
        """执行工具时中断：后续工具不执行，只发送一次停止命令"""
        relay = RecordingRelay()
        llm = ScriptedLLM([
            tool_turn(
                ("t1", "navigate_to", {"target": "table1"}),
                ("t2", "move_arm", {"arm": "left", "x": 0.1, "y": 0.1}),
            ),
        ])
        agent = make_agent(llm, relay)
        relay.on_send = lambda action: agent.abort() if action == "navigate_to" else None

        with pytest.raises(AbortedError):
            await agent.process_message("go")

        assert relay.actions() == ["navigate_to", "stop_motors"]
        stop = relay.calls[-1]
        assert stop["params"] == {} and stop["timeout"] == 5.0
        assert agent.state == LoopState.ABORTED
        assert not agent.busy

        # 被中断的调用也有对应结果，历史可以继续使用
        closing = agent.get_history()[-1]
        assert closing.role == "user"
        assert [r.tool_use_id for r in closing.content] == ["t1", "t2"]
        assert closing.content[1].content[0].text == "Error: Interrupted by user"

    @pytest.mark.asyncio
    async def test_abort_while_thinking(self):
        """等待模型时中断，在模型返回后生效"""
        relay = RecordingRelay()
        started = asyncio.Event()
        release = asyncio.Event()

        class SlowLLM(ScriptedLLM):
            async def generate(self, messages, tools=None, system_prompt=None):
                started.set()
                await release.wait()
                return tool_turn(("t1", "reset_robot", {}))

        agent = make_agent(SlowLLM(), relay)
        task = asyncio.ensure_future(agent.process_message("reset"))
        await started.wait()
        assert agent.busy
        assert agent.abort() is True
        release.set()

        with pytest.raises(AbortedError):
            await task
        assert relay.actions() == ["stop_motors"]

    @pytest.mark.asyncio
    async def test_stop_failure_is_swallowed(self):
        """停止命令失败不影响中断结果"""
        relay = RecordingRelay({"stop_motors": NotConnectedError()})
        agent = make_agent(ScriptedLLM([tool_turn(("t1", "reset_robot", {}))]), relay)
        relay.on_send = lambda action: agent.abort()

        with pytest.raises(AbortedError):
            await agent.process_message("reset")
        assert relay.actions().count("stop_motors") == 1


class TestAgentLoopSubmit:
    """测试事件流入口"""

    async def collect(self, agent, message, data_sources=None):
        return await collect_events(agent, message, data_sources)

    @pytest.mark.asyncio
    async def test_submit_done(self):
        """以 done 事件结束并携带全部文本"""
        agent = make_agent(ScriptedLLM([text_turn("Hello")]))
        events = await self.collect(agent, "hi")
        assert events[-1].type == EventType.DONE
        assert events[-1].to_dict() == {"type": "done", "text": "Hello"}

    @pytest.mark.asyncio
    async def test_submit_error(self):
        """模型调用失败时以 error 事件结束"""
        class FailingLLM(ScriptedLLM):
            async def generate(self, messages, tools=None, system_prompt=None):
                raise RuntimeError("API unavailable")

        agent = make_agent(FailingLLM())
        events = await self.collect(agent, "hi")
        assert events[-1].type == EventType.ERROR
        assert events[-1].data["text"] == "API unavailable"
        assert agent.state == LoopState.ERROR
        assert not agent.busy

    @pytest.mark.asyncio
    async def test_submit_aborted_exactly_once(self):
        """中断时只有一个 aborted 事件和一次停止命令"""
        relay = RecordingRelay()
        llm = ScriptedLLM([tool_turn(
            ("t1", "move_base", {"direction": "forward", "amount": 1}),
            ("t2", "move_base", {"direction": "forward", "amount": 1}),
            ("t3", "move_base", {"direction": "forward", "amount": 1}),
        )])
        agent = make_agent(llm, relay)
        relay.on_send = lambda action: agent.abort()

        events = await self.collect(agent, "drive")

        terminal = [e for e in events if e.type in (EventType.DONE, EventType.ABORTED, EventType.ERROR)]
        assert [e.type for e in terminal] == [EventType.ABORTED]
        assert events[-1].type == EventType.ABORTED
        assert relay.actions().count("stop_motors") == 1

    @pytest.mark.asyncio
    async def test_submit_applies_data_sources(self):
        """请求中的数据源覆盖写入会话默认值"""
        relay = RecordingRelay()
        agent = make_agent(ScriptedLLM([tool_turn(("t1", "observe_scene", {})), text_turn("ok")]), relay)

        await self.collect(agent, "look", {"orbit_camera": False})

        assert agent.data_sources.orbit_camera is False
        assert relay.calls[0]["params"]["sources"]["orbit_camera"] is False

    @pytest.mark.asyncio
    async def test_submit_rejects_overlapping_call(self):
        """已有请求在执行时拒绝新请求"""
        llm = GatedLLM([text_turn("first")])
        agent = make_agent(llm)
        first = asyncio.ensure_future(self.collect(agent, "one"))
        await drain_loop()
        assert agent.busy

        events = await self.collect(agent, "two")
        assert [e.type for e in events] == [EventType.ERROR]

        llm.gate.set()
        first_events = await first
        assert first_events[-1].data["text"] == "first"
        assert len(agent.get_history()) == 2

    @pytest.mark.asyncio
    async def test_simultaneous_submits_run_once(self):
        """同一时刻发起的两个请求只有一个执行"""
        llm = GatedLLM([text_turn("first")])
        agent = make_agent(llm)

        both = asyncio.gather(self.collect(agent, "one"), self.collect(agent, "two"))
        await drain_loop()
        llm.gate.set()
        results = await both

        terminal = sorted(events[-1].type for events in results)
        assert terminal == sorted([EventType.DONE, EventType.ERROR])
        rejected = next(events for events in results if events[-1].type == EventType.ERROR)
        assert rejected == [rejected[-1]]
        assert rejected[-1].data["text"] == "Agent is already running"
        assert len(llm.calls) == 1
        assert len(agent.get_history()) == 2
        assert not agent.busy

    @pytest.mark.asyncio
    async def test_abort_reaches_running_call_after_rejection(self):
        """被拒绝的请求不影响当前请求的中断"""
        llm = GatedLLM([text_turn("never")])
        agent = make_agent(llm)
        first = asyncio.ensure_future(self.collect(agent, "one"))
        await drain_loop()

        await self.collect(agent, "two")
        assert agent.busy
        assert agent.abort() is True

        llm.gate.set()
        events = await first
        assert events[-1].type == EventType.ABORTED
        assert not agent.busy


class TestAgentLoopReservation:
    """测试占用与释放"""

    def test_reserve_is_exclusive(self):
        """占用期间再次占用失败"""
        agent = make_agent(ScriptedLLM())
        token = agent.reserve()
        assert token is not None
        assert agent.busy
        assert agent.reserve() is None

        agent.release(token)
        assert not agent.busy

    def test_release_ignores_stale_token(self):
        """旧令牌不能释放新的占用"""
        agent = make_agent(ScriptedLLM())
        old = agent.reserve()
        agent.release(old)
        current = agent.reserve()

        agent.release(old)
        assert agent.busy
        agent.release(current)

    @pytest.mark.asyncio
    async def test_submit_with_reserved_token(self):
        """使用预先占用的令牌提交"""
        agent = make_agent(ScriptedLLM([text_turn("ok")]))
        token = agent.reserve()

        rejected = [e async for e in agent.submit("other")]
        assert [e.type for e in rejected] == [EventType.ERROR]

        events = [e async for e in agent.submit("hello", token=token)]
        assert events[-1].type == EventType.DONE
        assert not agent.busy


class TestAgentLoopShutdown:
    """测试关闭时取消请求"""

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_call(self):
        """取消执行中的请求后事件流以 aborted 结束"""
        llm = GatedLLM([tool_turn(("t1", "move_base", {"direction": "forward", "amount": 1}))])
        relay = RecordingRelay()
        agent = make_agent(llm, relay)
        first = asyncio.ensure_future(collect_events(agent, "drive"))
        await drain_loop()

        await agent.shutdown()
        events = await asyncio.wait_for(first, timeout=1.0)

        assert events[-1].type == EventType.ABORTED
        assert events[-1].data["text"] == "Request cancelled"
        assert agent.state == LoopState.ABORTED
        assert not agent.busy
        assert relay.calls == []

    @pytest.mark.asyncio
    async def test_shutdown_before_task_starts(self):
        """任务开始前被取消也会结束事件流并释放占用"""
        agent = make_agent(GatedLLM([text_turn("never")]))
        first = asyncio.ensure_future(collect_events(agent, "one"))
        await asyncio.sleep(0)

        await agent.shutdown()
        events = await asyncio.wait_for(first, timeout=1.0)

        assert events[-1].type == EventType.ABORTED
        assert not agent.busy

    @pytest.mark.asyncio
    async def test_shutdown_when_idle(self):
        """空闲时关闭无效果"""
        agent = make_agent(ScriptedLLM())
        await agent.shutdown()
        assert agent.state == LoopState.IDLE
