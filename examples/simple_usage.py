"""
Robo Claw 简单使用示例

启动中继服务，等待仿真页面连接后发送一条指令并打印进度事件。
"""
import asyncio
import sys
import os

# 添加父目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from robo_claw.core.llm_client import LLMClient
from robo_claw.core.agent_loop import AgentLoop, AgentConfig
from robo_claw.core.types import EventType
from robo_claw.relay.transport import TransportRelay
from robo_claw.server import RoboClawServer


async def main():
    """简单示例"""
    # 检查 API 密钥
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        print("请设置 ANTHROPIC_API_KEY 环境变量")
        return

    relay = TransportRelay()
    agent = AgentLoop(
        llm_client=LLMClient(api_key=api_key),
        relay=relay,
        config=AgentConfig(max_iterations=10)
    )

    # 只观察，不需要第三人称相机
    agent.set_data_sources(orbit_camera=False)

    server = RoboClawServer(agent=agent, relay=relay)
    await server.start("127.0.0.1", 3000)
    print("等待仿真页面连接 ws://127.0.0.1:3000/ws ...")

    try:
        while not relay.connected:
            await asyncio.sleep(0.5)

        user_input = "Look around and tell me what objects are on the table."
        print(f"\n👤 User: {user_input}\n")

        async for event in agent.submit(user_input):
            if event.type == EventType.STATUS:
                print(f"💭 {event.data['text']}")
            elif event.type == EventType.TEXT:
                print(f"🤖 {event.data['text']}")
            elif event.type == EventType.TOOL_CALL:
                print(f"🔧 {event.data['name']} {event.data['input']}")
            elif event.type in (EventType.ERROR, EventType.ABORTED):
                print(f"❌ {event.data.get('text')}")

        print("\n" + "=" * 50)
        print("对话完成！")
    finally:
        await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
