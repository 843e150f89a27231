"""
Robo Claw CLI - 命令行界面

后台运行仿真中继服务，在终端中直接与机器人对话。
回复过程中按 Ctrl-C 中断当前请求。
"""
import argparse
import asyncio
import signal
import sys
from typing import List

from rich.markdown import Markdown
from rich.panel import Panel
from prompt_toolkit import PromptSession
from prompt_toolkit.styles import Style

from .core.types import AgentEvent, EventType
from .main import RoboClawApp, build_parser, console
from .tools.base import ToolKind


# 自定义样式
style = Style.from_dict({
    'prompt': '#00aa00 bold',
    'hint': '#666666',
})

HELP_TEXT = """
# Available Commands

- `/exit`, `/quit` - Exit the application
- `/help` - Show this help message
- `/status` - Show simulation connection status
- `/clear` - Clear conversation history
- `/sources [head_camera|orbit_camera|state_data on|off]` - Show or toggle observation sources
"""


class RoboClawCLI:
    """Robo Claw命令行界面"""

    def __init__(self, app: RoboClawApp):
        self.app = app
        self.session = PromptSession(style=style)

    @property
    def agent(self):
        return self.app.agent

    def render_event(self, event: AgentEvent) -> None:
        """显示一个进度事件"""
        data = event.data
        if event.type == EventType.STATUS:
            console.print(f"[dim]{data.get('text', '')}[/dim]")
        elif event.type == EventType.TEXT:
            console.print(Markdown(data.get("text", "")))
        elif event.type == EventType.TOOL_CALL:
            tool = self.agent.tool_registry.get(data.get("name", ""))
            icon = "👁" if tool and tool.kind == ToolKind.OBSERVE else "🔧"
            label = tool.display_name if tool else data.get("name")
            console.print(f"[dim]{icon} Calling: {label} {data.get('input', {})}[/dim]")
        elif event.type == EventType.ERROR:
            console.print(f"[red]Error: {data.get('text')}[/red]")
        elif event.type == EventType.ABORTED:
            console.print("[yellow]Interrupted[/yellow]")
        elif event.type == EventType.DONE and self.agent.truncated:
            console.print("[yellow](stopped at the iteration limit)[/yellow]")

    async def chat(self, message: str) -> None:
        """发送一条消息并显示进度"""
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self.agent.abort)
            handler_installed = True
        except (NotImplementedError, RuntimeError):
            handler_installed = False

        try:
            async for event in self.agent.submit(message):
                self.render_event(event)
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)

    async def run_interactive(self, host: str, port: int) -> None:
        """运行交互式会话"""
        await self.app.server.start(host, port)
        self.app.print_banner(host, port)
        console.print("\n[dim]Open the simulation page, then chat here. Type /help for commands, /exit to quit[/dim]\n")

        try:
            while True:
                try:
                    user_input = (await self.session.prompt_async("You: ")).strip()
                except KeyboardInterrupt:
                    continue
                except EOFError:
                    break

                if not user_input:
                    continue

                if user_input.startswith('/'):
                    if self.handle_command(user_input):
                        break
                    continue

                if not self.app.relay.connected:
                    console.print("[yellow]Simulation not connected. Please open the simulation page first.[/yellow]")
                    continue

                await self.chat(user_input)
                console.print()
        finally:
            await self.app.server.stop()
            console.print("[green]Goodbye! 👋[/green]")

    def handle_command(self, command: str) -> bool:
        """处理命令，返回 True 表示退出"""
        parts = command.split()
        cmd = parts[0].lower()
        args = parts[1:]

        if cmd in ('/exit', '/quit'):
            return True

        elif cmd == '/help':
            console.print(Markdown(HELP_TEXT))

        elif cmd == '/status':
            status = self.app.server.status()
            connected = "[green]connected[/green]" if status["simulation_connected"] else "[red]not connected[/red]"
            console.print(f"  Simulation: {connected}")
            console.print(f"  Pending commands: {status['pending_commands']}")
            console.print(f"  History messages: {len(self.agent.get_history())}")

        elif cmd == '/clear':
            self.agent.clear_history()
            console.print("[green]Conversation history cleared[/green]")

        elif cmd == '/sources':
            self._handle_sources(args)

        else:
            console.print(f"[red]Unknown command: {cmd}[/red]")

        return False

    def _handle_sources(self, args: List[str]) -> None:
        sources = self.agent.data_sources.to_dict()
        if len(args) == 2 and args[0] in sources and args[1].lower() in ('on', 'off'):
            self.agent.set_data_sources(**{args[0]: args[1].lower() == 'on'})
            sources = self.agent.data_sources.to_dict()
        elif args:
            console.print("[red]Usage: /sources [head_camera|orbit_camera|state_data on|off][/red]")
            return

        lines = [f"{'🟢' if enabled else '⚪'} {name}" for name, enabled in sources.items()]
        console.print(Panel("\n".join(lines), title="Observation sources", border_style="cyan"))


def main():
    """主入口"""
    parser: argparse.ArgumentParser = build_parser()
    parser.description = 'Robo Claw - chat with the simulated robot from the terminal'
    args = parser.parse_args()

    app = RoboClawApp(config_path=args.config)
    if not app.setup():
        sys.exit(1)

    host, port = app.resolve_address(args.host, args.port)
    cli = RoboClawCLI(app)
    asyncio.run(cli.run_interactive(host, port))


if __name__ == "__main__":
    main()
