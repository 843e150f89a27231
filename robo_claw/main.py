"""
Robo Claw 主入口 - 启动仿真中继与聊天服务
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config_loader import load_config
from .core.agent_loop import AgentLoop, AgentConfig
from .core.llm_client import LLMClient
from .core.types import DataSources
from .relay.transport import TransportRelay
from .server import RoboClawServer


console = Console()


def configure_logging(level: str = "INFO") -> None:
    """日志输出到 rich 控制台"""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


class RoboClawApp:
    """Robo Claw 应用程序"""

    def __init__(self, config_path: str = "config.yaml"):
        self.config = load_config(config_path)
        self.relay: Optional[TransportRelay] = None
        self.agent: Optional[AgentLoop] = None
        self.server: Optional[RoboClawServer] = None

    def setup(self) -> bool:
        """初始化设置"""
        configure_logging(self.config['logging']['level'])

        # 检查API密钥
        api_key = self.config['llm'].get('api_key')
        if not api_key:
            console.print("[red]Error: ANTHROPIC_API_KEY not set![/red]")
            console.print("\nPlease set one of the following:")
            console.print("  1. Environment variable: ANTHROPIC_API_KEY=sk-ant-...")
            console.print("  2. Add llm.api_key to config.yaml")
            return False

        llm_config = self.config['llm']
        llm_client = LLMClient(
            api_key=api_key,
            base_url=llm_config.get('base_url'),
            model=llm_config['model'],
            max_tokens=llm_config['max_tokens']
        )

        command_timeout = float(self.config['relay']['command_timeout'])
        self.relay = TransportRelay(default_timeout=command_timeout)

        agent_config = AgentConfig(
            system_prompt=self.config['system_prompt'],
            max_iterations=self.config['agent']['max_iterations'],
            stop_timeout=float(self.config['agent']['stop_timeout'])
        )
        self.agent = AgentLoop(
            llm_client=llm_client,
            relay=self.relay,
            config=agent_config,
            data_sources=DataSources(**self.config['data_sources']),
            command_timeout=command_timeout
        )

        self.server = RoboClawServer(
            agent=self.agent,
            relay=self.relay,
            static_dir=self.config['server'].get('static_dir')
        )
        return True

    def print_banner(self, host: str, port: int) -> None:
        """打印服务地址"""
        display_host = "localhost" if host in ("0.0.0.0", "") else host
        table = Table(title="Robo Claw AI Server", show_header=False, title_style="bold cyan")
        table.add_row("Open in browser", f"http://{display_host}:{port}")
        table.add_row("WebSocket", f"ws://{display_host}:{port}/ws")
        table.add_row("Chat API", f"POST http://{display_host}:{port}/api/chat")
        table.add_row("Status", f"GET  http://{display_host}:{port}/api/status")
        table.add_row("Model", self.config['llm']['model'])
        console.print(table)

    def resolve_address(self, host: Optional[str] = None, port: Optional[int] = None):
        return (
            host or self.config['server']['host'],
            port or int(self.config['server']['port'])
        )

    async def serve_forever(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """启动服务并一直运行"""
        host, port = self.resolve_address(host, port)
        await self.server.start(host, port)
        self.print_banner(host, port)
        try:
            await asyncio.Event().wait()
        finally:
            await self.server.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Robo Claw - AI robot controller server')
    parser.add_argument('-c', '--config', default='config.yaml', help='Config file path')
    parser.add_argument('--host', default=None, help='Bind address')
    parser.add_argument('--port', type=int, default=None, help='Listen port')
    return parser


def main():
    """主入口"""
    args = build_parser().parse_args()

    app = RoboClawApp(config_path=args.config)
    if not app.setup():
        sys.exit(1)

    try:
        asyncio.run(app.serve_forever(args.host, args.port))
    except KeyboardInterrupt:
        console.print("\n[green]Server stopped[/green]")


if __name__ == "__main__":
    main()
