"""
HTTP / WebSocket 服务

1. /ws         仿真页面的 WebSocket 连接，命令经由中继收发
2. /api/chat   聊天接口，以 NDJSON 流式返回进度事件
3. 其余为中断、清空历史与状态查询接口
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Set

from aiohttp import web
from pydantic import BaseModel, Field, ValidationError

from .core.agent_loop import AgentLoop
from .core.types import EventType
from .relay.transport import TransportRelay

logger = logging.getLogger(__name__)

# base64 编码的相机画面可能很大
MAX_WS_MESSAGE_SIZE = 50 * 1024 * 1024


class DataSourceOverrides(BaseModel):
    """请求中携带的数据源开关"""
    head_camera: Optional[bool] = None
    orbit_camera: Optional[bool] = None
    state_data: Optional[bool] = None


class ChatRequest(BaseModel):
    """聊天请求体"""
    message: str = Field(min_length=1)
    data_sources: Optional[DataSourceOverrides] = Field(default=None, alias="dataSources")


class RoboClawServer:
    """仿真中继与聊天服务"""

    def __init__(
        self,
        agent: AgentLoop,
        relay: TransportRelay,
        static_dir: Optional[str] = None
    ):
        self.agent = agent
        self.relay = relay
        self.static_dir = Path(static_dir) if static_dir else None
        self._sockets: Set[web.WebSocketResponse] = set()
        self._runner: Optional[web.AppRunner] = None

    # ── WebSocket ────────────────────────────────────────────────────

    async def ws_handler(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(max_msg_size=MAX_WS_MESSAGE_SIZE)
        await ws.prepare(request)
        self._sockets.add(ws)
        self.relay.attach(ws)

        try:
            async for msg in ws:
                if msg.type == web.WSMsgType.TEXT:
                    self.relay.handle_message(msg.data)
                elif msg.type == web.WSMsgType.ERROR:
                    logger.error(f"WebSocket error: {ws.exception()}")
        finally:
            self._sockets.discard(ws)
            self.relay.detach(ws)

        return ws

    # ── Chat API ─────────────────────────────────────────────────────

    async def chat_handler(self, request: web.Request) -> web.StreamResponse:
        """POST /api/chat"""
        try:
            body = await request.json()
        except ValueError:
            return web.json_response({"error": "Invalid JSON body"}, status=400)

        try:
            chat = ChatRequest.model_validate(body)
        except ValidationError:
            return web.json_response({"error": "Message is required"}, status=400)

        if not self.relay.connected:
            return web.json_response(
                {"error": "Simulation not connected. Please open the simulation page first."},
                status=503
            )

        # 占用必须发生在第一个 await 之前
        token = self.agent.reserve()
        if token is None:
            return web.json_response({"error": "A chat request is already running"}, status=409)

        overrides = chat.data_sources.model_dump(exclude_none=True) if chat.data_sources else None

        resp = web.StreamResponse(
            status=200,
            headers={
                "Content-Type": "application/x-ndjson",
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )
        try:
            await resp.prepare(request)
        except BaseException:
            self.agent.release(token)
            raise

        client_connected = True
        async for event in self.agent.submit(chat.message, overrides, token=token):
            if event.type == EventType.ERROR:
                logger.error(f"Chat error: {event.data.get('text')}")
            if not client_connected:
                continue
            try:
                await resp.write((json.dumps(event.to_dict(), default=str) + "\n").encode("utf-8"))
            except ConnectionError:
                # 客户端已断开，继续消费事件直到请求结束
                client_connected = False

        if client_connected:
            await resp.write_eof()
        return resp

    async def abort_handler(self, request: web.Request) -> web.Response:
        """POST /api/chat/abort"""
        self.agent.abort()
        return web.json_response({"success": True})

    async def clear_handler(self, request: web.Request) -> web.Response:
        """POST /api/chat/clear"""
        self.agent.clear_history()
        return web.json_response({"success": True})

    async def status_handler(self, request: web.Request) -> web.Response:
        """GET /api/status"""
        return web.json_response(self.status())

    def status(self) -> Dict[str, Any]:
        return {
            "simulation_connected": self.relay.connected,
            "pending_commands": self.relay.pending_count,
        }

    # ── App setup ────────────────────────────────────────────────────

    def create_app(self) -> web.Application:
        app = web.Application(client_max_size=MAX_WS_MESSAGE_SIZE)
        app.router.add_get("/ws", self.ws_handler)
        app.router.add_post("/api/chat", self.chat_handler)
        app.router.add_post("/api/chat/abort", self.abort_handler)
        app.router.add_post("/api/chat/clear", self.clear_handler)
        app.router.add_get("/api/status", self.status_handler)
        if self.static_dir and self.static_dir.is_dir():
            app.router.add_get("/", self._serve_index)
            app.router.add_static("/", self.static_dir, show_index=False)
        app.on_shutdown.append(self._on_shutdown)
        return app

    async def _serve_index(self, request: web.Request) -> web.StreamResponse:
        index = self.static_dir / "index.html"
        if index.is_file():
            return web.FileResponse(index)
        raise web.HTTPNotFound()

    async def _on_shutdown(self, app: web.Application) -> None:
        await self.agent.shutdown()
        for ws in list(self._sockets):
            await ws.close()
        self.relay.close()

    async def start(self, host: str = "0.0.0.0", port: int = 3000) -> None:
        """在当前事件循环中启动服务"""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        logger.info(f"Server listening on http://{host}:{port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
