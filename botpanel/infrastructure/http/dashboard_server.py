# botpanel/infrastructure/http/dashboard_server.py
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field

from ...application.services.activity_reporter import session_to_public_dict
from ...application.services.bot_core import BotCore
from ...application.use_cases.dashboard import DashboardUseCase
from ...domain.errors import BotError, NotFoundError
from ...domain.models import LoginCredentials
from .websocket_notifier import WebSocketNotifier

logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    """Credential payload for starting the bot."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["appState", "credentials"]
    app_state: Optional[str] = Field(default=None, alias="appState")
    username: Optional[str] = None
    password: Optional[str] = None
    proxy: Optional[str] = None

    def to_credentials(self) -> LoginCredentials:
        return LoginCredentials(
            type=self.type,
            app_state=self.app_state,
            username=self.username,
            password=self.password,
            proxy=self.proxy
        )


class SendMessageRequest(BaseModel):
    thread_id: str = Field(alias="threadId", min_length=1)
    message: str = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class BotConfigUpdate(BaseModel):
    prefix: Optional[str] = Field(default=None, min_length=1)
    auto_reconnect: Optional[bool] = None
    random_user_agent: Optional[bool] = None
    auto_mark_read: Optional[bool] = None
    self_listen: Optional[bool] = None
    listen_timeout: Optional[int] = Field(default=None, ge=0)
    listen_interval: Optional[int] = Field(default=None, ge=0)
    proxy: Optional[str] = None
    language: Optional[str] = None


class CommandUpdate(BaseModel):
    description: Optional[str] = None
    category: Optional[str] = None
    usage: Optional[str] = None
    cooldown: Optional[int] = Field(default=None, ge=0)
    is_enabled: Optional[bool] = None


class UserUpdate(BaseModel):
    username: Optional[str] = None
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None
    is_admin: Optional[bool] = None
    is_blocked: Optional[bool] = None
    experience: Optional[int] = None


class ThreadUpdate(BaseModel):
    name: Optional[str] = None
    participant_count: Optional[int] = Field(default=None, ge=0)
    is_muted: Optional[bool] = None


class DashboardHttpServer:
    """REST + WebSocket API for the bot control panel."""

    def __init__(
            self,
            bot_core: BotCore,
            dashboard: DashboardUseCase,
            notifier: WebSocketNotifier,
            api_key: Optional[str] = None
    ):
        self.bot_core = bot_core
        self.dashboard = dashboard
        self.notifier = notifier
        self.api_key = api_key
        self.app = FastAPI(title="Bot Control Panel API", version="1.0.0", lifespan=self._lifespan)
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.bot_core.initialize()
        yield
        await self.bot_core.stop()

    def _verify_api_key(self, x_api_key: Optional[str] = Header(default=None)) -> bool:
        """Verify API key for authentication. Disabled when no key is configured."""
        if self.api_key and x_api_key != self.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")
        return True

    def _setup_routes(self) -> None:
        """Setup HTTP routes."""
        app = self.app
        auth = [Depends(self._verify_api_key)]

        @app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": datetime.now(), "connected": self.bot_core.is_connected()}

        @app.get("/api/stats", dependencies=auth)
        async def get_stats():
            try:
                return asdict(await self.bot_core.get_stats())
            except Exception as e:
                logger.error(f"Error fetching stats: {e}")
                raise HTTPException(status_code=500, detail="Failed to get stats")

        @app.get("/api/config", dependencies=auth)
        async def get_config():
            return asdict(await self.dashboard.get_config())

        @app.patch("/api/config", dependencies=auth)
        async def update_config(data: BotConfigUpdate):
            config = await self.dashboard.update_config(data.model_dump(exclude_unset=True))
            return asdict(config)

        @app.get("/api/session", dependencies=auth)
        async def get_session():
            return session_to_public_dict(await self.bot_core.get_session())

        @app.get("/api/logs", dependencies=auth)
        async def get_logs(limit: int = Query(default=100, ge=1, le=1000), type: Optional[str] = None):
            logs = await self.bot_core.get_logs(limit=limit, log_type=type)
            return [asdict(entry) for entry in logs]

        @app.delete("/api/logs", dependencies=auth)
        async def clear_logs():
            await self.bot_core.clear_logs()
            return {"success": True}

        @app.get("/api/commands", dependencies=auth)
        async def get_commands():
            return [asdict(command) for command in await self.bot_core.list_commands()]

        @app.patch("/api/commands/{command_id}", dependencies=auth)
        async def update_command(command_id: str, data: CommandUpdate):
            changes = data.model_dump(exclude_unset=True)
            try:
                if set(changes) == {"is_enabled"}:
                    command = await self.bot_core.set_command_enabled(command_id, changes["is_enabled"])
                else:
                    command = await self.dashboard.update_command(command_id, changes)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return asdict(command)

        @app.get("/api/users", dependencies=auth)
        async def get_users():
            return [asdict(user) for user in await self.dashboard.list_users()]

        @app.patch("/api/users/{user_id}", dependencies=auth)
        async def update_user(user_id: str, data: UserUpdate):
            try:
                user = await self.dashboard.update_user(user_id, data.model_dump(exclude_unset=True))
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return asdict(user)

        @app.get("/api/threads", dependencies=auth)
        async def get_threads():
            return [asdict(thread) for thread in await self.dashboard.list_threads()]

        @app.patch("/api/threads/{thread_id}", dependencies=auth)
        async def update_thread(thread_id: str, data: ThreadUpdate):
            try:
                thread = await self.dashboard.update_thread(thread_id, data.model_dump(exclude_unset=True))
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return asdict(thread)

        @app.post("/api/bot/start", dependencies=auth)
        async def start_bot(data: LoginRequest):
            try:
                await self.bot_core.start(data.to_credentials())
            except BotError as e:
                await self.bot_core.reporter.log("error", "Failed to start bot", str(e))
                raise HTTPException(status_code=400, detail=str(e))
            await self.bot_core.reporter.log("info", "Bot start initiated", f"Login type: {data.type}")
            return {"success": True, "message": "Bot starting..."}

        @app.post("/api/bot/stop", dependencies=auth)
        async def stop_bot():
            try:
                await self.bot_core.stop()
            except Exception as e:
                logger.error(f"Error stopping bot: {e}", exc_info=True)
                raise HTTPException(status_code=500, detail=str(e) or "Failed to stop bot")
            await self.bot_core.reporter.log("info", "Bot stopped")
            return {"success": True, "message": "Bot stopped"}

        @app.post("/api/bot/restart", dependencies=auth)
        async def restart_bot():
            try:
                await self.bot_core.restart()
            except BotError as e:
                await self.bot_core.reporter.log("error", "Failed to restart bot", str(e))
                raise HTTPException(status_code=400, detail=str(e))
            await self.bot_core.reporter.log("info", "Bot restarted")
            return {"success": True, "message": "Bot restarting..."}

        @app.post("/api/bot/send", dependencies=auth)
        async def send_message(data: SendMessageRequest):
            try:
                ack = await self.bot_core.send_message(data.thread_id, data.message)
            except BotError as e:
                raise HTTPException(status_code=400, detail=str(e))
            except Exception as e:
                logger.error(f"Error sending message: {e}", exc_info=True)
                raise HTTPException(status_code=500, detail=str(e) or "Failed to send message")
            return {"success": True, "ack": ack}

        @app.websocket("/ws")
        async def websocket_endpoint(websocket: WebSocket):
            await self.notifier.connect(websocket)
            try:
                while True:
                    await websocket.receive_text()
            except WebSocketDisconnect:
                self.notifier.disconnect(websocket)
