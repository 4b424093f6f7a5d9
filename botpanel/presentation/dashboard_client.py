# botpanel/presentation/dashboard_client.py - remote control for a running control panel
import aiohttp
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class DashboardClientError(Exception):
    def __init__(self, status: int, detail: str):
        self.status = status
        self.detail = detail
        super().__init__(f"HTTP {status}: {detail}")


class DashboardClient:
    """Client for the control panel REST API."""

    def __init__(self, base_url: str, api_key: Optional[str] = None):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self.session is None or self.session.closed:
            headers = {"X-API-Key": self.api_key} if self.api_key else {}
            timeout = aiohttp.ClientTimeout(total=30)
            self.session = aiohttp.ClientSession(headers=headers, timeout=timeout)
        return self.session

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        session = await self._get_session()
        async with session.request(method, f"{self.base_url}{path}", **kwargs) as response:
            if response.status >= 400:
                try:
                    body = await response.json()
                    detail = body.get("detail", str(body))
                except (aiohttp.ContentTypeError, ValueError):
                    detail = await response.text()
                logger.error(f"{method} {path} failed: {response.status} - {detail}")
                raise DashboardClientError(response.status, str(detail))
            return await response.json()

    async def start_with_app_state(self, app_state: str, proxy: Optional[str] = None) -> Dict[str, Any]:
        payload = {"type": "appState", "appState": app_state}
        if proxy:
            payload["proxy"] = proxy
        return await self._request("POST", "/api/bot/start", json=payload)

    async def start_with_credentials(self, username: str, password: str,
                                     proxy: Optional[str] = None) -> Dict[str, Any]:
        payload = {"type": "credentials", "username": username, "password": password}
        if proxy:
            payload["proxy"] = proxy
        return await self._request("POST", "/api/bot/start", json=payload)

    async def stop(self) -> Dict[str, Any]:
        return await self._request("POST", "/api/bot/stop")

    async def restart(self) -> Dict[str, Any]:
        return await self._request("POST", "/api/bot/restart")

    async def send_message(self, thread_id: str, message: str) -> Dict[str, Any]:
        return await self._request("POST", "/api/bot/send", json={"threadId": thread_id, "message": message})

    async def get_stats(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/stats")

    async def get_session_info(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/session")

    async def list_commands(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/api/commands")

    async def set_command_enabled(self, command_id: str, enabled: bool) -> Dict[str, Any]:
        return await self._request("PATCH", f"/api/commands/{command_id}", json={"is_enabled": enabled})

    async def get_logs(self, limit: int = 100, log_type: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit}
        if log_type:
            params["type"] = log_type
        return await self._request("GET", "/api/logs", params=params)

    async def clear_logs(self) -> Dict[str, Any]:
        return await self._request("DELETE", "/api/logs")

    async def close(self):
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()
