"""Tests for DashboardClient request building and error mapping."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from botpanel.presentation.dashboard_client import DashboardClient, DashboardClientError


def _mock_session(status=200, payload=None):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload if payload is not None else {})
    response.text = AsyncMock(return_value="")

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.request = MagicMock(return_value=context)
    return session


def _client(session):
    client = DashboardClient("http://panel.local:8000/", api_key="secret")
    client._get_session = AsyncMock(return_value=session)
    return client


@pytest.mark.asyncio
async def test_start_with_app_state_posts_login_payload():
    session = _mock_session(payload={"success": True, "message": "Bot starting..."})
    client = _client(session)

    result = await client.start_with_app_state('[{"key": "c_user"}]', proxy="http://proxy:3128")

    assert result["success"] is True
    session.request.assert_called_once_with(
        "POST",
        "http://panel.local:8000/api/bot/start",
        json={"type": "appState", "appState": '[{"key": "c_user"}]', "proxy": "http://proxy:3128"}
    )


@pytest.mark.asyncio
async def test_send_message_uses_thread_id_alias():
    session = _mock_session(payload={"success": True})
    await _client(session).send_message("t1", "hello")

    session.request.assert_called_once_with(
        "POST", "http://panel.local:8000/api/bot/send", json={"threadId": "t1", "message": "hello"}
    )


@pytest.mark.asyncio
async def test_get_logs_passes_filter():
    session = _mock_session(payload=[])
    assert await _client(session).get_logs(limit=5, log_type="error") == []

    session.request.assert_called_once_with(
        "GET", "http://panel.local:8000/api/logs", params={"limit": 5, "type": "error"}
    )


@pytest.mark.asyncio
async def test_error_status_raises_with_detail():
    session = _mock_session(status=400, payload={"detail": "Bot is already running"})

    with pytest.raises(DashboardClientError) as exc_info:
        await _client(session).start_with_credentials("bot", "pw")

    assert exc_info.value.status == 400
    assert exc_info.value.detail == "Bot is already running"
