"""
Unit Tests — Browser Session Manager
====================================
Chrome launch, readiness polling and teardown, with the subprocess and the
DevTools HTTP endpoint mocked. No real browser is required.
"""
import asyncio
import os
import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from app.browser.session_manager import (
    ChromeSessionManager,
    LaunchOptions,
    build_chrome_command,
    find_free_port,
    resolve_chrome_path,
)
from app.core.errors import LaunchError


class FakeProcess:
    def __init__(self, returncode=None, pid=4242):
        self.returncode = returncode
        self.pid = pid
        self.kill_calls = 0

    def kill(self):
        self.kill_calls += 1
        self.returncode = -9

    async def wait(self):
        return self.returncode


def _ok_response():
    resp = MagicMock()
    resp.status_code = 200
    resp.json.return_value = {"Browser": "HeadlessChrome/130.0.0.0"}
    return resp


@pytest.fixture
def chrome_binary(tmp_path):
    path = tmp_path / "chrome"
    path.write_text("#!/bin/sh\n")
    return str(path)


@pytest.fixture
def manager(chrome_binary):
    return ChromeSessionManager(chrome_path=chrome_binary, ready_timeout=60, poll_interval=0.01)


# ---------------------------------------------------------------------------
# 1. Helpers
# ---------------------------------------------------------------------------
def test_find_free_port_returns_usable_port():
    port = find_free_port()
    assert 0 < port < 65536


def test_build_chrome_command_flags():
    cmd = build_chrome_command("/bin/chrome", 9333, "/tmp/profile", ["--lang=de"])
    assert cmd[0] == "/bin/chrome"
    assert "--headless=new" in cmd
    assert "--no-sandbox" in cmd
    assert "--disable-gpu" in cmd
    assert "--disable-extensions" in cmd
    assert "--disable-background-networking" in cmd
    assert "--lang=de" in cmd
    assert "--remote-debugging-port=9333" in cmd
    assert "--user-data-dir=/tmp/profile" in cmd


def test_resolve_chrome_path_override_missing():
    with pytest.raises(LaunchError):
        resolve_chrome_path("/nonexistent/chrome-binary")


def test_resolve_chrome_path_from_path_lookup():
    with patch("app.browser.session_manager.shutil.which",
               side_effect=lambda name: "/usr/bin/chromium" if name == "chromium" else None):
        assert resolve_chrome_path() == "/usr/bin/chromium"


def test_resolve_chrome_path_nothing_installed():
    with patch("app.browser.session_manager.shutil.which", return_value=None), \
         patch("app.browser.session_manager.sys.platform", "linux"):
        with pytest.raises(LaunchError):
            resolve_chrome_path()


# ---------------------------------------------------------------------------
# 2. acquire / release
# ---------------------------------------------------------------------------
def test_acquire_and_release(manager):
    async def run_test():
        proc = FakeProcess()
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc) as mock_exec, \
             patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_ok_response()):

            session = await manager.acquire()

            assert session.debug_port > 0
            assert session.browser_version == "HeadlessChrome/130.0.0.0"
            assert manager.live_session_count == 1
            assert os.path.isdir(session.user_data_dir)
            cmd = mock_exec.call_args.args
            assert f"--remote-debugging-port={session.debug_port}" in cmd

            await manager.release(session)

            assert proc.kill_calls == 1
            assert session.released
            assert manager.live_session_count == 0
            assert not os.path.exists(session.user_data_dir)

    asyncio.run(run_test())


def test_release_is_idempotent(manager):
    async def run_test():
        proc = FakeProcess()
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc), \
             patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_ok_response()):
            session = await manager.acquire()
            await manager.release(session)
            await manager.release(session)
            assert proc.kill_calls == 1

    asyncio.run(run_test())


def test_readiness_retries_until_ready(manager):
    async def run_test():
        proc = FakeProcess()
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc), \
             patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get, \
             patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            mock_get.side_effect = [
                httpx.ConnectError("refused"),
                httpx.ConnectError("refused"),
                _ok_response(),
            ]
            session = await manager.acquire()
            assert mock_get.call_count == 3
            assert mock_sleep.call_count == 2
            await manager.release(session)

    asyncio.run(run_test())


def test_ready_timeout_raises_and_kills(manager):
    async def run_test():
        proc = FakeProcess()
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc), \
             patch("httpx.AsyncClient.get", new_callable=AsyncMock,
                   side_effect=httpx.ConnectError("refused")):
            with pytest.raises(LaunchError) as exc_info:
                await manager.acquire(LaunchOptions(ready_timeout=0))
            assert "timeout" in exc_info.value.message
            assert proc.kill_calls == 1
            assert manager.live_session_count == 0

    asyncio.run(run_test())


def test_cancel_while_waiting_kills_chrome(manager):
    async def run_test():
        proc = FakeProcess()
        requested = asyncio.Event()

        async def hang(*args, **kwargs):
            requested.set()
            await asyncio.sleep(3600)

        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc), \
             patch("httpx.AsyncClient.get", new_callable=AsyncMock, side_effect=hang):
            task = asyncio.create_task(manager.acquire())
            await requested.wait()
            assert manager.live_session_count == 1

            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            assert proc.kill_calls == 1
            assert manager.live_session_count == 0

    asyncio.run(run_test())


def test_non_object_version_payload_still_returns_session(manager):
    async def run_test():
        proc = FakeProcess()
        resp = _ok_response()
        resp.json.return_value = ["not", "an", "object"]
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc), \
             patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=resp):
            session = await manager.acquire()
            assert session.browser_version == ""
            assert manager.live_session_count == 1
            await manager.release(session)
            assert manager.live_session_count == 0

    asyncio.run(run_test())


def test_unexpected_error_while_waiting_kills_chrome(manager):
    async def run_test():
        proc = FakeProcess()
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc), \
             patch("httpx.AsyncClient.get", new_callable=AsyncMock,
                   side_effect=RuntimeError("transport exploded")):
            with pytest.raises(RuntimeError):
                await manager.acquire()
            assert proc.kill_calls == 1
            assert manager.live_session_count == 0

    asyncio.run(run_test())


def test_early_exit_raises(manager):
    async def run_test():
        proc = FakeProcess(returncode=1)
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc), \
             patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            with pytest.raises(LaunchError) as exc_info:
                await manager.acquire()
            assert "exited" in exc_info.value.message
            mock_get.assert_not_called()
            assert manager.live_session_count == 0

    asyncio.run(run_test())


def test_spawn_failure_raises_launch_error(manager):
    async def run_test():
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock,
                   side_effect=PermissionError("not executable")):
            with pytest.raises(LaunchError) as exc_info:
                await manager.acquire()
            assert "not executable" in exc_info.value.details
            assert manager.live_session_count == 0

    asyncio.run(run_test())


def test_missing_binary_never_spawns():
    async def run_test():
        manager = ChromeSessionManager(chrome_path="/nonexistent/chrome")
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock) as mock_exec:
            with pytest.raises(LaunchError):
                await manager.acquire()
            mock_exec.assert_not_called()

    asyncio.run(run_test())


def test_kill_errors_are_swallowed(manager):
    async def run_test():
        proc = FakeProcess()
        proc.kill = MagicMock(side_effect=RuntimeError("kill failed"))
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc), \
             patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_ok_response()):
            session = await manager.acquire()
            await manager.release(session)
            assert manager.live_session_count == 0

    asyncio.run(run_test())


# ---------------------------------------------------------------------------
# 3. Scoped session
# ---------------------------------------------------------------------------
def test_session_context_releases_on_error(manager):
    async def run_test():
        proc = FakeProcess()
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc), \
             patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_ok_response()):
            with pytest.raises(ValueError):
                async with manager.session() as session:
                    assert manager.live_session_count == 1
                    raise ValueError("engine blew up")
            assert session.released
            assert proc.kill_calls == 1
            assert manager.live_session_count == 0

    asyncio.run(run_test())
