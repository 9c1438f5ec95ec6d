"""
Browser Session Manager
=======================
Launches an ephemeral headless Chrome for one audit and guarantees it dies
afterwards.

BOUNDARY RULES:
    - The manager ONLY owns the Chrome process and its throwaway profile.
    - It NEVER runs Lighthouse. It hands the debugging port to whoever does.
    - It NEVER persists anything.

LIFECYCLE:
    1. Pick a free local port (bind port 0, read it back)
    2. Start Chrome with --remote-debugging-port=<port> and a temp profile
    3. Poll GET /json/version until it answers 200 or the ready timeout hits
    4. Hand out the BrowserSession
    5. release(): kill, reap, delete the profile (idempotent, never raises)

One session per request. Sessions are never pooled or reused.
"""
import asyncio
import logging
import os
import shutil
import socket
import sys
import tempfile
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Set

import httpx

from app.core.config import (
    CHROME_KILL_TIMEOUT,
    CHROME_PATH,
    CHROME_POLL_INTERVAL,
    CHROME_READY_TIMEOUT,
)
from app.core.constants import CHROME_CANDIDATES, CHROME_FLAGS, CHROME_MACOS_PATH
from app.core.errors import LaunchError

logger = logging.getLogger(__name__)

_DEBUG_HOST = "127.0.0.1"
_READY_CHECK_TIMEOUT = 2.0


# ---------------------------------------------------------------------------
# Session / options
# ---------------------------------------------------------------------------
@dataclass
class LaunchOptions:
    """Per-launch overrides. Anything left as None falls back to the manager."""
    chrome_path: Optional[str] = None
    extra_flags: List[str] = field(default_factory=list)
    ready_timeout: Optional[float] = None
    poll_interval: Optional[float] = None


@dataclass(eq=False)
class BrowserSession:
    """
    One live Chrome process.

    Fields
    ------
    debug_port : int
        DevTools port Chrome listens on.
    process : asyncio.subprocess.Process
        Owned exclusively by this session.
    user_data_dir : str
        Temporary profile directory, removed on release.
    chrome_path : str
        Binary that was launched.
    browser_version : str
        "Browser" field reported by /json/version.
    """
    debug_port: int
    process: asyncio.subprocess.Process
    user_data_dir: str
    chrome_path: str
    started_at: float = field(default_factory=time.monotonic)
    browser_version: str = ""
    released: bool = False

    @property
    def pid(self) -> Optional[int]:
        return getattr(self.process, "pid", None)

    @property
    def debugger_url(self) -> str:
        return f"http://{_DEBUG_HOST}:{self.debug_port}"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def find_free_port(host: str = _DEBUG_HOST) -> int:
    """Ask the OS for an unused TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def resolve_chrome_path(override: Optional[str] = None) -> str:
    """
    Locate the Chrome binary.

    Order: explicit override → known executable names on PATH → macOS app bundle.
    """
    if override:
        if not os.path.exists(override):
            raise LaunchError(f"Chrome binary not found at {override}")
        return override

    for name in CHROME_CANDIDATES:
        found = shutil.which(name)
        if found:
            return found

    if sys.platform == "darwin" and os.path.exists(CHROME_MACOS_PATH):
        return CHROME_MACOS_PATH

    raise LaunchError(
        "No Chrome installation found. Set CHROME_PATH to the browser binary."
    )


def build_chrome_command(
    chrome_path: str,
    port: int,
    user_data_dir: str,
    extra_flags: Optional[List[str]] = None,
) -> List[str]:
    return [
        chrome_path,
        *CHROME_FLAGS,
        *(extra_flags or []),
        f"--remote-debugging-port={port}",
        f"--user-data-dir={user_data_dir}",
        "about:blank",
    ]


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------
class ChromeSessionManager:
    """Acquire/release capability around headless Chrome processes."""

    def __init__(
        self,
        chrome_path: Optional[str] = CHROME_PATH,
        ready_timeout: float = CHROME_READY_TIMEOUT,
        poll_interval: float = CHROME_POLL_INTERVAL,
        kill_timeout: float = CHROME_KILL_TIMEOUT,
    ) -> None:
        self.chrome_path = chrome_path
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval
        self.kill_timeout = kill_timeout
        self._live: Set[BrowserSession] = set()

    @property
    def live_session_count(self) -> int:
        return len(self._live)

    async def acquire(self, launch_options: Optional[LaunchOptions] = None) -> BrowserSession:
        """
        Start Chrome and wait until its DevTools endpoint is reachable.

        Raises
        ------
        LaunchError
            Binary missing, process failed to start or exited early, or the
            endpoint never answered within the ready timeout. Any partially
            started process is killed first.
        """
        opts = launch_options or LaunchOptions()
        chrome_path = resolve_chrome_path(opts.chrome_path or self.chrome_path)
        ready_timeout = opts.ready_timeout if opts.ready_timeout is not None else self.ready_timeout
        poll_interval = opts.poll_interval if opts.poll_interval is not None else self.poll_interval

        port = find_free_port()
        user_data_dir = tempfile.mkdtemp(prefix="lighthouse-chrome-")
        cmd = build_chrome_command(chrome_path, port, user_data_dir, opts.extra_flags)

        logger.info("Launching Chrome | binary=%s | port=%d", chrome_path, port)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            shutil.rmtree(user_data_dir, ignore_errors=True)
            logger.error("Chrome failed to start: %s", e)
            raise LaunchError("Failed to launch Chrome", details=str(e)) from e

        session = BrowserSession(
            debug_port=port,
            process=process,
            user_data_dir=user_data_dir,
            chrome_path=chrome_path,
        )
        self._live.add(session)

        # Any failure or cancellation before the session is handed out kills Chrome
        try:
            version = await self._wait_until_ready(session, ready_timeout, poll_interval)
            if isinstance(version, dict):
                session.browser_version = str(version.get("Browser", ""))
        except BaseException:
            await self.release(session)
            raise

        logger.info(
            "Chrome launched successfully on port %d (pid=%s, %s) in %.2fs",
            port, session.pid, session.browser_version or "unknown version",
            time.monotonic() - session.started_at,
        )
        return session

    async def _wait_until_ready(
        self,
        session: BrowserSession,
        timeout: float,
        interval: float,
    ) -> dict:
        """Poll /json/version until 200, early exit, or deadline."""
        deadline = time.monotonic() + timeout
        version_url = f"{session.debugger_url}/json/version"
        attempts = 0

        async with httpx.AsyncClient(timeout=_READY_CHECK_TIMEOUT) as client:
            while True:
                attempts += 1
                if session.process.returncode is not None:
                    raise LaunchError(
                        "Chrome exited before becoming reachable",
                        details=f"exit code {session.process.returncode}",
                    )
                try:
                    response = await client.get(version_url)
                    if response.status_code == 200:
                        logger.debug("DevTools endpoint ready after %d attempts", attempts)
                        return response.json()
                    logger.debug("DevTools endpoint returned HTTP %d", response.status_code)
                except (httpx.HTTPError, ValueError):
                    pass

                if time.monotonic() >= deadline:
                    logger.error(
                        "Chrome not reachable on port %d after %.0fs (%d attempts)",
                        session.debug_port, timeout, attempts,
                    )
                    raise LaunchError(
                        "Chrome startup timeout",
                        details=f"no DevTools response on port {session.debug_port} within {timeout:.0f}s",
                    )
                await asyncio.sleep(interval)

    async def release(self, session: BrowserSession) -> None:
        """Kill and reap the process, drop the profile. Safe to call twice."""
        if session.released:
            return
        session.released = True

        process = session.process
        try:
            if process.returncode is None:
                process.kill()
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
            logger.info("Chrome process terminated (port=%d, pid=%s)", session.debug_port, session.pid)
        except ProcessLookupError:
            logger.debug("Chrome pid=%s already gone", session.pid)
        except Exception:
            logger.warning("Error killing Chrome pid=%s", session.pid, exc_info=True)
        finally:
            shutil.rmtree(session.user_data_dir, ignore_errors=True)
            self._live.discard(session)

    @asynccontextmanager
    async def session(self, launch_options: Optional[LaunchOptions] = None) -> AsyncIterator[BrowserSession]:
        """acquire → yield → release, with release on every exit path."""
        browser = await self.acquire(launch_options)
        try:
            yield browser
        finally:
            await self.release(browser)
