"""
Lighthouse Runner
=================
Runs the Lighthouse CLI against an already-running Chrome and returns the
raw result. This is the scoring engine boundary: how metrics are computed is
Lighthouse's business, not ours.

Invocation:
    lighthouse <url> --port=<debug port> --output=json --output-path=<tmp>
               --config-path=<tmp config> --quiet

The config file extends ``lighthouse:default`` with the AuditOptions
settings (categories, mobile form factor and screen emulation, FCP/load
waits, locale).

RETURN CONTRACT:
    - LighthouseResult when the CLI produced a report file (``lhr`` may be
      None if the file held JSON null).
    - None when the CLI exited cleanly but wrote nothing.
    - ScoringError for CLI not found, non-zero exit, timeout or unparseable output.
"""
import asyncio
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from app.core.config import AUDIT_TIMEOUT, LIGHTHOUSE_PATH
from app.core.errors import ScoringError
from app.models.audit_request import AuditOptions

logger = logging.getLogger(__name__)

_STDERR_TAIL_LINES = 20


@dataclass
class LighthouseResult:
    """
    Raw output of one Lighthouse run.

    Fields
    ------
    lhr : dict | None
        The Lighthouse result object (finalUrl, fetchTime, categories, audits, ...).
    exit_code : int
        CLI process exit code.
    stderr_excerpt : str
        Last lines of CLI stderr, for diagnostics.
    duration_seconds : float
        Wall clock duration of the CLI run.
    """
    lhr: Optional[dict]
    exit_code: int = 0
    stderr_excerpt: str = ""
    duration_seconds: float = 0.0


class ScoringEngine(Protocol):
    async def run(self, url: str, port: int, options: AuditOptions) -> Optional[LighthouseResult]:
        ...


def _tail(text: str, lines: int = _STDERR_TAIL_LINES) -> str:
    return "\n".join(text.splitlines()[-lines:])


async def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        return
    await process.wait()


def build_lighthouse_config(options: AuditOptions) -> dict:
    return {
        "extends": "lighthouse:default",
        "settings": options.to_lighthouse_settings(),
    }


def build_lighthouse_command(
    lighthouse_path: str,
    url: str,
    port: int,
    output_path: str,
    config_path: str,
    options: AuditOptions,
) -> list:
    return [
        lighthouse_path,
        url,
        f"--port={port}",
        "--hostname=127.0.0.1",
        "--output=json",
        f"--output-path={output_path}",
        f"--config-path={config_path}",
        f"--locale={options.locale}",
        "--quiet",
    ]


class LighthouseRunner:
    """Scoring engine backed by the Lighthouse Node CLI."""

    def __init__(self, lighthouse_path: str = LIGHTHOUSE_PATH, timeout: float = AUDIT_TIMEOUT) -> None:
        self.lighthouse_path = lighthouse_path
        self.timeout = timeout

    async def run(self, url: str, port: int, options: AuditOptions) -> Optional[LighthouseResult]:
        start = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="lighthouse-run-") as work_dir:
            config_path = os.path.join(work_dir, "config.json")
            output_path = os.path.join(work_dir, "report.json")
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(build_lighthouse_config(options), f)

            cmd = build_lighthouse_command(
                self.lighthouse_path, url, port, output_path, config_path, options
            )
            logger.info(
                "Starting Lighthouse audit | url=%s | port=%d | categories=%s | timeout=%.0fs",
                url, port, ",".join(options.only_categories), self.timeout,
            )

            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise ScoringError(
                    f"Lighthouse CLI could not be started ({self.lighthouse_path})",
                    details=str(e),
                ) from e

            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError:
                await _kill(process)
                raise ScoringError(
                    f"Lighthouse audit timed out after {self.timeout:.0f}s",
                    details=url,
                )
            except asyncio.CancelledError:
                await _kill(process)
                raise

            stderr_excerpt = _tail((stderr or b"").decode("utf-8", errors="replace"))
            duration = round(time.monotonic() - start, 3)

            if process.returncode != 0:
                logger.error(
                    "Lighthouse exited with code %d for %s:\n%s",
                    process.returncode, url, stderr_excerpt,
                )
                raise ScoringError(
                    f"Lighthouse exited with code {process.returncode}",
                    details=stderr_excerpt or None,
                )

            if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
                logger.error("Lighthouse wrote no report for %s", url)
                return None

            try:
                with open(output_path, "r", encoding="utf-8") as f:
                    lhr = json.load(f)
            except ValueError as e:
                raise ScoringError("Lighthouse produced unparseable output", details=str(e)) from e

        logger.info("Lighthouse audit completed for %s in %.2fs", url, duration)
        return LighthouseResult(
            lhr=lhr,
            exit_code=process.returncode,
            stderr_excerpt=stderr_excerpt,
            duration_seconds=duration,
        )
