"""
Report Store
============
Durable, file-based persistence for completed Lighthouse reports.

Philosophy:
    - One JSON file per completed audit in a single flat directory.
    - Append-only: files are created exclusively and never rewritten.
    - Identity = filename: <prefix>-<UTC timestamp>-<token>.json
      The timestamp is fixed width so string order is chronological order;
      the random token keeps two saves inside the same microsecond apart.
    - The directory is created lazily, never assumed to exist.
"""
import json
import logging
import os
import re
import secrets
import tempfile
from datetime import datetime, timezone
from typing import Callable, List, Optional

from app.core.errors import PersistenceError, ReportCorruptError, ReportNotFoundError
from app.models.report import StoredReport

logger = logging.getLogger(__name__)

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%fZ"
_TOKEN_BYTES = 3
_MAX_SAVE_ATTEMPTS = 5


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReportStore:
    """
    Owns the report directory for the lifetime of the process.

    Created once by the application and handed to the orchestrator and the
    report endpoints explicitly.
    """

    def __init__(
        self,
        directory: str,
        prefix: str = "lighthouse-report",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.directory = os.path.abspath(directory)
        self.prefix = prefix
        self._clock = clock or _utc_now
        # Millisecond timestamps (older reports) and an optional token are both accepted
        self._name_re = re.compile(
            rf"^{re.escape(prefix)}-"
            r"(?P<ts>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3,6}Z)"
            r"(?:-[0-9a-f]{4,32})?\.json$"
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _ensure_dir(self) -> None:
        if not os.path.isdir(self.directory):
            logger.info("Creating report directory %s", self.directory)
            os.makedirs(self.directory, exist_ok=True)

    def _write_partial(self, payload: str) -> str:
        """
        Write the payload to a hidden temp file in the store directory.

        The file only becomes a report once it is fully on disk and linked
        to its final name; a failed write leaves nothing behind.
        """
        tmp = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.directory,
            prefix=".partial-",
            suffix=".tmp",
            delete=False,
        )
        try:
            with tmp:
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
        except BaseException:
            self._discard(tmp.name)
            raise
        return tmp.name

    @staticmethod
    def _discard(path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove partial report %s", path, exc_info=True)

    def _new_report_id(self, created_at: datetime) -> str:
        stamp = created_at.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)
        return f"{self.prefix}-{stamp}-{secrets.token_hex(_TOKEN_BYTES)}.json"

    def _sort_key(self, report_id: str) -> tuple:
        match = self._name_re.match(report_id)
        stamp = match.group("ts")[:-1]  # drop trailing Z
        head, _, fraction = stamp.rpartition("-")
        return (head, fraction.ljust(6, "0"), report_id)

    def _created_at(self, report_id: str) -> datetime:
        head, fraction, _ = self._sort_key(report_id)
        return datetime.strptime(f"{head}-{fraction}Z", _TIMESTAMP_FORMAT).replace(
            tzinfo=timezone.utc
        )

    def is_report_id(self, report_id: str) -> bool:
        return bool(self._name_re.match(report_id or ""))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def save(self, report: dict) -> StoredReport:
        """
        Persist a validated Lighthouse report verbatim.

        Raises
        ------
        PersistenceError
            When the directory or file cannot be written.
        """
        payload = json.dumps(report, indent=2)
        try:
            self._ensure_dir()
            partial_path = self._write_partial(payload)
            try:
                for _ in range(_MAX_SAVE_ATTEMPTS):
                    created_at = self._clock()
                    report_id = self._new_report_id(created_at)
                    path = os.path.join(self.directory, report_id)
                    # link() never replaces an existing name
                    try:
                        os.link(partial_path, path)
                    except FileExistsError:
                        logger.warning("Report id collision on %s, retrying", report_id)
                        continue
                    logger.info("Report saved successfully to %s", path)
                    return StoredReport(
                        report_id=report_id,
                        path=path,
                        report=report,
                        created_at=created_at,
                    )
            finally:
                self._discard(partial_path)
        except OSError as e:
            logger.error("Error saving report: %s", e, exc_info=True)
            raise PersistenceError("Failed to save report", details=str(e)) from e

        raise PersistenceError(
            "Failed to save report",
            details=f"no unique report id after {_MAX_SAVE_ATTEMPTS} attempts",
        )

    def list(self) -> List[str]:
        """Return stored report ids, newest first. Unrelated files are ignored."""
        try:
            self._ensure_dir()
            names = os.listdir(self.directory)
        except OSError as e:
            logger.error("Error listing reports: %s", e, exc_info=True)
            raise PersistenceError("Failed to list reports", details=str(e)) from e

        report_ids = [
            name for name in names
            if self.is_report_id(name)
            and os.path.isfile(os.path.join(self.directory, name))
        ]
        report_ids.sort(key=self._sort_key, reverse=True)
        logger.debug("Found %d reports in %s", len(report_ids), self.directory)
        return report_ids

    def get(self, report_id: str) -> StoredReport:
        """
        Load one stored report.

        Raises
        ------
        ReportNotFoundError
            No report with this id exists (ids that are not report names,
            including anything path-like, are never looked up).
        ReportCorruptError
            The file exists but is unreadable or not a JSON object.
        """
        if not self.is_report_id(report_id):
            raise ReportNotFoundError("Report not found", details=report_id)

        path = os.path.join(self.directory, report_id)
        logger.info("Reading report %s", path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                report = json.load(f)
        except FileNotFoundError:
            logger.warning("Report not found: %s", path)
            raise ReportNotFoundError("Report not found", details=report_id)
        except (OSError, ValueError) as e:
            logger.error("Error reading report %s: %s", path, e)
            raise ReportCorruptError("Failed to read report", details=str(e)) from e

        if not isinstance(report, dict):
            logger.error("Report %s does not contain a JSON object", path)
            raise ReportCorruptError(
                "Failed to read report",
                details=f"expected a JSON object, got {type(report).__name__}",
            )

        return StoredReport(
            report_id=report_id,
            path=path,
            report=report,
            created_at=self._created_at(report_id),
        )
