"""
Report Models
=============
Pydantic models for persisted audit results.

StoredReport:
    report_id   — filename inside the report store (also the URL id)
    path        — absolute path of the file on disk
    report      — the Lighthouse result, exactly as it was saved
    created_at  — UTC time the identity was derived from

ReportSummary:
    Lightweight projection used in log lines: final URL, fetch time,
    category names and audit count.
"""
from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel


class StoredReport(BaseModel):
    report_id: str
    path: str
    report: Dict[str, Any]
    created_at: datetime

    @property
    def report_path(self) -> str:
        """URL path under which the API serves this report."""
        return f"/reports/{self.report_id}"


class ReportSummary(BaseModel):
    final_url: str
    fetch_time: str
    categories: List[str]
    audit_count: int

    @classmethod
    def from_lhr(cls, lhr: Dict[str, Any]) -> "ReportSummary":
        return cls(
            final_url=str(lhr.get("finalUrl", "")),
            fetch_time=str(lhr.get("fetchTime", "")),
            categories=list((lhr.get("categories") or {}).keys()),
            audit_count=len(lhr.get("audits") or {}),
        )
