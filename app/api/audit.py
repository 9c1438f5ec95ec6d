"""
GET /nsa-audit
Runs one Lighthouse audit synchronously within the request and returns the
full result plus the path it was stored under.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.services.audit_orchestrator import AuditOrchestrator
from app.api.dependencies import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/nsa-audit")
async def nsa_audit(
    url: Optional[str] = Query(None, description="Absolute http(s) URL to audit"),
    locale: Optional[str] = Query(None, description="Lighthouse report locale"),
    categories: Optional[str] = Query(
        None, description="Comma-separated subset, e.g. performance,seo"
    ),
    orchestrator: AuditOrchestrator = Depends(get_orchestrator),
):
    logger.info("Audit requested | url=%r | locale=%r | categories=%r", url, locale, categories)
    category_list = [c for c in (categories or "").split(",") if c.strip()] or None

    outcome = await orchestrator.run_audit(url, locale=locale, categories=category_list)

    if not outcome.success:
        error = outcome.error
        body = {"success": False, "error": error.message, "errorType": error.kind}
        if error.details:
            body["details"] = error.details
        return JSONResponse(status_code=error.status_code, content=body)

    stored = outcome.stored_report
    return {
        "success": True,
        "url": outcome.request.url,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "locale": outcome.request.locale,
        "lighthouseResult": stored.report,
        "reportPath": stored.report_path,
    }
