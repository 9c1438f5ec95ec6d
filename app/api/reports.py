"""
GET /reports
GET /reports/{report_id}
Lists stored report ids (newest first) and serves a stored report verbatim.
Handlers are plain def so FastAPI runs the disk reads in its threadpool.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.errors import PersistenceError, ReportCorruptError, ReportNotFoundError
from app.services.report_store import ReportStore
from app.api.dependencies import get_report_store

router = APIRouter()


@router.get("/reports")
def list_reports(store: ReportStore = Depends(get_report_store)):
    try:
        return store.list()
    except PersistenceError:
        return JSONResponse(status_code=500, content={"error": "Failed to list reports"})


@router.get("/reports/{report_id}")
def get_report(report_id: str, store: ReportStore = Depends(get_report_store)):
    try:
        stored = store.get(report_id)
    except ReportNotFoundError:
        return JSONResponse(status_code=404, content={"error": "Report not found"})
    except ReportCorruptError:
        return JSONResponse(status_code=500, content={"error": "Failed to read report"})
    return stored.report
