"""
GET /viewer
Static HTML page that renders stored reports using only /reports and
/reports/{report_id}.
"""
from functools import lru_cache
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter()

_VIEWER_TEMPLATE = Path(__file__).resolve().parent.parent / "templates" / "viewer.html"


@lru_cache(maxsize=1)
def _load_viewer_html() -> str:
    return _VIEWER_TEMPLATE.read_text(encoding="utf-8")


@router.get("/viewer", response_class=HTMLResponse)
async def viewer():
    return HTMLResponse(content=_load_viewer_html())
