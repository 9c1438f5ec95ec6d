import uvicorn
import time
import logging
from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.audit import router as audit_router
from app.api.reports import router as reports_router
from app.api.viewer import router as viewer_router
from app.browser.session_manager import ChromeSessionManager
from app.core.config import CORS_ALLOW_ORIGINS, HOST, LOG_LEVEL, PORT, REPORT_PREFIX, REPORTS_DIR
from app.services.report_store import ReportStore
from app.utils.logging_config import setup_logging

setup_logging(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger("main")

app = FastAPI(title="Lighthouse API", description="Lighthouse API for automated web performance testing")

# One store and one session manager per process, injected via app/api/dependencies.py
app.state.report_store = ReportStore(REPORTS_DIR, prefix=REPORT_PREFIX)
app.state.session_manager = ChromeSessionManager()

# ---------------------------------------------------------------------------
# Logging Middleware
# ---------------------------------------------------------------------------
class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Incoming: {request.method} {request.url.path} from {client_host}")

        try:
            response = await call_next(request)
            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"Outgoing: {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Time: {process_time:.2f}ms"
            )
            return response
        except Exception as e:
            logger.error(f"Request failed: {request.method} {request.url.path} - Error: {str(e)}")
            raise e

app.add_middleware(LoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_methods=["GET"],
    allow_headers=["*"],
)

@app.get("/")
async def index():
    return {
        "message": "Welcome to Lighthouse API",
        "endpoints": {
            "/nsa-audit?url={weburl}": "GET - Run Lighthouse nsa-audit on a URL",
            "/health": "GET - Check API health status",
            "/reports": "GET - List stored reports, newest first",
            "/reports/{id}": "GET - Fetch one stored report",
            "/viewer": "GET - View Lighthouse reports",
        },
    }

# Health endpoint
@app.get("/health")
async def health_check():
    return {"status": "ok"}

# Register routers
app.include_router(audit_router, tags=["Audit"])
app.include_router(reports_router, tags=["Reports"])
app.include_router(viewer_router, tags=["Viewer"])

if __name__ == "__main__":
    logger.info(f"Server is running on http://localhost:{PORT}")
    uvicorn.run("main:app", host=HOST, port=PORT)
