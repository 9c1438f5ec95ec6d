"""
Dependency Providers
====================
FastAPI dependencies wiring the report store, session manager and scoring
engine into the orchestrator.

The report store lives on ``app.state`` (created once in main.py); the
session manager and engine are cheap and stateless per request. Tests swap
any of these through ``app.dependency_overrides``.
"""
from fastapi import Depends, Request

from app.browser.session_manager import ChromeSessionManager
from app.services.audit_orchestrator import AuditOrchestrator
from app.services.lighthouse_runner import LighthouseRunner, ScoringEngine
from app.services.report_store import ReportStore


def get_report_store(request: Request) -> ReportStore:
    return request.app.state.report_store


def get_session_manager(request: Request) -> ChromeSessionManager:
    return request.app.state.session_manager


def get_scoring_engine() -> ScoringEngine:
    return LighthouseRunner()


def get_orchestrator(
    report_store: ReportStore = Depends(get_report_store),
    session_manager: ChromeSessionManager = Depends(get_session_manager),
    scoring_engine: ScoringEngine = Depends(get_scoring_engine),
) -> AuditOrchestrator:
    return AuditOrchestrator(
        report_store=report_store,
        session_manager=session_manager,
        scoring_engine=scoring_engine,
    )
