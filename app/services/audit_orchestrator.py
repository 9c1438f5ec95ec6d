"""
Audit Orchestrator
==================
Drives one audit end to end:

    Validate → Acquire Chrome → Run Lighthouse → Validate result → Persist → Release

Guarantees:
    - Invalid input never touches the browser.
    - Exactly one BrowserSession per audit that passes validation, released
      on every exit path (success, bad engine output, engine exception,
      persistence failure).
    - Nothing is written unless the result carries finalUrl, fetchTime,
      categories and audits.
    - Every failure comes back classified (input / launch / scoring /
      persistence); no exception escapes run_audit.

No caching or deduplication: the same URL audited twice is two sessions and
two stored reports.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import ValidationError

from app.browser.session_manager import ChromeSessionManager, LaunchOptions
from app.core.config import AUDIT_TIMEOUT
from app.core.constants import REQUIRED_REPORT_FIELDS
from app.core.errors import AuditError, InputError, LaunchError, PersistenceError, ScoringError
from app.models.audit_request import AuditOptions, AuditRequest
from app.models.report import ReportSummary, StoredReport
from app.services.lighthouse_runner import ScoringEngine
from app.services.report_store import ReportStore

logger = logging.getLogger(__name__)

# Extra seconds granted on top of the engine's own deadline before the
# orchestrator gives up on it.
_ENGINE_GRACE_SECONDS = 30

# Phases, used for log context and AuditOutcome.phase
PHASE_VALIDATE = "validate"
PHASE_LAUNCH = "launch"
PHASE_SCORE = "score"
PHASE_VALIDATE_RESULT = "validate_result"
PHASE_PERSIST = "persist"
PHASE_DONE = "done"

# Classification of unexpected exceptions by the phase they escaped from
_PHASE_ERRORS = {
    PHASE_LAUNCH: LaunchError,
    PHASE_SCORE: ScoringError,
    PHASE_VALIDATE_RESULT: ScoringError,
    PHASE_PERSIST: PersistenceError,
}


@dataclass
class AuditOutcome:
    """
    Result of one run_audit call.

    success=True  → stored_report is set.
    success=False → error is set; phase names the step that failed.
    """
    success: bool
    request: Optional[AuditRequest] = None
    stored_report: Optional[StoredReport] = None
    error: Optional[AuditError] = None
    phase: str = PHASE_VALIDATE
    duration_seconds: float = 0.0


def _first_validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    msg = errors[0].get("msg", "Invalid request")
    # pydantic prefixes messages raised from validators
    return msg.removeprefix("Value error, ")


def parse_audit_request(
    url: Optional[str],
    locale: Optional[str] = None,
    categories: Optional[List[str]] = None,
) -> AuditRequest:
    """Build an AuditRequest from raw query values, raising InputError."""
    if not url or not url.strip():
        raise InputError(
            "URL is required as a query parameter. Example: /nsa-audit?url=https://example.com"
        )
    data: dict = {"url": url}
    if locale:
        data["locale"] = locale
    if categories:
        data["categories"] = categories
    try:
        return AuditRequest(**data)
    except ValidationError as e:
        raise InputError(_first_validation_message(e)) from e


def validate_lighthouse_result(result: Any) -> dict:
    """
    Return the inner Lighthouse report, or raise ScoringError.

    A result missing any required field is a failure, never a partial success.
    """
    if result is None:
        raise ScoringError("Lighthouse returned null results object")

    lhr = getattr(result, "lhr", None)
    if lhr is None:
        raise ScoringError("Lighthouse results missing lhr property")
    if not isinstance(lhr, dict):
        raise ScoringError(
            "Lighthouse results have an unexpected shape",
            details=f"lhr is {type(lhr).__name__}",
        )

    for prop in REQUIRED_REPORT_FIELDS:
        if not lhr.get(prop):
            raise ScoringError(f"Lighthouse results missing required property: {prop}")

    return lhr


class AuditOrchestrator:
    """
    Coordinates the session manager, scoring engine and report store.

    All three collaborators are injected; the orchestrator owns none of
    them and keeps no state between calls.
    """

    def __init__(
        self,
        report_store: ReportStore,
        session_manager: ChromeSessionManager,
        scoring_engine: ScoringEngine,
        audit_timeout: float = AUDIT_TIMEOUT + _ENGINE_GRACE_SECONDS,
        launch_options: Optional[LaunchOptions] = None,
    ) -> None:
        self.report_store = report_store
        self.session_manager = session_manager
        self.scoring_engine = scoring_engine
        self.audit_timeout = audit_timeout
        self.launch_options = launch_options

    async def run_audit(
        self,
        url: Optional[str],
        locale: Optional[str] = None,
        categories: Optional[List[str]] = None,
    ) -> AuditOutcome:
        start = time.monotonic()
        outcome = AuditOutcome(success=False)

        # 1. Validate input
        try:
            request = parse_audit_request(url, locale, categories)
        except InputError as e:
            logger.warning("Rejected audit request url=%r: %s", url, e.message)
            outcome.error = e
            outcome.duration_seconds = round(time.monotonic() - start, 3)
            return outcome
        outcome.request = request

        # 2–6. Everything from here on holds a browser session
        try:
            await self._run_with_session(request, outcome)
        except AuditError as e:
            outcome.error = e
        except Exception as e:
            logger.exception("Unexpected failure during %s for %s", outcome.phase, request.url)
            error_cls = _PHASE_ERRORS.get(outcome.phase, ScoringError)
            outcome.error = error_cls(
                str(e) or type(e).__name__,
                details=f"{type(e).__name__} during {outcome.phase}",
            )

        outcome.duration_seconds = round(time.monotonic() - start, 3)
        if outcome.error is not None:
            logger.error(
                "Audit failed | url=%s | phase=%s | kind=%s | error=%s | details=%s",
                request.url, outcome.phase, outcome.error.kind,
                outcome.error.message, outcome.error.details,
            )
        else:
            logger.info(
                "Audit complete | url=%s | report=%s | time=%.2fs",
                request.url, outcome.stored_report.report_id, outcome.duration_seconds,
            )
        return outcome

    async def _run_with_session(self, request: AuditRequest, outcome: AuditOutcome) -> None:
        outcome.phase = PHASE_LAUNCH
        async with self.session_manager.session(self.launch_options) as session:
            # 3. Score
            outcome.phase = PHASE_SCORE
            options = AuditOptions.for_request(request)
            try:
                result = await asyncio.wait_for(
                    self.scoring_engine.run(request.url, session.debug_port, options),
                    timeout=self.audit_timeout,
                )
            except asyncio.TimeoutError as e:
                raise ScoringError(
                    f"Lighthouse audit timed out after {self.audit_timeout:.0f}s",
                    details=request.url,
                ) from e

            # 4. Validate result
            outcome.phase = PHASE_VALIDATE_RESULT
            lhr = validate_lighthouse_result(result)
            summary = ReportSummary.from_lhr(lhr)
            logger.info(
                "Lighthouse results validation passed | finalUrl=%s | fetchTime=%s | categories=%s | audits=%d",
                summary.final_url, summary.fetch_time,
                ",".join(summary.categories), summary.audit_count,
            )

            # 5. Persist
            outcome.phase = PHASE_PERSIST
            outcome.stored_report = await asyncio.to_thread(self.report_store.save, lhr)
            outcome.phase = PHASE_DONE
            outcome.success = True
