"""
Audit Errors
============
Exception taxonomy shared by the session manager, scoring engine adapter,
report store and orchestrator.

Every error carries:
    kind        — short machine-readable classification (exposed as errorType)
    status_code — HTTP status the API layer answers with
    message     — human-readable summary
    details     — optional engine/OS detail for diagnosis
"""
from typing import Optional


class AuditError(Exception):
    kind = "internal"
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InputError(AuditError):
    """Malformed or missing request input. Never reaches the browser."""
    kind = "input"
    status_code = 400


class LaunchError(AuditError):
    """Chrome could not be started or never became reachable."""
    kind = "launch"


class ScoringError(AuditError):
    """Lighthouse failed, timed out, or returned an incomplete result."""
    kind = "scoring"


class PersistenceError(AuditError):
    """A validated report could not be written to the report store."""
    kind = "persistence"


class ReportNotFoundError(AuditError):
    kind = "not_found"
    status_code = 404


class ReportCorruptError(AuditError):
    """The report file exists but does not hold a JSON object."""
    kind = "corrupt"
