"""
Audit Request Model
===================
Pydantic model for one incoming audit request.

Fields:
    url         — absolute http(s) URL of the page to audit (percent-decoded once)
    locale      — Lighthouse UI locale, passed through untouched
    categories  — Lighthouse categories to score (defaults to all four)

Validation failures are raised as pydantic ValidationError; the orchestrator
turns them into InputError before any browser work starts.
"""
from typing import List
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, Field, field_validator

from app.core.config import DEFAULT_LOCALE, MAX_WAIT_FOR_FCP, MAX_WAIT_FOR_LOAD
from app.core.constants import ALL_CATEGORIES, FORM_FACTOR_MOBILE, MOBILE_SCREEN_EMULATION

_ALLOWED_SCHEMES = ("http", "https")


def normalize_audit_url(raw: str) -> str:
    """
    Decode and validate a target URL.

    Raises ValueError when the value is not an absolute http(s) URL with a host.
    """
    decoded = unquote(raw.strip())
    parsed = urlparse(decoded)
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES or not parsed.hostname:
        raise ValueError(
            "Invalid URL format. Please provide a valid URL starting with http:// or https://"
        )
    return decoded


class AuditRequest(BaseModel):
    url: str
    locale: str = DEFAULT_LOCALE
    categories: List[str] = Field(default_factory=lambda: list(ALL_CATEGORIES))

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return normalize_audit_url(v)

    @field_validator("locale")
    @classmethod
    def default_blank_locale(cls, v: str) -> str:
        return v.strip() or DEFAULT_LOCALE

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, v: List[str]) -> List[str]:
        cleaned = []
        for category in v:
            name = category.strip().lower()
            if not name:
                continue
            if name not in ALL_CATEGORIES:
                raise ValueError(
                    f"Unknown category '{category}'. Allowed: {', '.join(ALL_CATEGORIES)}"
                )
            if name not in cleaned:
                cleaned.append(name)
        return cleaned or list(ALL_CATEGORIES)


class AuditOptions(BaseModel):
    """Fixed Lighthouse settings derived from an AuditRequest."""
    only_categories: List[str]
    locale: str
    form_factor: str = FORM_FACTOR_MOBILE
    screen_emulation: dict = Field(default_factory=lambda: dict(MOBILE_SCREEN_EMULATION))
    max_wait_for_fcp: int = MAX_WAIT_FOR_FCP
    max_wait_for_load: int = MAX_WAIT_FOR_LOAD

    @classmethod
    def for_request(cls, request: AuditRequest) -> "AuditOptions":
        return cls(only_categories=list(request.categories), locale=request.locale)

    def to_lighthouse_settings(self) -> dict:
        """Render the options as a Lighthouse config ``settings`` block."""
        return {
            "onlyCategories": self.only_categories,
            "locale": self.locale,
            "formFactor": self.form_factor,
            "screenEmulation": self.screen_emulation,
            "maxWaitForFcp": self.max_wait_for_fcp,
            "maxWaitForLoad": self.max_wait_for_load,
            "output": "json",
        }
