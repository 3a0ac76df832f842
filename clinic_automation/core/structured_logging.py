"""Structured logging helpers (PHI-safe)."""

from typing import Any


def build_log_context(
    *,
    job: str | None = None,
    rule_id: str | None = None,
    target_id: str | None = None,
    case_id: str | None = None,
    route: str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict (ids only, never names or phones)."""
    context: dict[str, Any] = {}
    if job:
        context["job"] = job
    if rule_id:
        context["rule_id"] = str(rule_id)
    if target_id:
        context["target_id"] = str(target_id)
    if case_id:
        context["case_id"] = str(case_id)
    if route:
        context["route"] = route
    return context
