"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    tenant_id: str | None = None,
    admin_id: str | None = None,
    achievement_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict."""
    context: dict[str, Any] = {}
    if tenant_id:
        context["tenant_id"] = tenant_id
    if admin_id:
        context["admin_id"] = admin_id
    if achievement_id:
        context["achievement_id"] = achievement_id
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context


def mask_email(email: str | None) -> str:
    """Keep enough of an address to correlate log lines without exposing it."""
    if not email:
        return ""
    local, _, domain = email.partition("@")
    prefix = local[:3] if local else ""
    return f"{prefix}***@{domain}" if domain else f"{prefix}***"
