"""Subscription plans and their limits."""

from __future__ import annotations

from dataclasses import dataclass

MB = 1024 * 1024


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    price: float
    dte_limit: int
    zip_limit_bytes: int
    gmail_limit: int


PLANS: dict[str, Plan] = {
    "personal": Plan("personal", "Plan A (Personal)", 6.99, 100, 100 * MB, 1),
    "negocio": Plan("negocio", "Plan B (Negocio)", 9.99, 250, 250 * MB, 2),
    "pro": Plan("pro", "Plan C (Pro)", 14.99, 800, 500 * MB, 4),
}


def get_plan(plan_id: str | None) -> Plan:
    """Unknown or missing plan ids fall back to the personal plan."""
    return PLANS.get((plan_id or "").lower(), PLANS["personal"])


def remaining_dtes(plan: Plan, used: int) -> int:
    return max(plan.dte_limit - used, 0)


class QuotaExceededError(RuntimeError):
    """Raised when a plan does not allow another package."""
