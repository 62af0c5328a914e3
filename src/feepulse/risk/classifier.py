"""Collection risk classification for the dashboard suggestion banner."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from feepulse.records.coerce import safe_text, to_amount
from feepulse.risk.stats import AggregateStats, CollectionTrend

HEALTHY = "healthy"
WARNING = "warning"
DANGER = "danger"

ADMIN_ROLES = {"admin", "administrator", "owner"}


@dataclass(frozen=True)
class RiskThresholds:
    danger_pending_percent: float = 25.0
    danger_collection_rate: float = 70.0
    warning_pending_min: float = 15.0
    warning_pending_max: float = 25.0
    warning_rate_min: float = 70.0
    warning_rate_max: float = 85.0
    healthy_pending_max: float = 15.0
    healthy_rate_min: float = 85.0
    all_clear_rate: float = 95.0
    growth_rate_min: float = 80.0

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "RiskThresholds":
        risk_cfg = cfg.get("risk") or {}
        overrides = risk_cfg.get("thresholds") or {}
        if not isinstance(overrides, dict):
            raise ValueError("risk.thresholds must be a mapping.")
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown risk thresholds: {sorted(unknown)}")
        return cls(**{key: float(value) for key, value in overrides.items()})


@dataclass(frozen=True)
class RiskClassification:
    level: str
    icon: str
    message: str


ADMIN_MESSAGES = {
    "all_clear": (
        "Excellent! All fees are up to date. Great collection performance. "
        "Consider focusing on student engagement and academic planning."
    ),
    DANGER: "Collections at risk. Pending fees are high. Immediate follow-ups required to protect cash flow.",
    WARNING: (
        "Collections are stable, but pending dues are increasing. "
        "Prioritize follow-ups on high-value pending payments."
    ),
    HEALTHY: "Collection performance is healthy. Maintain current follow-up consistency.",
}

STAFF_MESSAGES = {
    DANGER: "Urgent: High pending fees require immediate follow-ups.",
    WARNING: "Monitor pending dues and prioritize follow-ups.",
    HEALTHY: "Collections are healthy. Maintain follow-up consistency.",
}

ADMIN_GROWTH_NOTE = " Strong month-on-month growth observed."
STAFF_GROWTH_NOTE = " Good month-over-month growth."


def _rule(pending: float, rate: float, t: RiskThresholds) -> tuple[str, str, str]:
    """Return (level, icon, admin message key); first matching rule wins."""
    if pending <= 0 and rate >= t.all_clear_rate:
        return HEALTHY, "🎉", "all_clear"
    if pending > t.danger_pending_percent or rate < t.danger_collection_rate:
        return DANGER, "⚠️", DANGER
    if (
        t.warning_pending_min <= pending <= t.warning_pending_max
        and t.warning_rate_min <= rate <= t.warning_rate_max
    ):
        return WARNING, "⚠️", WARNING
    if pending < t.healthy_pending_max and rate >= t.healthy_rate_min:
        return HEALTHY, "✅", HEALTHY
    return HEALTHY, "✅", HEALTHY


def classify(
    stats: AggregateStats,
    trend: Optional[CollectionTrend] = None,
    role: str = "admin",
    thresholds: Optional[RiskThresholds] = None,
) -> RiskClassification:
    """Classify collection risk and render the message for the viewer's role."""
    t = thresholds or RiskThresholds()
    pending = to_amount(getattr(stats, "pending_percent", 0.0))
    rate = to_amount(getattr(stats, "collection_rate_percent", 0.0))

    if to_amount(getattr(stats, "total_fees", 0.0)) <= 0:
        # No fees on record means no risk signal, not a collapse in collections.
        level, icon, key = HEALTHY, "✅", HEALTHY
    else:
        level, icon, key = _rule(pending, rate, t)
    growing = trend is not None and trend.is_growing and rate >= t.growth_rate_min

    if safe_text(role).lower() in ADMIN_ROLES:
        message = ADMIN_MESSAGES[key] + (ADMIN_GROWTH_NOTE if growing else "")
    else:
        message = STAFF_MESSAGES[level] + (STAFF_GROWTH_NOTE if growing else "")
    return RiskClassification(level=level, icon=icon, message=message)


def collection_health(rate: float) -> str:
    rate = to_amount(rate)
    if rate >= 85:
        return "Excellent"
    if rate >= 75:
        return "Strong"
    if rate >= 65:
        return "Good"
    if rate >= 50:
        return "Fair"
    return "Needs Attention"


def collection_next_steps(rate: float, overdue_count: int, pending_fees: float) -> str:
    """Suggested follow-up line shown under the collection rate card."""
    rate = to_amount(rate)
    if overdue_count > 0:
        return f"Action Needed: Fees overdue for {overdue_count} students. Contact parents immediately."
    if to_amount(pending_fees) <= 0:
        return (
            "Great job! All fees are up to date. Consider these next steps: "
            "Review student progress, plan upcoming events, or update student records."
        )
    if rate >= 95:
        return "Maintain current strategy - excellent collection rate!"
    if rate >= 85:
        return "Continue monitoring, reach out to remaining students."
    if rate >= 70:
        return "Send reminder messages to parents with pending fees."
    return "Consider reaching out to parents with pending fees to maintain good collection rates."
