"""Approval workflow counters, registered once per process."""
from prometheus_client import Counter, Histogram

metrics = {
    "approvals_created_total": Counter(
        "approvals_created_total",
        "Count of approvals created by action type and review mode",
        ["action_type", "mode"],
    ),
    "approvals_decisions_total": Counter(
        "approvals_decisions_total",
        "Count of approval decisions by resulting status",
        ["status"],
    ),
    "approvals_executions_total": Counter(
        "approvals_executions_total",
        "Count of executor runs by action type and outcome",
        ["action_type", "outcome"],
    ),
    "approvals_expired_total": Counter(
        "approvals_expired_total",
        "Count of pending approvals transitioned to expired",
    ),
    "approvals_review_latency_seconds": Histogram(
        "approvals_review_latency_seconds",
        "Latency from creation to human decision",
        buckets=(60, 300, 900, 3600, 4 * 3600, 24 * 3600, 3 * 24 * 3600, 7 * 24 * 3600),
    ),
}
