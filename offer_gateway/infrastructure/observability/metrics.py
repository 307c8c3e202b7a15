"""Prometheus metrics for offer transitions, payment recomputation, reminders and notifications"""

from prometheus_client import Counter, Histogram

# Offer lifecycle metrics
offer_transition_counter = Counter(
    "offer_transitions_total",
    "Offer lifecycle transitions",
    ["transition"],  # create | accept | assign | allocate | reject | cancel | reactivate | resolve
)

offer_conflict_counter = Counter(
    "offer_conflicts_total",
    "Offer updates rejected because a concurrent writer changed the offer first",
)

concern_counter = Counter(
    "offer_concerns_total",
    "Concern thread activity",
    ["action"],  # raised | resolved
)

# Next payment metrics
next_payment_recompute_counter = Counter(
    "next_payment_recomputes_total",
    "Next payment recomputations",
    ["outcome"],  # pending | settled
)

reminder_counter = Counter(
    "payment_reminders_total",
    "Payment reminders selected",
    ["threshold_days"],
)

# Collaborator metrics
ledger_failure_counter = Counter(
    "ledger_query_failures_total",
    "Failed ledger total lookups",
)

notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(transition: str) -> None:
    offer_transition_counter.labels(transition=transition).inc()


def record_recompute(settled: bool) -> None:
    """Record whether a recompute left a balance pending or settled the offer"""
    next_payment_recompute_counter.labels(outcome="settled" if settled else "pending").inc()


def record_reminder(threshold_days: int) -> None:
    reminder_counter.labels(threshold_days=str(threshold_days)).inc()
