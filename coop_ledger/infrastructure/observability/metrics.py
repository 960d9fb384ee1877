"""Prometheus metrics for monitoring interest postings, payments, loan decisions and notifications"""

from decimal import Decimal
from prometheus_client import Counter, Histogram

# Interest metrics
interest_posted_counter = Counter(
    "coop_interest_postings_total",
    "Interest postings applied to member accounts",
)

interest_amount_counter = Counter(
    "coop_interest_charged_amount_total",
    "Total interest charged across all members",
)

# Payment metrics
payment_counter = Counter(
    "coop_payments_total",
    "Loan payments processed",
    ["component"],  # interest | principal
)

payment_amount_counter = Counter(
    "coop_payment_amount_total",
    "Amount applied by payments",
    ["component"],  # interest | principal
)

# Loan application metrics
loan_decision_counter = Counter(
    "coop_loan_decision_total",
    "Loan application decisions",
    ["outcome"],  # approved | rejected
)

stale_update_counter = Counter(
    "coop_stale_member_updates_total",
    "Member updates rejected because the record changed since it was read",
)

# Notification metrics
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


def record_interest_posted(total_interest: Decimal) -> None:
    interest_posted_counter.inc()
    interest_amount_counter.inc(float(total_interest))


def record_payment(interest_paid: Decimal, principal_paid: Decimal) -> None:
    """Record each non-zero component of a payment split"""
    for component, amount in (("interest", interest_paid), ("principal", principal_paid)):
        if amount > 0:
            payment_counter.labels(component=component).inc()
            payment_amount_counter.labels(component=component).inc(float(amount))


def record_loan_decision(approved: bool) -> None:
    loan_decision_counter.labels(outcome="approved" if approved else "rejected").inc()
