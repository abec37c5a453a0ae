from prometheus_client import Counter, Histogram

api_request_latency_seconds = Histogram(
    "api_request_latency_seconds",
    "API request latency in seconds",
    ["route", "method", "status"],
)

monitoring_runs_total = Counter(
    "monitoring_runs_total",
    "Per-tenant monitoring runs",
    ["frequency", "outcome"],
)

monitoring_gather_failures_total = Counter(
    "monitoring_gather_failures_total",
    "Data-gather failures per category",
    ["category"],
)

alerts_triggered_total = Counter(
    "alerts_triggered_total",
    "Alerts created by the monitoring scheduler",
    ["alert_type", "severity"],
)

alerts_deduplicated_total = Counter(
    "alerts_deduplicated_total",
    "Alerts skipped because the same period already fired",
    ["alert_type"],
)

notifications_sent_total = Counter(
    "notifications_sent_total",
    "Notification delivery attempts",
    ["channel", "success"],
)

tool_dispatch_total = Counter(
    "tool_dispatch_total",
    "Agent tool dispatches",
    ["tool", "parsed"],
)

llm_request_latency_seconds = Histogram(
    "llm_request_latency_seconds",
    "LLM completion latency in seconds",
    ["model"],
)
