from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

JOB_DURATION = Histogram(
    "job_duration_seconds",
    "Background job duration",
    ["task", "status"],
)

RADIUS_SYNC_FAILURES = Counter(
    "radius_sync_failures_total",
    "Policy store synchronization failures swallowed on the CRUD path",
    ["operation"],
)

COA_REQUESTS = Counter(
    "radius_coa_requests_total",
    "CoA / Disconnect-Request packets sent to NAS devices",
    ["command", "outcome"],
)

LIFECYCLE_OUTCOMES = Counter(
    "subscriber_lifecycle_outcomes_total",
    "Subscriber lifecycle transitions performed by the scheduler",
    ["outcome"],
)


def observe_job(task_name: str, status: str, duration: float) -> None:
    JOB_DURATION.labels(task=task_name, status=status).observe(duration)


def record_sync_failure(operation: str) -> None:
    RADIUS_SYNC_FAILURES.labels(operation=operation).inc()


def record_coa(command: str, success: bool) -> None:
    COA_REQUESTS.labels(command=command, outcome="ack" if success else "failed").inc()


def record_lifecycle(outcome: str, count: int = 1) -> None:
    if count:
        LIFECYCLE_OUTCOMES.labels(outcome=outcome).inc(count)
