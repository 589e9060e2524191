from prometheus_client import Counter, Gauge, Histogram

# Fetching
FETCH_OUTCOMES_TOTAL = Counter(
    "livesync_fetch_outcomes_total",
    "Per-stream refresh outcomes (committed, stale, empty, failed).",
    ["stream", "outcome"],
)
FETCH_LATENCY_SECONDS = Histogram(
    "livesync_fetch_latency_seconds",
    "Latency of a single stream fetch against the data source.",
    ["stream"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

# Cycles
CYCLE_DURATION_SECONDS = Histogram(
    "livesync_cycle_duration_seconds",
    "Wall time of one refresh cycle across all streams.",
    buckets=(0.05, 0.1, 0.25, 0.5, 0.75, 1.0, 2.0),
)
CYCLE_OVERRUNS_TOTAL = Counter(
    "livesync_cycle_overruns_total",
    "Refresh cycles that took longer than the refresh period.",
)

# Store
LAST_COMMIT_TIMESTAMP = Gauge(
    "livesync_last_commit_timestamp_seconds",
    "Source timestamp (epoch seconds) of the latest committed snapshot.",
    ["stream"],
)

# Notifications
NOTIFY_ERRORS_TOTAL = Counter(
    "livesync_notify_errors_total",
    "Change notifications that failed to publish.",
)
