from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST

# Counters
scan_jobs_total = Counter(
    "scan_jobs_total",
    "Total number of scan pipelines run",
    ["status"],
)
discovery_runs_total = Counter(
    "discovery_runs_total",
    "Total number of discovery runs by outcome",
    ["outcome"],
)
pages_collected_total = Counter(
    "pages_collected_total",
    "Total number of pages visited by the collector",
    ["status"],
)
flow_syntheses_total = Counter(
    "flow_syntheses_total",
    "Total number of flow artifacts synthesized",
)

# Histograms
discovery_phase_duration_seconds = Histogram(
    "discovery_phase_duration_seconds",
    "Time spent in each discovery phase",
    ["phase"],
    buckets=[1, 5, 15, 30, 60, 120, 300, 900, 1800],
)
page_collect_duration_seconds = Histogram(
    "page_collect_duration_seconds",
    "Time spent collecting context for a single page",
    buckets=[0.5, 1, 2, 5, 10, 30],
)

# Gauges
engine_instances_active = Gauge(
    "engine_instances_active",
    "Number of discovery engine containers currently running",
)
active_browser_sessions = Gauge(
    "active_browser_sessions",
    "Number of currently open browser sessions",
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
