from prometheus_client import Counter, Gauge, Histogram

GATEWAY_CALLS = Counter(
    "storefront_gateway_calls_total",
    "Backend gateway calls",
    ["operation", "outcome"],  # ok | not_found | unauthorized | rejected | transient | malformed
)

GATEWAY_LATENCY = Histogram(
    "storefront_gateway_call_duration_seconds",
    "Backend gateway call latency",
    ["operation"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

QUERY_FETCHES = Counter(
    "storefront_query_fetches_total",
    "Query cache fetches",
    ["resource", "outcome"],  # success | error | discarded
)

ACTIVE_POLLERS = Gauge(
    "storefront_active_pollers",
    "Resources currently refreshed on an interval",
)

MUTATIONS = Counter(
    "storefront_mutations_total",
    "Mutations run through the storefront",
    ["mutation", "outcome"],  # success | error
)
