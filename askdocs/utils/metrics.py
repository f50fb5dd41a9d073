"""Prometheus metrics for the ask and ingest pipelines."""

from prometheus_client import Counter, Histogram

# Retrieval metrics
retrieval_outcomes_total = Counter(
    "retrieval_outcomes_total",
    "Retrieval outcomes (results, empty, no_documents, security_violation)",
    ["outcome"],
)

# Generation metrics
answer_tier_total = Counter(
    "answer_tier_total",
    "Answers produced per generation tier",
    ["tier"],
)

answer_tier_failures_total = Counter(
    "answer_tier_failures_total",
    "Generation tier attempts that produced nothing usable",
    ["tier"],
)

# Embedding metrics
embedding_errors_total = Counter(
    "embedding_errors_total",
    "Embedding backend failures",
    ["phase"],
)

# Ingest metrics
ingest_chunks_total = Counter(
    "ingest_chunks_total",
    "Chunks handled during ingest",
    ["status"],
)

ask_latency_ms = Histogram(
    "ask_latency_ms",
    "End-to-end ask latency in milliseconds",
    ["outcome"],
    buckets=[50, 100, 250, 500, 1000, 2000, 4000, 8000, 16000],
)


class PrometheusPipelineMetrics:
    """Prometheus-based pipeline metrics implementation."""

    def inc_retrieval(self, outcome: str) -> None:
        """Increment retrieval outcome counter."""
        retrieval_outcomes_total.labels(outcome=outcome).inc()

    def inc_answer_tier(self, tier: str) -> None:
        """Increment counter for the tier that produced the answer."""
        answer_tier_total.labels(tier=tier).inc()

    def inc_tier_failure(self, tier: str) -> None:
        """Increment counter for an unusable tier attempt."""
        answer_tier_failures_total.labels(tier=tier).inc()

    def inc_embedding_error(self, phase: str, count: int = 1) -> None:
        """Increment embedding error counter (phase is "ingest" or "query")."""
        embedding_errors_total.labels(phase=phase).inc(count)

    def inc_ingest_chunks(self, status: str, count: int = 1) -> None:
        """Increment ingest chunk counter."""
        if count:
            ingest_chunks_total.labels(status=status).inc(count)

    def record_ask_latency(self, outcome: str, latency_ms: float) -> None:
        """Record end-to-end ask latency."""
        ask_latency_ms.labels(outcome=outcome).observe(latency_ms)
