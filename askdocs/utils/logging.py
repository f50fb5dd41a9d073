"""Structured logging for pipeline stages."""

import logging
from typing import Any

logger = logging.getLogger(__name__)

_QUIET_OUTCOMES = ("success", "results", "cache_hit", "empty", "no_documents")


class StructuredPipelineLogger:
    """Structured logger for ask/ingest pipeline stages."""

    def log_stage(
        self,
        request_id: str,
        stage: str,
        outcome: str,
        latency_ms: float,
        **fields: Any,
    ) -> None:
        """Log one pipeline stage with structured data."""
        log_data: dict[str, Any] = {
            "request_id": request_id,
            "stage": stage,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }
        log_data.update(fields)

        log_msg = f"Pipeline stage: {stage} - {outcome}"

        if outcome == "security_violation":
            logger.error(log_msg, extra={"structured": log_data})
        elif outcome in _QUIET_OUTCOMES:
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
