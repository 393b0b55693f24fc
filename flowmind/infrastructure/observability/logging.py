import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    service_name: str = "flowmind"
) -> None:
    """Setup structured logging configuration"""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add processing context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    # Set per task by the engine while a thought is in flight
    context = structlog.contextvars.get_contextvars()
    for key in ("thought_id", "root_id"):
        if key in context and key not in event_dict:
            event_dict[key] = context[key]

    return event_dict


class EngineLogger:
    """Structured events for engine activity"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_tool_execution(
        self,
        tool_name: str,
        thought_id: str,
        action: str,
        rule_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        self.logger.info(
            "tool_execution",
            tool_name=tool_name,
            thought_id=thought_id,
            action=action,
            rule_id=rule_id,
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_status_transition(
        self,
        thought_id: str,
        from_status: str,
        to_status: str,
        reason: Optional[str] = None,
        retries: Optional[int] = None
    ):
        self.logger.info(
            "status_transition",
            thought_id=thought_id,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            retries=retries
        )


engine_logger = EngineLogger("flowmind.engine")


class LatencyStats:
    __slots__ = ("count", "total", "low", "high")

    def __init__(self):
        self.count = 0
        self.total = 0.0
        self.low: Optional[float] = None
        self.high = 0.0

    def add(self, duration_ms: float):
        self.count += 1
        self.total += duration_ms
        self.low = duration_ms if self.low is None else min(self.low, duration_ms)
        self.high = max(self.high, duration_ms)

    def as_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg": self.total / self.count if self.count else 0.0,
            "min": self.low or 0.0,
            "max": self.high,
        }


class MetricsCollector:
    """In-process counters (thought outcomes, fallbacks, responses) and tool latencies"""

    def __init__(self):
        self.counters: Dict[str, int] = {}
        self.latencies: Dict[str, LatencyStats] = {}

    def record_latency(self, operation: str, duration_ms: float):
        self.latencies.setdefault(operation, LatencyStats()).add(duration_ms)
        engine_logger.logger.debug("metric", metric_type="latency", operation=operation, duration_ms=duration_ms)

    def increment_counter(self, name: str, value: int = 1):
        self.counters[name] = self.counters.get(name, 0) + value
        engine_logger.logger.debug("metric", metric_type="counter", name=name, value=value)

    def get_counter(self, name: str) -> int:
        return self.counters.get(name, 0)

    def get_metrics_summary(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = dict(self.counters)
        for operation, stats in self.latencies.items():
            summary[f"latency.{operation}"] = stats.as_dict()
        return summary

    def reset(self):
        self.counters.clear()
        self.latencies.clear()


# Global metrics collector
metrics = MetricsCollector()
