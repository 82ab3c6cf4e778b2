"""Query execution metrics."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class QueryMetrics:
    """Counters for one execution coordinator."""
    executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    cache_hits: int = 0
    stale_cache_hits: int = 0
    skipped_unfiltered: int = 0
    superseded_responses: int = 0
    total_time: float = 0.0
    total_server_ms: float = 0.0
    last_executed: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        return (self.successful_executions / self.executions * 100) if self.executions > 0 else 0.0

    @property
    def average_time(self) -> float:
        """Average round-trip time in seconds."""
        return self.total_time / self.executions if self.executions > 0 else 0.0

    @property
    def average_server_ms(self) -> float:
        """Average executionMs reported by the service for successful queries."""
        return self.total_server_ms / self.successful_executions if self.successful_executions > 0 else 0.0

    def record_execution(self, elapsed: float, success: bool = True, server_ms: float = 0.0) -> None:
        """Record one query round trip."""
        self.executions += 1
        self.total_time += elapsed
        self.last_executed = datetime.now()
        if success:
            self.successful_executions += 1
            self.total_server_ms += server_ms
        else:
            self.failed_executions += 1
        logger.debug(f"Recorded query execution: {elapsed:.3f}s (success: {success})")

    def record_cache_hit(self, stale: bool = False) -> None:
        if stale:
            self.stale_cache_hits += 1
        else:
            self.cache_hits += 1

    def record_skipped(self) -> None:
        self.skipped_unfiltered += 1

    def record_superseded(self) -> None:
        self.superseded_responses += 1

    def get_summary(self) -> Dict[str, Any]:
        """Get summary of all metrics."""
        return {
            "executions": self.executions,
            "successful_executions": self.successful_executions,
            "failed_executions": self.failed_executions,
            "success_rate": self.success_rate,
            "average_time": self.average_time,
            "average_server_ms": self.average_server_ms,
            "cache_hits": self.cache_hits,
            "stale_cache_hits": self.stale_cache_hits,
            "skipped_unfiltered": self.skipped_unfiltered,
            "superseded_responses": self.superseded_responses,
            "last_executed": self.last_executed.isoformat() if self.last_executed else None,
        }
