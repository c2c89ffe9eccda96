"""
Per-session usage and cost accounting.

Keeps an append-only ring of recent usage records and running totals per
session id. All figures are estimates derived from character counts and the
pricing table; nothing here talks to a billing API.
"""

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Deque, Dict, List, Optional

from .pricing import PRICING_TABLE, PricingTable, calculate_cost
from .token_counter import TokenEstimator, estimate_tokens, estimate_usage

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 1000


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record of a single tracked request.

    Records are never modified once created; the tracker only drops the
    oldest ones when its history ring is full.
    """
    session_id: str
    model: str
    input_tokens: int
    output_tokens: int
    cost: float
    timestamp: datetime
    cached: bool
    success: bool


@dataclass
class SessionMetrics:
    """Running totals for one session."""
    request_count: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    estimated_cost: float = 0.0
    cache_hits: int = 0
    cache_misses: int = 0
    failed_requests: int = 0

    def add(self, other: "SessionMetrics") -> None:
        self.request_count += other.request_count
        self.total_input_tokens += other.total_input_tokens
        self.total_output_tokens += other.total_output_tokens
        self.estimated_cost += other.estimated_cost
        self.cache_hits += other.cache_hits
        self.cache_misses += other.cache_misses
        self.failed_requests += other.failed_requests


class CostTracker:
    """In-memory usage ledger keyed by session id.

    Each method completes without suspending, so one instance can be shared
    by every in-flight request on the event loop.
    """

    def __init__(
        self,
        pricing: PricingTable = PRICING_TABLE,
        history_size: int = DEFAULT_HISTORY_SIZE,
        estimator: TokenEstimator = estimate_tokens,
    ):
        """Initialize the tracker.

        Args:
            pricing: Pricing table used for cost estimates
            history_size: Maximum number of usage records retained
            estimator: Text -> token count function

        Raises:
            ValueError: If history_size < 1
        """
        if history_size < 1:
            raise ValueError("history_size must be >= 1")
        self.pricing = pricing
        self.history_size = history_size
        self._estimator = estimator
        self._sessions: Dict[str, SessionMetrics] = {}
        self._history: Deque[UsageRecord] = deque(maxlen=history_size)

    def track_request(
        self,
        session_id: str,
        model: str,
        prompt: str,
        response_text: Optional[str],
        cached: bool = False,
        success: bool = True,
    ) -> UsageRecord:
        """Record one request and update the session totals.

        Cached requests are recorded with zero cost whatever their token
        estimate.

        Args:
            session_id: Session the request belongs to
            model: Model identifier
            prompt: Prompt text sent (or that would have been sent)
            response_text: Generated text, or None on failure / image-only output
            cached: Whether the result was served from cache
            success: Whether the request succeeded

        Returns:
            The appended usage record
        """
        model_name = getattr(model, "value", model)
        usage = estimate_usage(prompt, response_text, self._estimator)
        cost = 0.0 if cached else calculate_cost(model_name, usage, self.pricing)

        metrics = self._sessions.get(session_id)
        if metrics is None:
            metrics = SessionMetrics()
            self._sessions[session_id] = metrics

        metrics.request_count += 1
        metrics.total_input_tokens += usage.prompt_tokens
        metrics.total_output_tokens += usage.completion_tokens
        metrics.estimated_cost += cost
        if cached:
            metrics.cache_hits += 1
        else:
            metrics.cache_misses += 1
        if not success:
            metrics.failed_requests += 1

        record = UsageRecord(
            session_id=session_id,
            model=model_name,
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.completion_tokens,
            cost=cost,
            timestamp=datetime.now(),
            cached=cached,
            success=success,
        )
        self._history.append(record)

        logger.info(
            "Cost Tracking: %s | Tokens: %d->%d | Cost: $%.6f | Cached: %s | Success: %s",
            model_name,
            usage.prompt_tokens,
            usage.completion_tokens,
            cost,
            cached,
            success,
        )
        return record

    def get_session_metrics(self, session_id: str) -> Optional[SessionMetrics]:
        """Return a snapshot of a session's totals, or None if never seen."""
        metrics = self._sessions.get(session_id)
        return replace(metrics) if metrics is not None else None

    def get_aggregate_metrics(self) -> SessionMetrics:
        """Sum every session's totals; computed on demand."""
        aggregate = SessionMetrics()
        for metrics in self._sessions.values():
            aggregate.add(metrics)
        return aggregate

    def get_request_history(self, limit: int = 100) -> List[UsageRecord]:
        """Return up to ``limit`` most recent records, oldest first."""
        if limit <= 0:
            return []
        return list(self._history)[-limit:]

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()
        self._history.clear()
        logger.info("Cost tracking data cleared")

    def clear_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        logger.debug("Session metrics cleared: %s", session_id)

    def export_metrics(self) -> str:
        """Export aggregate, per-session and recent request data as JSON."""
        payload = {
            "aggregate": asdict(self.get_aggregate_metrics()),
            "sessions": [
                {"session_id": session_id, **asdict(metrics)}
                for session_id, metrics in self._sessions.items()
            ],
            "recent_requests": [asdict(record) for record in self.get_request_history(50)],
        }
        return json.dumps(payload, indent=2, default=str)
