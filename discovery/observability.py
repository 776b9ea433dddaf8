"""
Session Audit and Metrics
=========================

RESPONSIBILITY: Record session events, agent failures, invariant
violations and counters.
OUTPUTS: AuditLog, MetricsCollector

NON-GOALS:
==========
- Modify session or canvas behavior
- Drop or rewrite entries once recorded
- Feed back into session decisions

BOUNDARY ENFORCEMENT:
=====================
- Entries are frozen; collectors are append-only
- Read access returns copies
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from canvas.contracts import Error


class AuditEventType(Enum):
    """Category of an audit entry."""
    STATUS = "status"
    STORE_MUTATION = "store_mutation"
    AGENT_CALL = "agent_call"
    AGENT_FAILURE = "agent_failure"
    INVARIANT_VIOLATION = "invariant_violation"
    INTERACTION = "interaction"
    SYSTEM = "system"


@dataclass(frozen=True)
class AuditLogEntry:
    """One sequenced audit record with string metadata."""
    sequence: int
    event_type: AuditEventType
    timestamp: datetime
    action: str
    entity_id: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def get(self, key: str) -> Optional[str]:
        for k, v in self.metadata:
            if k == key:
                return v
        return None


class AuditLog:
    """
    Append-only audit log of one discovery session.
    """

    def __init__(self):
        self._entries: List[AuditLogEntry] = []

    def record(
        self,
        event_type: AuditEventType,
        action: str,
        entity_id: Optional[str] = None,
        **metadata: str
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            sequence=len(self._entries),
            event_type=event_type,
            timestamp=datetime.now(timezone.utc),
            action=action,
            entity_id=entity_id,
            metadata=tuple(sorted((k, str(v)) for k, v in metadata.items()))
        )
        self._entries.append(entry)
        return entry

    def record_error(self, error: Error) -> AuditLogEntry:
        """Record a rejected mutation or other invariant violation."""
        return self.record(
            AuditEventType.INVARIANT_VIOLATION,
            error.code.name,
            message=error.message,
            **dict(error.context)
        )

    def get_entries(self, event_type: Optional[AuditEventType] = None) -> List[AuditLogEntry]:
        """Get entries, optionally filtered by type."""
        if event_type is None:
            return list(self._entries)
        return [e for e in self._entries if e.event_type == event_type]

    @property
    def entry_count(self) -> int:
        return len(self._entries)


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

AGENT_CALLS = "agent_calls_total"
AGENT_FAILURES = "agent_failures_total"
STORE_MUTATIONS = "store_mutations_total"
INVARIANT_VIOLATIONS = "invariant_violations_total"
AGENT_LATENCY_MS = "agent_latency_ms"


@dataclass(frozen=True)
class MetricPoint:
    """One labelled observation of a metric."""
    metric_name: str
    value: float
    timestamp: datetime
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


class MetricsCollector:
    """
    Append-only metric points with counter and aggregate views.
    """

    def __init__(self):
        self._metrics: Dict[str, List[MetricPoint]] = {}

    def record(self, metric_name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """Append one observation."""
        label_pairs = tuple(sorted(labels.items())) if labels else ()
        point = MetricPoint(
            metric_name=metric_name,
            value=value,
            timestamp=datetime.now(timezone.utc),
            labels=label_pairs
        )
        self._metrics.setdefault(metric_name, []).append(point)

    def increment(self, metric_name: str, labels: Optional[Dict[str, str]] = None):
        self.record(metric_name, 1.0, labels)

    def get_metric(self, metric_name: str) -> List[MetricPoint]:
        return list(self._metrics.get(metric_name, []))

    def total(self, metric_name: str) -> float:
        return sum(p.value for p in self._metrics.get(metric_name, []))

    def compute_aggregates(self, metric_name: str) -> Dict[str, float]:
        """count, sum, min, max and avg of a metric; empty when unseen."""
        values = [p.value for p in self._metrics.get(metric_name, [])]
        if not values:
            return {}
        return {
            'count': len(values),
            'sum': sum(values),
            'min': min(values),
            'max': max(values),
            'avg': sum(values) / float(len(values)),
        }

    def snapshot(self) -> Dict[str, float]:
        """Totals of every metric."""
        return {name: self.total(name) for name in self._metrics}
