"""
Synapse Discovery Application

Responsibility:
Agent-driven discovery flows over the canvas core, with configuration,
audit / metrics collection and an HTTP host.
"""

from .config import DiscoveryConfig, ProviderConfig, CanvasConfig
from .observability import AuditLog, AuditLogEntry, AuditEventType, MetricsCollector, MetricPoint
from .session import DiscoverySession, ExpertDefinition, AVAILABLE_EXPERTS

__all__ = [
    'DiscoveryConfig', 'ProviderConfig', 'CanvasConfig',
    'AuditLog', 'AuditLogEntry', 'AuditEventType', 'MetricsCollector', 'MetricPoint',
    'DiscoverySession', 'ExpertDefinition', 'AVAILABLE_EXPERTS',
]
