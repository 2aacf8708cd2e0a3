"""Finding aggregation, remediation advice, and output contracts."""

from __future__ import annotations

from warden_orchestrator.reporting.aggregation import (
    filter_by_severity,
    group_by_source,
    highest_severity,
    merge,
    severity_counts,
    sort_by_severity,
)
from warden_orchestrator.reporting.contracts import (
    AbandonedPackage,
    NotificationChannel,
    ReportFormatter,
)
from warden_orchestrator.reporting.remediation import RemediationAdvisor, remediation_priorities

__all__ = [
    "AbandonedPackage",
    "NotificationChannel",
    "RemediationAdvisor",
    "ReportFormatter",
    "filter_by_severity",
    "group_by_source",
    "highest_severity",
    "merge",
    "remediation_priorities",
    "severity_counts",
    "sort_by_severity",
]
