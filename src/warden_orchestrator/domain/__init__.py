"""Domain value types shared by every component: severities, findings, remediations."""

from __future__ import annotations

from warden_orchestrator.domain.findings import Finding, Remediation, RemediationPriority
from warden_orchestrator.domain.severity import AnnotationLevel, Severity

__all__ = [
    "AnnotationLevel",
    "Finding",
    "Remediation",
    "RemediationPriority",
    "Severity",
]
