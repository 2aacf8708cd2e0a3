"""
warden-orchestrator package root.

Purpose
- Orchestration core for pluggable security audit tasks: dependency
  resolution, plugin registry with dependency-ordered activation, cached
  parallel execution, and severity-ranked finding aggregation.

Import boundary
- Importing the package must not configure logging or load configuration.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
