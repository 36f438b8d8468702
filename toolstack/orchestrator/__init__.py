"""
ToolStack Orchestrator Module
=============================

Operational entry points around the sync pipeline.

Components:
    - setup_logging: Console/JSON logging setup
    - SyncScheduler: Daily trigger for the bulk resync endpoints
    - CLI: Command-line interface (python -m toolstack.orchestrator.cli)
"""

from .logging_config import ContextFormatter, JSONFormatter, setup_logging
from .scheduler import RunHistory, SyncScheduler

__all__ = [
    "ContextFormatter",
    "JSONFormatter",
    "setup_logging",
    "RunHistory",
    "SyncScheduler",
]
