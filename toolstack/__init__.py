"""
ToolStack Sync
==============

Keeps the developer-tools directory's search indexes in step with the
primary store and answers chat questions grounded on the indexed tools.

Subpackages:
    - data: configuration, domain models, source store access
    - rag: embedding/completion clients, vector and text index adapters, chatbot
    - sync: normalizer, incremental and bulk synchronization
    - notifications: Telegram sink for sync reports
    - orchestrator: logging, scheduler, CLI
    - api: FastAPI application
"""

__version__ = "0.3.0"
