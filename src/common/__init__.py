"""
Shared plumbing for budget-sync.

Modules:
- config: environment-backed settings for the local slot and remote store
- logs: structlog setup and logger factory
"""

__all__ = [
    "config",
    "logs",
]
