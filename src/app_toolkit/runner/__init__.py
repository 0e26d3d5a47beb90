"""
CLI runner module.

Provides commands:
- init: Create or migrate the store
- status: Show the store path and applied migrations
- query: Run a raw read-only query
- init-config: Write a default config file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
