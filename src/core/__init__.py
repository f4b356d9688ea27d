"""
Core Module - Process-wide plumbing shared by the API and the CLI.

Components:
- logs: loguru sink configuration
"""

from src.core.logs import setup_logging

__all__ = ["setup_logging"]
