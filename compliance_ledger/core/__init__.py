"""
Core configuration and logging.

Usage:
    from compliance_ledger.core import settings, configure_logging
"""

from compliance_ledger.core.config import Settings, get_settings, settings
from compliance_ledger.core.logging import configure_logging

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "configure_logging",
]
