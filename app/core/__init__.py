"""
Core module initialization.
Exports configuration, logging utilities and application errors.
"""

from app.core.config import get_settings, Settings, EnvironmentMode
from app.core.exceptions import OrderingError

__all__ = ["get_settings", "Settings", "EnvironmentMode", "OrderingError"]
