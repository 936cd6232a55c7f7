"""
Config module - Settings and MovieLens constants
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
