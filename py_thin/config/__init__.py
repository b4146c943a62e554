"""
Configuration for py-thin.
"""

from .config import Settings, settings

__all__ = ['Settings', 'settings']
