"""
Configuration module - base settings loaded from the environment.
"""

from common.config.base_settings import BaseAppSettings

__all__ = ["BaseAppSettings"]
