"""
Core utilities and configuration for json_fields.

This package provides the settings model and logging configuration shared by
the metadata, converter and change tracking modules.
"""

from json_fields.core.config import Settings, get_settings
from json_fields.core.logging_config import get_logger, setup_logging

__all__ = ["Settings", "get_logger", "get_settings", "setup_logging"]
