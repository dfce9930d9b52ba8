"""Configuration module for multipersona."""
from multipersona.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
