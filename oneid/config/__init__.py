"""Configuration module for the OneID console."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
