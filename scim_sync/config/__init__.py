"""Configuration module for the SCIM sync service."""
from .settings import AppConfig, get_settings, load_settings, load_provider_file

__all__ = ["AppConfig", "get_settings", "load_settings", "load_provider_file"]
