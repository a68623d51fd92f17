"""Configuration management for the settlement engine."""

from wallstreet.config.loader import load_config
from wallstreet.config.models import AppConfig, Environment

__all__ = ["AppConfig", "Environment", "load_config"]
