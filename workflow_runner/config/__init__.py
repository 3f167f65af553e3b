"""Configuration management."""

from workflow_runner.config.settings import EngineSettings, Environment, Settings, get_settings

__all__ = ["EngineSettings", "Environment", "Settings", "get_settings"]
