"""Core: config, limiter, lifespan and exception handlers."""

from ruleflow.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
