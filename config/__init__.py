"""Configuration package for the interview orchestrator."""
from .llm_routes import AppConfig, LlmRoute, load_config, load_route, resolve_route
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_config",
    "load_route",
    "resolve_route",
    "Settings",
    "settings",
]
