"""aiohttp dashboard and JSON API for URL Sentry."""

from .server_app import DashboardServer
from .server_config import DashboardConfig

__all__ = ["DashboardConfig", "DashboardServer"]
