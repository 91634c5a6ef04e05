"""Composed dashboard server class."""

from __future__ import annotations

from .server_config import DashboardConfig
from .server_core import DashboardServerCoreMixin
from .server_history import DashboardServerHistoryMixin
from .server_pages import DashboardServerPagesMixin
from .server_request import DashboardServerRequestMixin
from .server_routes import DashboardServerRoutesMixin
from .server_scans import DashboardServerScansMixin


class DashboardServer(
    DashboardServerCoreMixin,
    DashboardServerRequestMixin,
    DashboardServerScansMixin,
    DashboardServerHistoryMixin,
    DashboardServerPagesMixin,
    DashboardServerRoutesMixin,
):
    """Dashboard server composed from mixins."""


__all__ = ["DashboardConfig", "DashboardServer"]
