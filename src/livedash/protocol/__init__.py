"""Wire format of the relay server's messages.

:mod:`messages` turns raw JSON text into typed message variants so the rest
of the application never handles untyped payloads.
"""

from .messages import (
    DashboardMessage,
    DataBatch,
    DeviceAnnounce,
    MalformedMessage,
    build_dashboard_hello,
    parse_message,
)

__all__ = [
    "DashboardMessage",
    "DataBatch",
    "DeviceAnnounce",
    "MalformedMessage",
    "build_dashboard_hello",
    "parse_message",
]
