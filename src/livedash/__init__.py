"""LiveDash: streaming data-recording buffer for a live sensor dashboard."""

from .config import DashboardConfig, load_config
from .dashboard import DashboardCore

__all__ = ["DashboardConfig", "DashboardCore", "load_config"]

__version__ = "0.1.0"
