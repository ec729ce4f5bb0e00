"""Qt glue for embedding the dashboard core in a PySide6 application.

Only the non-visual :class:`DashboardController` lives here; plots and
layout belong to the hosting application, which connects to its signals and
polls :meth:`DashboardController.visible_samples` on its render timer.
"""

from .dashboard_controller import DashboardController

__all__ = ["DashboardController"]
