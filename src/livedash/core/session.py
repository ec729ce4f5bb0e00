"""Device discovery and single-device focus."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .models import Device

logger = logging.getLogger(__name__)


class SessionController:
    """Tracks announced devices plus the selected device and channel.

    Known devices keep their first-announced order (and name) for listing in
    the picker. Only the selected device's batches are admitted by the
    recording processor.
    """

    def __init__(self, default_channel: str | None = None) -> None:
        self._devices: Dict[str, Device] = {}
        self._selected: Optional[Device] = None
        self._selected_channel_id: Optional[str] = default_channel or None

    # ------------------------------------------------------------- discovery
    def announce(self, device: Device) -> bool:
        """Register ``device``; return ``True`` only for a previously unseen id."""
        if device.id in self._devices:
            return False
        self._devices[device.id] = device
        logger.info("Device initialization received: %s (%s)", device.id, device.name)
        return True

    def known_devices(self) -> List[Device]:
        return list(self._devices.values())

    # ------------------------------------------------------------- selection
    def select_device(self, device_id: str | None) -> Optional[Device]:
        """
        Focus the session on ``device_id``.

        An id that was never announced clears the selection, so nothing is
        admitted until a known device is picked.
        """
        device = self._devices.get(device_id) if device_id is not None else None
        if device is None and device_id is not None:
            logger.warning("Selected unknown device %r; no data will be admitted", device_id)
        self._selected = device
        logger.info("Selected device changed: %s", device)
        return device

    @property
    def selected_device(self) -> Optional[Device]:
        return self._selected

    @property
    def selected_device_id(self) -> Optional[str]:
        return self._selected.id if self._selected is not None else None

    def select_channel(self, channel_id: str | None) -> None:
        self._selected_channel_id = channel_id or None
        logger.info("Selected data ID changed: %s", channel_id)

    @property
    def selected_channel_id(self) -> Optional[str]:
        return self._selected_channel_id
