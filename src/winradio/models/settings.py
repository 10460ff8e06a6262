"""
Live settings for one receiver and the registry that hands them out.

A Settings record mirrors confirmed hardware state. Only the Radio protocol
layer writes the ``cur_*`` fields, and only after the device acknowledged
the change.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .radio_info import RADIO_INFO_SIZE, RadioInfo

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Mutable per-receiver state."""
    device_name: str = ""
    is_serial: bool = True
    is_in_use: bool = False

    # Frequency bookkeeping; stored, not tuned
    freq: int = 0
    wanted_freq: float = 0.0
    if_xover_freq: float = 0.0
    freq_error: int = 0
    actual_freq: int = 0
    ref_freq: int = 0

    # Confirmed hardware state; None until the device has confirmed a value
    cur_power: Optional[bool] = None
    cur_volume: int = 0
    cur_mode: int = 0
    cur_bfo: int = 0
    cur_attenuation: Optional[bool] = None
    cur_muted: Optional[bool] = None
    cur_agc: Optional[bool] = None
    cur_if_shift: int = 0
    cur_if_gain: int = 0
    init_volume: bool = False

    # Mute intent and the confirmed state before the last mute change
    want_muted: bool = False
    last_muted: Optional[bool] = None

    info: RadioInfo = field(default_factory=RadioInfo)
    _info_populated: bool = field(default=False, repr=False)

    @property
    def info_populated(self) -> bool:
        return self._info_populated

    def populate_info(self, info: RadioInfo) -> None:
        """
        Store the capability snapshot discovered for this receiver.

        The snapshot is set once per record.

        Raises:
            ValueError: If a snapshot was already stored
        """
        if self._info_populated:
            raise ValueError(f"Capability snapshot for {self.device_name!r} already populated")
        self.info = info
        self._info_populated = True
        logger.debug(f"Capability snapshot stored for {self.device_name}: {info.model_name}")

    def capability_snapshot(self, expected_size: int = RADIO_INFO_SIZE) -> RadioInfo:
        """
        Return the capability snapshot negotiated to the caller's size.

        The returned record's size tag equals ``expected_size`` whenever
        the stored snapshot is at least that large; fields past the
        smaller of the two sizes come back as None.
        """
        size = min(expected_size, self.info.size)
        return self.info.negotiated(size)


class SettingsRegistry:
    """
    Keyed store of Settings records, one per device name.

    Constructed by the application and handed to whatever needs
    per-receiver settings.
    """

    def __init__(self) -> None:
        self._settings: Dict[str, Settings] = {}
        self._lock = threading.Lock()

    def settings_for_radio(self, name: str) -> Settings:
        """Return the record for ``name``, creating it on first use."""
        with self._lock:
            settings = self._settings.get(name)
            if settings is None:
                settings = Settings(device_name=name)
                self._settings[name] = settings
                logger.debug(f"Created settings for {name}")
            return settings

    def get(self, name: str) -> Optional[Settings]:
        with self._lock:
            return self._settings.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._settings)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._settings

    def __len__(self) -> int:
        with self._lock:
            return len(self._settings)
