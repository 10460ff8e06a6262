"""
Receiver enumerations and the self-sizing capability snapshot.

The numeric values below are fixed by the receiver family and travel on the
wire; do not renumber them.

The capability snapshot (RadioInfo) follows the self-sizing record
convention: the consumer sets ``size`` to the byte size of the layout it
understands, and trusts only the fields that fit inside the size the
producer reports back.

Usage:
    from winradio.models import RadioInfo, RADIO_INFO_SIZE

    info = RadioInfo.from_bytes(raw)
    if info.covers("max_if_gain"):
        gain = info.max_if_gain
"""

import struct
from dataclasses import dataclass, fields, replace
from enum import IntEnum, IntFlag
from typing import Dict, List, Optional, Tuple


class FeatureFlags(IntFlag):
    """Hardware capability bits (RIF_*)."""
    NONE = 0x00000000
    US_VERSION = 0x00000001     # hardware is the US version
    DSP = 0x00000002            # DSP is present
    LSB_USB = 0x00000004        # CW/LSB/USB instead of SSB
    CW_IF_SHIFT = 0x00000008    # IF shift used in CW (not BFO offset)
    AGC = 0x00000100            # AGC on/off supported
    IF_GAIN = 0x00000200        # manual IF gain control


class RadioVersion(IntEnum):
    """Hardware version tags (RHV_*)."""
    WR_1000A = 0x0100   # older WR-1000 series
    WR_1000B = 0x010A   # current WR-1000 series
    WR_1500 = 0x0132
    WR_1550 = 0x0137
    WR_3000 = 0x0200    # Spectrum Monitor series
    WR_3100 = 0x020A
    WR_3150 = 0x020F
    WR_3200 = 0x0214
    WR_3500 = 0x0232
    WR_3700 = 0x0246
    WR_2000 = 0x0300


class RadioMode(IntEnum):
    """Demodulation modes (RMD_*)."""
    CW = 0
    AM = 1
    FMN = 2     # narrow FM
    FMW = 3     # wide FM
    LSB = 4
    USB = 5
    FMM = 6     # 50 kHz FM
    FM6 = 7     # 6 kHz narrow FM


class RadioInterface(IntEnum):
    """Physical interface the receiver is attached through (RHI_*)."""
    ISA = 0
    SERIAL = 1


HARDWARE_NAMES: Dict[RadioVersion, str] = {
    RadioVersion.WR_1000A: "WR-1000 (early)",
    RadioVersion.WR_1000B: "WR-1000",
    RadioVersion.WR_1500: "WR-1500",
    RadioVersion.WR_1550: "WR-1550",
    RadioVersion.WR_3000: "WR-3000",
    RadioVersion.WR_3100: "WR-3100",
    RadioVersion.WR_3150: "WR-3150",
    RadioVersion.WR_3200: "WR-3200",
    RadioVersion.WR_3500: "WR-3500",
    RadioVersion.WR_3700: "WR-3700",
    RadioVersion.WR_2000: "WR-2000",
}


# Wire layout, in order: (field, struct code). Little-endian, no padding.
# The supported_modes slot carries a bit mask of RadioMode values.
_LAYOUT: List[Tuple[str, str]] = [
    ("size", "I"),
    ("features", "I"),
    ("api_ver", "H"),
    ("hw_ver", "H"),
    ("min_freq", "I"),
    ("max_freq", "I"),
    ("freq_res", "i"),
    ("num_modes", "i"),
    ("max_volume", "i"),
    ("max_bfo", "i"),
    ("max_fm_scan_rate", "i"),
    ("max_am_scan_rate", "i"),
    ("hw_interface", "i"),
    ("device_num", "i"),
    ("num_sources", "i"),
    ("max_if_shift", "i"),
    ("wave_formats", "I"),
    ("dsp_sources", "i"),
    ("supported_modes", "I"),
    ("max_freq_khz", "I"),
    ("device_name", "64s"),
    ("max_if_gain", "i"),
    ("description", "80s"),
]


def _compute_offsets() -> Dict[str, Tuple[int, int, str]]:
    offsets: Dict[str, Tuple[int, int, str]] = {}
    pos = 0
    for name, code in _LAYOUT:
        width = struct.calcsize("<" + code)
        offsets[name] = (pos, pos + width, code)
        pos += width
    return offsets


_OFFSETS = _compute_offsets()

RADIO_INFO_SIZE = struct.calcsize("<" + "".join(code for _, code in _LAYOUT))


def _modes_to_mask(modes: Tuple[RadioMode, ...]) -> int:
    mask = 0
    for mode in modes:
        mask |= 1 << int(mode)
    return mask


def _mask_to_modes(mask: int) -> Tuple[RadioMode, ...]:
    return tuple(mode for mode in RadioMode if mask & (1 << int(mode)))


def _decode_text(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("latin-1")


def _encode_text(text: Optional[str], width: int) -> bytes:
    # Leave room for the terminating NUL
    return (text or "").encode("latin-1", errors="replace")[: width - 1]


@dataclass(frozen=True)
class RadioInfo:
    """
    Capability snapshot for one physical receiver.

    Any field may be None when the producer's declared size does not
    cover it. Always check ``covers()`` (or ``is not None``) before
    trusting a field.
    """
    size: int = RADIO_INFO_SIZE
    features: Optional[FeatureFlags] = None
    api_ver: Optional[int] = None
    hw_ver: Optional[int] = None
    min_freq: Optional[int] = None
    max_freq: Optional[int] = None
    freq_res: Optional[int] = None
    max_volume: Optional[int] = None
    max_bfo: Optional[int] = None
    max_fm_scan_rate: Optional[int] = None
    max_am_scan_rate: Optional[int] = None
    hw_interface: Optional[RadioInterface] = None
    device_num: Optional[int] = None
    num_sources: Optional[int] = None
    max_if_shift: Optional[int] = None
    wave_formats: Optional[int] = None
    dsp_sources: Optional[int] = None
    supported_modes: Optional[Tuple[RadioMode, ...]] = None
    max_freq_khz: Optional[int] = None
    device_name: Optional[str] = None
    max_if_gain: Optional[int] = None
    description: Optional[str] = None

    @property
    def num_modes(self) -> Optional[int]:
        """Number of supported modes, if the mode list is present."""
        if self.supported_modes is None:
            return None
        return len(self.supported_modes)

    @property
    def hw_version(self) -> Optional[RadioVersion]:
        """Known hardware version, or None for absent/unknown tags."""
        if self.hw_ver is None:
            return None
        try:
            return RadioVersion(self.hw_ver)
        except ValueError:
            return None

    @property
    def model_name(self) -> str:
        """Display name for the hardware version."""
        version = self.hw_version
        if version is not None:
            return HARDWARE_NAMES[version]
        if self.hw_ver is not None:
            return f"unknown (0x{self.hw_ver:04X})"
        return "unknown"

    def covers(self, name: str) -> bool:
        """True if the declared size includes the named field."""
        if name not in _OFFSETS:
            raise KeyError(f"Unknown RadioInfo field: {name}")
        return _OFFSETS[name][1] <= self.size

    def has_feature(self, flag: FeatureFlags) -> bool:
        if self.features is None:
            return False
        return bool(self.features & flag)

    def supports_mode(self, mode: RadioMode) -> bool:
        return self.supported_modes is not None and mode in self.supported_modes

    def negotiated(self, size: int) -> "RadioInfo":
        """
        Return a copy declaring ``size``, with every field the size does
        not cover cleared to None.
        """
        if size < _OFFSETS["size"][1]:
            raise ValueError(f"RadioInfo size {size} too small for the size tag")
        cleared = {}
        for f in fields(self):
            if f.name == "size":
                continue
            if _OFFSETS[f.name][1] > size:
                cleared[f.name] = None
        return replace(self, size=size, **cleared)

    def to_bytes(self) -> bytes:
        """
        Encode using the wire layout.

        Output length is min(size, RADIO_INFO_SIZE); absent fields encode
        as zero.
        """
        values = []
        for name, code in _LAYOUT:
            if name == "num_modes":
                value = self.num_modes or 0
            elif name == "supported_modes":
                value = _modes_to_mask(self.supported_modes or ())
            elif name == "device_name":
                value = _encode_text(self.device_name, 64)
            elif name == "description":
                value = _encode_text(self.description, 80)
            else:
                value = getattr(self, name)
                value = 0 if value is None else int(value)
            values.append(value)
        packed = struct.pack("<" + "".join(code for _, code in _LAYOUT), *values)
        return packed[: min(self.size, RADIO_INFO_SIZE)]

    @classmethod
    def from_bytes(cls, data: bytes) -> "RadioInfo":
        """
        Decode a snapshot, trusting only fields inside both the declared
        size and the bytes actually supplied.

        Raises:
            ValueError: If the size tag itself is missing
        """
        size_end = _OFFSETS["size"][1]
        if len(data) < size_end:
            raise ValueError(f"RadioInfo needs at least {size_end} bytes, got {len(data)}")

        (declared,) = struct.unpack_from("<I", data, 0)
        usable = min(declared, len(data))

        kwargs = {"size": declared}
        for name, (start, end, code) in _OFFSETS.items():
            if name in ("size", "num_modes") or end > usable:
                continue
            (value,) = struct.unpack_from("<" + code, data, start)
            if name == "features":
                value = FeatureFlags(value)
            elif name == "hw_interface":
                value = RadioInterface(value) if value in (0, 1) else value
            elif name == "supported_modes":
                value = _mask_to_modes(value)
            elif name in ("device_name", "description"):
                value = _decode_text(value)
            kwargs[name] = value
        return cls(**kwargs)
